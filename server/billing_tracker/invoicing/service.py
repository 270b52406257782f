from datetime import date, datetime
from decimal import Decimal
import logging
from typing import Iterable, List, Optional, Sequence

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from billing_tracker.exceptions import (
    ConflictError,
    NoBillableWorkLogsError,
    NotFoundError,
    OverpaymentError,
    PermissionDeniedError,
    ValidationError,
)
from billing_tracker.invoicing.calculations import (
    PAYMENT_EPSILON,
    apply_financials,
    calculate_invoice_totals,
    derive_status,
    reconcile_financials,
)
from billing_tracker.invoicing.transitions import guard_transition
from billing_tracker.models import Client, Invoice, Payment, WorkLog
from billing_tracker.roles import is_privileged
from billing_tracker.statuses import InvoiceStatus, PaymentStatus
from billing_tracker.timesheets.service import get_client, get_project
from billing_tracker.utils import ZERO, as_decimal, round_currency, sum_money, utcnow


logger = logging.getLogger(__name__)

INVOICE_NUMBER_PREFIX = "INV-"
INVOICE_NUMBER_SEED = 1001


def _parse_invoice_number(invoice_number: str | None) -> int | None:
    if not invoice_number or not invoice_number.startswith(INVOICE_NUMBER_PREFIX):
        return None
    suffix = invoice_number[len(INVOICE_NUMBER_PREFIX):]
    return int(suffix) if suffix.isdigit() else None


def next_invoice_number(db: Session) -> str:
    """Next sequential number after the highest existing ``INV-<n>``.

    Read-then-insert, so two concurrent generations can compute the same
    number; the unique constraint on ``invoice_number`` rejects the loser.
    """
    rows = db.query(Invoice.invoice_number).filter(Invoice.invoice_number.like(f"{INVOICE_NUMBER_PREFIX}%")).all()
    numbers = [number for number in (_parse_invoice_number(row[0]) for row in rows) if number is not None]
    if not numbers:
        return f"{INVOICE_NUMBER_PREFIX}{INVOICE_NUMBER_SEED}"
    return f"{INVOICE_NUMBER_PREFIX}{max(numbers) + 1}"


def get_invoice(
    db: Session,
    invoice_id: int,
    *,
    tenant_id: int | None = None,
    client_id: int | None = None,
) -> Invoice:
    query = db.query(Invoice).filter(Invoice.id == invoice_id)
    if tenant_id is not None:
        query = query.filter(Invoice.user_id == tenant_id)
    if client_id is not None:
        query = query.filter(Invoice.client_id == client_id)
    invoice = query.first()
    if not invoice:
        raise NotFoundError("Invoice not found.")
    return invoice


def _validate_tax_percentage(value) -> Decimal:
    percentage = as_decimal(value)
    if percentage < 0 or percentage > 100:
        raise ValidationError("Tax percentage must be between 0 and 100.")
    return percentage


def generate_invoice(
    db: Session,
    *,
    tenant_id: int,
    client_id: int,
    work_log_ids: Iterable[int],
    project_id: Optional[int] = None,
    tax_percentage=0,
    tax_enabled: bool = False,
    due_date: Optional[date] = None,
    notes: Optional[str] = None,
) -> Invoice:
    requested_ids = list(dict.fromkeys(work_log_ids or []))
    if not requested_ids:
        raise ValidationError("At least one work log is required.")
    tax_percentage = _validate_tax_percentage(tax_percentage)

    client = get_client(db, client_id, tenant_id=tenant_id)
    if project_id is not None:
        project = get_project(db, project_id, tenant_id=tenant_id)
        if project.client_id != client.id:
            raise ValidationError("Project does not belong to the invoiced client.")

    work_logs = (
        db.query(WorkLog)
        .filter(
            WorkLog.id.in_(requested_ids),
            WorkLog.user_id == tenant_id,
            WorkLog.client_id == client.id,
            WorkLog.billable.is_(True),
            WorkLog.invoice_id.is_(None),
        )
        .order_by(WorkLog.id)
        .all()
    )
    if not work_logs:
        raise NoBillableWorkLogsError()

    totals = calculate_invoice_totals(
        (work_log.billable_amount for work_log in work_logs),
        tax_percentage=tax_percentage,
        tax_enabled=tax_enabled,
    )

    now = utcnow()
    invoice = Invoice(
        user_id=tenant_id,
        client_id=client.id,
        project_id=project_id,
        invoice_number=next_invoice_number(db),
        status=InvoiceStatus.DRAFT.value,
        subtotal=totals.subtotal,
        tax_percentage=totals.tax_percentage,
        tax_enabled=bool(tax_enabled),
        tax=totals.tax,
        total=totals.total,
        amount_paid=ZERO,
        amount_due=totals.total,
        issue_date=now.date(),
        due_date=due_date,
        notes=notes,
        created_at=now,
        updated_at=now,
    )
    db.add(invoice)
    try:
        db.flush()
    except IntegrityError:
        db.rollback()
        logger.warning("Invoice number collision for %s; caller should retry", invoice.invoice_number)
        raise ConflictError("Invoice number was taken by a concurrent request. Please retry.")

    # Conditional claim: only rows still unbilled are attached to this invoice.
    selected_ids = [work_log.id for work_log in work_logs]
    claimed = (
        db.query(WorkLog)
        .filter(WorkLog.id.in_(selected_ids), WorkLog.invoice_id.is_(None))
        .update({WorkLog.invoice_id: invoice.id}, synchronize_session=False)
    )
    if claimed != len(selected_ids):
        db.rollback()
        logger.warning(
            "Work log claim race: selected=%s claimed=%s client_id=%s", len(selected_ids), claimed, client.id
        )
        raise ConflictError("Some work logs were invoiced by a concurrent request. Please retry.")
    for work_log in work_logs:
        db.expire(work_log)

    skipped = len(requested_ids) - len(selected_ids)
    logger.info(
        "Generated invoice %s for client_id=%s: work_logs=%s skipped=%s total=%s",
        invoice.invoice_number,
        client.id,
        len(selected_ids),
        skipped,
        invoice.total,
    )
    return invoice


def recompute_client_balance(db: Session, client_id: int) -> Decimal:
    """Full recomputation of a client's cached balance from all of its invoices."""
    client = db.query(Client).filter(Client.id == client_id).first()
    if not client:
        raise NotFoundError("Client not found.")

    invoices = db.query(Invoice).filter(Invoice.client_id == client_id).all()
    ledgers = []
    for invoice in invoices:
        financials = reconcile_financials(invoice)
        if apply_financials(invoice, financials):
            logger.debug(
                "Repaired ledger on invoice %s: total=%s paid=%s due=%s",
                invoice.invoice_number,
                financials.total,
                financials.paid,
                financials.due,
            )
        ledgers.append(financials)
    client.outstanding_balance = sum_money(ledger.due for ledger in ledgers)
    client.total_billed = sum_money(ledger.total for ledger in ledgers)
    db.flush()

    logger.info(
        "Recomputed balance for client_id=%s: invoices=%s outstanding=%s billed=%s",
        client_id,
        len(invoices),
        client.outstanding_balance,
        client.total_billed,
    )
    return client.outstanding_balance


def apply_payment(
    db: Session,
    invoice_id: int,
    amount,
    *,
    tenant_id: int | None = None,
    now: datetime | None = None,
) -> Invoice:
    amount = round_currency(amount)
    if amount <= 0:
        raise ValidationError("Payment amount must be greater than zero.")

    invoice = get_invoice(db, invoice_id, tenant_id=tenant_id)
    financials = reconcile_financials(invoice)
    if amount > financials.due + PAYMENT_EPSILON:
        raise OverpaymentError(amount, financials.due)

    now = now or utcnow()
    new_paid = round_currency(financials.paid + amount)
    invoice.amount_paid = new_paid
    invoice.amount_due = round_currency(max(ZERO, financials.total - new_paid))
    invoice.status = derive_status(invoice, today=now.date())
    if invoice.status == InvoiceStatus.PAID.value:
        invoice.paid_date = now
    invoice.updated_at = now
    db.flush()

    logger.info(
        "Applied payment of %s to invoice %s: paid=%s due=%s status=%s",
        amount,
        invoice.invoice_number,
        invoice.amount_paid,
        invoice.amount_due,
        invoice.status,
    )
    recompute_client_balance(db, invoice.client_id)
    return invoice


def refresh_overdue_status(invoice: Invoice, today: date | None = None) -> bool:
    """Persist an overdue flip noticed on a read path. Returns True when the row changed."""
    if derive_status(invoice, today) == InvoiceStatus.OVERDUE.value and invoice.status != InvoiceStatus.OVERDUE.value:
        invoice.status = InvoiceStatus.OVERDUE.value
        return True
    return False


def list_invoices(
    db: Session,
    *,
    tenant_id: int | None = None,
    portal_client_id: int | None = None,
    client_id: Optional[int] = None,
    status: Optional[str] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    today: date | None = None,
) -> Sequence[Invoice]:
    query = db.query(Invoice)
    if portal_client_id is not None:
        query = query.filter(Invoice.client_id == portal_client_id)
    else:
        query = query.filter(Invoice.user_id == tenant_id)
        if client_id:
            query = query.filter(Invoice.client_id == client_id)
    if start_date:
        query = query.filter(Invoice.issue_date >= start_date)
    if end_date:
        query = query.filter(Invoice.issue_date <= end_date)
    invoices = query.order_by(Invoice.issue_date.desc(), Invoice.id.desc()).all()

    refreshed = [invoice.id for invoice in invoices if refresh_overdue_status(invoice, today)]
    if refreshed:
        logger.info("Marked invoices overdue on read: %s", refreshed)
    # Stored status lags the overdue flip, so the status filter runs on refreshed rows.
    if status:
        invoices = [invoice for invoice in invoices if invoice.status == status]
    return invoices


def update_invoice(
    db: Session,
    invoice: Invoice,
    payload: dict,
    *,
    role: str | None,
    now: datetime | None = None,
) -> Invoice:
    now = now or utcnow()

    if "notes" in payload:
        invoice.notes = payload["notes"]
    if "due_date" in payload:
        invoice.due_date = payload["due_date"]

    tax_enabled = payload.get("tax_enabled")
    tax_percentage = payload.get("tax_percentage")
    if tax_enabled is not None or tax_percentage is not None:
        next_enabled = invoice.tax_enabled if tax_enabled is None else tax_enabled
        next_percentage = _validate_tax_percentage(
            invoice.tax_percentage if tax_percentage is None else tax_percentage
        )
        paid = reconcile_financials(invoice).paid
        totals = calculate_invoice_totals([invoice.subtotal], next_percentage, next_enabled)
        due = round_currency(max(ZERO, totals.total - paid))
        invoice.tax_enabled = bool(next_enabled)
        invoice.tax_percentage = totals.tax_percentage
        invoice.tax = totals.tax
        invoice.total = totals.total
        invoice.amount_due = due
        invoice.amount_paid = round_currency(totals.total - due)

    requested_status = payload.get("status")
    if requested_status:
        guard_transition(invoice.status, requested_status, role)
        logger.info("Invoice %s status %s -> %s by role=%s", invoice.invoice_number, invoice.status, requested_status, role)
        invoice.status = requested_status
        if requested_status == InvoiceStatus.PAID.value:
            invoice.amount_paid = round_currency(invoice.total)
            invoice.amount_due = ZERO
            invoice.paid_date = now
    else:
        invoice.status = derive_status(invoice, today=now.date())

    invoice.updated_at = now
    db.flush()
    recompute_client_balance(db, invoice.client_id)
    return invoice


def delete_invoice(db: Session, invoice: Invoice, *, role: str | None) -> None:
    if not is_privileged(role) and invoice.status != InvoiceStatus.DRAFT.value:
        raise PermissionDeniedError(
            "You can only delete draft invoices. Contact an admin to delete sent or paid invoices."
        )

    client_id = invoice.client_id
    invoice_id = invoice.id
    work_logs = db.query(WorkLog).filter(WorkLog.invoice_id == invoice_id).all()
    for work_log in work_logs:
        work_log.invoice_id = None
    # Payments survive the invoice; they are unlinked, not removed.
    for payment in db.query(Payment).filter(Payment.invoice_id == invoice_id).all():
        payment.invoice_id = None
    db.flush()
    db.expire(invoice, ["work_logs", "payments"])
    db.delete(invoice)
    db.flush()

    logger.info("Deleted invoice id=%s, released %s work logs", invoice_id, len(work_logs))
    recompute_client_balance(db, client_id)


def get_client_invoice_stats(db: Session, client_id: int, *, today: date | None = None) -> dict:
    invoices = db.query(Invoice).filter(Invoice.client_id == client_id).all()
    ledgers = [reconcile_financials(invoice) for invoice in invoices]
    return {
        "client_id": client_id,
        "total_invoiced": sum_money(ledger.total for ledger in ledgers),
        "total_paid": sum_money(ledger.paid for ledger in ledgers),
        "total_due": sum_money(ledger.due for ledger in ledgers),
        "invoice_count": len(invoices),
        "paid_count": sum(1 for invoice in invoices if derive_status(invoice, today) == InvoiceStatus.PAID.value),
    }


def list_payments(
    db: Session,
    *,
    tenant_id: int | None = None,
    portal_client_id: int | None = None,
    client_id: Optional[int] = None,
    invoice_id: Optional[int] = None,
    status: Optional[str] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
) -> List[Payment]:
    query = db.query(Payment)
    if portal_client_id is not None:
        query = query.filter(Payment.client_id == portal_client_id)
    else:
        query = query.filter(Payment.user_id == tenant_id)
        if client_id:
            query = query.filter(Payment.client_id == client_id)
    if invoice_id:
        query = query.filter(Payment.invoice_id == invoice_id)
    if status:
        query = query.filter(Payment.status == status)
    if start_date:
        query = query.filter(Payment.payment_date >= start_date)
    if end_date:
        query = query.filter(Payment.payment_date <= end_date)
    return query.order_by(Payment.payment_date.desc(), Payment.id.desc()).all()


def get_client_payment_summary(
    db: Session,
    client_id: int,
    *,
    tenant_id: int | None = None,
    portal_client_id: int | None = None,
) -> dict:
    """Payments of one client plus the amount actually received."""
    if portal_client_id is not None:
        if portal_client_id != client_id:
            raise NotFoundError("Client not found.")
        payments = list_payments(db, portal_client_id=portal_client_id)
    else:
        get_client(db, client_id, tenant_id=tenant_id)
        payments = list_payments(db, tenant_id=tenant_id, client_id=client_id)
    received = [payment.amount for payment in payments if payment.status == PaymentStatus.COMPLETED.value]
    return {
        "payments": payments,
        "summary": {
            "total_received": sum_money(received),
            "payment_count": len(payments),
        },
    }


def get_payment(
    db: Session,
    payment_id: int,
    *,
    tenant_id: int | None = None,
    portal_client_id: int | None = None,
) -> Payment:
    query = db.query(Payment).filter(Payment.id == payment_id)
    if portal_client_id is not None:
        query = query.filter(Payment.client_id == portal_client_id)
    elif tenant_id is not None:
        query = query.filter(Payment.user_id == tenant_id)
    payment = query.first()
    if not payment:
        raise NotFoundError("Payment not found.")
    return payment


def record_payment(
    db: Session,
    payload: dict,
    *,
    user_id: int,
    tenant_id: int | None = None,
    now: datetime | None = None,
) -> Payment:
    amount = round_currency(payload["amount"])
    if amount <= 0:
        raise ValidationError("Payment amount must be greater than zero.")

    invoice = get_invoice(db, payload["invoice_id"], tenant_id=tenant_id)
    if invoice.client_id != payload["client_id"]:
        raise ValidationError("Payment client does not match invoice client.")
    due = reconcile_financials(invoice).due
    if amount > due + PAYMENT_EPSILON:
        raise OverpaymentError(amount, due)

    now = now or utcnow()
    payment = Payment(
        user_id=user_id,
        invoice_id=invoice.id,
        client_id=invoice.client_id,
        amount=amount,
        payment_method=payload.get("payment_method") or "bank-transfer",
        payment_date=payload.get("payment_date") or now.date(),
        transaction_id=payload.get("transaction_id"),
        notes=payload.get("notes"),
        status=payload.get("status") or PaymentStatus.COMPLETED.value,
        applied=False,
        created_at=now,
    )
    db.add(payment)
    try:
        db.flush()
    except IntegrityError:
        db.rollback()
        raise ConflictError("A payment with this transaction id already exists.")

    if payment.status == PaymentStatus.COMPLETED.value:
        apply_payment(db, invoice.id, amount, now=now)
        payment.applied = True
        db.flush()
    return payment


def update_payment(db: Session, payment: Payment, payload: dict, *, now: datetime | None = None) -> Payment:
    """Change status or notes.

    A payment credits its invoice at most once: the first time it reaches
    ``completed``. Later status changes never re-credit or reverse it.
    """
    if payload.get("status"):
        payment.status = payload["status"]
    if payload.get("notes") is not None:
        payment.notes = payload["notes"]
    db.flush()

    if payment.status == PaymentStatus.COMPLETED.value and not payment.applied:
        if payment.invoice_id is None:
            raise NotFoundError("Invoice not found.")
        apply_payment(db, payment.invoice_id, payment.amount, now=now)
        payment.applied = True
        db.flush()
    else:
        recompute_client_balance(db, payment.client_id)
    return payment


def delete_payment(db: Session, payment: Payment) -> None:
    client_id = payment.client_id
    db.delete(payment)
    db.flush()
    recompute_client_balance(db, client_id)
