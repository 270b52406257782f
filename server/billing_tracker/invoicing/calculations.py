from collections.abc import Mapping
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Iterable

from billing_tracker.statuses import InvoiceStatus
from billing_tracker.utils import ZERO, as_decimal, round_currency


LEDGER_TOLERANCE = Decimal("0.01")
PAYMENT_EPSILON = Decimal("0.000001")
HUNDRED = Decimal("100")


@dataclass(frozen=True)
class InvoiceFinancials:
    total: Decimal
    paid: Decimal
    due: Decimal


@dataclass(frozen=True)
class InvoiceTotals:
    subtotal: Decimal
    tax_percentage: Decimal
    tax: Decimal
    total: Decimal


def _field(record, name: str):
    if record is None:
        return None
    if isinstance(record, Mapping):
        return record.get(name)
    return getattr(record, name, None)


def calculate_billable_amount(hours, rate) -> Decimal:
    return round_currency(as_decimal(hours) * as_decimal(rate))


def calculate_invoice_totals(
    billable_amounts: Iterable, tax_percentage=0, tax_enabled: bool = False
) -> InvoiceTotals:
    subtotal = round_currency(sum((as_decimal(amount) for amount in billable_amounts), Decimal("0")))
    percentage = round_currency(tax_percentage) if tax_enabled else ZERO
    tax = round_currency(subtotal * percentage / HUNDRED)
    total = round_currency(subtotal + tax)
    return InvoiceTotals(subtotal=subtotal, tax_percentage=percentage, tax=tax, total=total)


def reconcile_financials(invoice) -> InvoiceFinancials:
    """Derive a consistent (total, paid, due) triple from possibly drifted fields.

    ``amount_paid`` and ``amount_due`` are both stored on the invoice and can
    disagree after partial writes or legacy imports. When they do, the due
    balance wins because payment application writes it last.
    """
    total = max(round_currency(_field(invoice, "total")), ZERO)
    stored_paid = round_currency(_field(invoice, "amount_paid"))
    stored_due = round_currency(_field(invoice, "amount_due"))

    paid_valid = ZERO <= stored_paid <= total
    due_valid = ZERO <= stored_due <= total

    if paid_valid and due_valid and abs(total - (stored_paid + stored_due)) <= LEDGER_TOLERANCE:
        return InvoiceFinancials(total=total, paid=stored_paid, due=stored_due)

    if due_valid:
        paid = round_currency(max(ZERO, total - stored_due))
        return InvoiceFinancials(total=total, paid=paid, due=round_currency(total - paid))

    if paid_valid:
        due = round_currency(max(ZERO, total - stored_paid))
        return InvoiceFinancials(total=total, paid=round_currency(total - due), due=due)

    return InvoiceFinancials(total=total, paid=ZERO, due=total)


def apply_financials(invoice, financials: InvoiceFinancials) -> bool:
    """Write a reconciled triple onto an invoice row. Returns True if anything changed."""
    changed = (
        round_currency(invoice.total) != financials.total
        or round_currency(invoice.amount_paid) != financials.paid
        or round_currency(invoice.amount_due) != financials.due
    )
    invoice.total = financials.total
    invoice.amount_paid = financials.paid
    invoice.amount_due = financials.due
    return changed


def _as_date(value) -> date | None:
    if isinstance(value, datetime):
        return value.date()
    return value


def is_overdue(invoice, today: date | None = None, financials: InvoiceFinancials | None = None) -> bool:
    due_date = _as_date(_field(invoice, "due_date"))
    if due_date is None:
        return False
    today = today or date.today()
    financials = financials or reconcile_financials(invoice)
    return due_date < today and financials.due > 0


def derive_status(invoice, today: date | None = None) -> str:
    financials = reconcile_financials(invoice)

    if financials.due <= PAYMENT_EPSILON:
        return InvoiceStatus.PAID.value
    if is_overdue(invoice, today, financials):
        return InvoiceStatus.OVERDUE.value
    if financials.paid > 0:
        return InvoiceStatus.PARTIALLY_PAID.value

    current = _field(invoice, "status") or InvoiceStatus.DRAFT.value
    if current == InvoiceStatus.DRAFT.value:
        return InvoiceStatus.DRAFT.value
    return InvoiceStatus.SENT.value
