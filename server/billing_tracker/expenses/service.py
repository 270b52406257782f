from collections import defaultdict
from datetime import date
import logging
from typing import Iterable, Optional, Sequence

from sqlalchemy.orm import Session

from billing_tracker.exceptions import IllegalTransitionError, NotFoundError, ValidationError
from billing_tracker.models import Expense
from billing_tracker.roles import is_privileged
from billing_tracker.statuses import EXPENSE_STATUSES, ExpenseStatus
from billing_tracker.timesheets.service import get_project
from billing_tracker.utils import round_currency, sum_money, utcnow


logger = logging.getLogger(__name__)

PENDING = ExpenseStatus.PENDING.value
APPROVED = ExpenseStatus.APPROVED.value
REJECTED = ExpenseStatus.REJECTED.value
PAID = ExpenseStatus.PAID.value

# Approval workflow. Admins may set any status.
ALLOWED_TRANSITIONS: dict[str, frozenset[str]] = {
    PENDING: frozenset({APPROVED, REJECTED}),
    APPROVED: frozenset({PAID, REJECTED}),
    REJECTED: frozenset({PENDING}),
    PAID: frozenset(),
}

EDITABLE_FIELDS = [
    "category",
    "description",
    "vendor",
    "expense_date",
    "payment_method",
    "receipt",
    "notes",
    "tags",
    "tax_deductible",
]


def can_transition(current_status: str, requested_status: str, role: str | None) -> bool:
    if requested_status == current_status or is_privileged(role):
        return True
    return requested_status in ALLOWED_TRANSITIONS.get(current_status, frozenset())


def guard_expense_transition(current_status: str, requested_status: str, role: str | None) -> None:
    if requested_status not in EXPENSE_STATUSES:
        raise ValidationError(f"Unknown expense status '{requested_status}'.")
    if not can_transition(current_status, requested_status, role):
        raise IllegalTransitionError(current_status, requested_status, ALLOWED_TRANSITIONS.get(current_status, ()))


def get_expense(db: Session, expense_id: int, *, tenant_id: int) -> Expense:
    expense = db.query(Expense).filter(Expense.id == expense_id, Expense.user_id == tenant_id).first()
    if not expense:
        raise NotFoundError("Expense not found.")
    return expense


def _scoped(db: Session, tenant_id: int, start_date: Optional[date], end_date: Optional[date]):
    query = db.query(Expense).filter(Expense.user_id == tenant_id)
    if start_date:
        query = query.filter(Expense.expense_date >= start_date)
    if end_date:
        query = query.filter(Expense.expense_date <= end_date)
    return query


def list_expenses(
    db: Session,
    tenant_id: int,
    *,
    category: Optional[str] = None,
    status: Optional[str] = None,
    project_id: Optional[int] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
) -> Sequence[Expense]:
    query = _scoped(db, tenant_id, start_date, end_date)
    if category:
        query = query.filter(Expense.category == category)
    if status:
        query = query.filter(Expense.status == status)
    if project_id:
        query = query.filter(Expense.project_id == project_id)
    return query.order_by(Expense.expense_date.desc(), Expense.id.desc()).all()


def create_expense(db: Session, tenant_id: int, payload: dict) -> Expense:
    amount = round_currency(payload["amount"])
    if amount <= 0:
        raise ValidationError("Expense amount must be greater than zero.")
    if payload.get("project_id") is not None:
        get_project(db, payload["project_id"], tenant_id=tenant_id)

    now = utcnow()
    expense = Expense(
        user_id=tenant_id,
        project_id=payload.get("project_id"),
        category=payload["category"],
        description=payload["description"],
        amount=amount,
        vendor=payload.get("vendor"),
        expense_date=payload.get("expense_date") or now.date(),
        status=payload.get("status") or PENDING,
        payment_method=payload.get("payment_method"),
        receipt=payload.get("receipt"),
        notes=payload.get("notes"),
        tags=list(payload.get("tags") or []),
        currency=payload.get("currency") or "USD",
        tax_deductible=bool(payload.get("tax_deductible")),
        created_at=now,
        updated_at=now,
    )
    db.add(expense)
    db.flush()
    return expense


def update_expense(db: Session, expense: Expense, payload: dict, *, role: str | None) -> Expense:
    if payload.get("amount") is not None:
        amount = round_currency(payload["amount"])
        if amount <= 0:
            raise ValidationError("Expense amount must be greater than zero.")
        expense.amount = amount
    if payload.get("project_id") is not None:
        get_project(db, payload["project_id"], tenant_id=expense.user_id)
        expense.project_id = payload["project_id"]
    for field in EDITABLE_FIELDS:
        if field in payload and payload[field] is not None:
            setattr(expense, field, payload[field])

    requested_status = payload.get("status")
    if requested_status:
        guard_expense_transition(expense.status, requested_status, role)
        if requested_status != expense.status:
            logger.info("Expense id=%s status %s -> %s by role=%s", expense.id, expense.status, requested_status, role)
        expense.status = requested_status

    expense.updated_at = utcnow()
    db.flush()
    return expense


def delete_expense(db: Session, expense: Expense) -> None:
    db.delete(expense)
    db.flush()
    logger.info("Deleted expense id=%s", expense.id)


def bulk_update_status(
    db: Session,
    tenant_id: int,
    expense_ids: Iterable[int],
    status: str,
    *,
    role: str | None,
) -> dict:
    """Move several expenses to ``status``.

    Rows the workflow does not allow, rows already in that status and ids
    outside the tenant are reported back as skipped instead of failing the batch.
    """
    if status not in EXPENSE_STATUSES:
        raise ValidationError(f"Unknown expense status '{status}'.")
    requested_ids = list(dict.fromkeys(expense_ids or []))
    if not requested_ids:
        raise ValidationError("At least one expense id is required.")

    expenses = db.query(Expense).filter(Expense.id.in_(requested_ids), Expense.user_id == tenant_id).all()
    modified = []
    for expense in expenses:
        if expense.status != status and can_transition(expense.status, status, role):
            expense.status = status
            expense.updated_at = utcnow()
            modified.append(expense.id)
    db.flush()

    skipped = [expense_id for expense_id in requested_ids if expense_id not in modified]
    logger.info("Bulk expense status -> %s: modified=%s skipped=%s", status, len(modified), skipped)
    return {"modified_count": len(modified), "skipped_ids": skipped}


def get_expense_summary(
    db: Session,
    tenant_id: int,
    *,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
) -> dict:
    expenses = _scoped(db, tenant_id, start_date, end_date).all()

    def total_for(status: str):
        return sum_money(expense.amount for expense in expenses if expense.status == status)

    return {
        "total_expenses": sum_money(expense.amount for expense in expenses),
        "count": len(expenses),
        "approved": total_for(APPROVED),
        "pending": total_for(PENDING),
        "paid": total_for(PAID),
        "rejected": total_for(REJECTED),
        "tax_deductible": sum_money(expense.amount for expense in expenses if expense.tax_deductible),
    }


def get_expenses_by_category(
    db: Session,
    tenant_id: int,
    *,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
) -> list[dict]:
    grouped = defaultdict(list)
    for expense in _scoped(db, tenant_id, start_date, end_date).all():
        grouped[expense.category].append(expense.amount)
    rows = [
        {"category": category, "total": sum_money(amounts), "count": len(amounts)}
        for category, amounts in grouped.items()
    ]
    return sorted(rows, key=lambda row: (-row["total"], row["category"]))


def get_expenses_by_month(db: Session, tenant_id: int) -> list[dict]:
    grouped = defaultdict(list)
    for expense in db.query(Expense).filter(Expense.user_id == tenant_id).all():
        grouped[(expense.expense_date.year, expense.expense_date.month)].append(expense.amount)
    return [
        {"year": year, "month": month, "total": sum_money(amounts), "count": len(amounts)}
        for (year, month), amounts in sorted(grouped.items())
    ]
