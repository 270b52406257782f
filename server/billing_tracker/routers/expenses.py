from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session

from billing_tracker.auth import require_roles
from billing_tracker.db import get_db
from billing_tracker.expenses import schemas
from billing_tracker.expenses.service import (
    bulk_update_status,
    create_expense,
    delete_expense,
    get_expense,
    get_expense_summary,
    get_expenses_by_category,
    get_expenses_by_month,
    list_expenses,
    update_expense,
)
from billing_tracker.models import User
from billing_tracker.roles import STAFF_ROLES, WRITE_ROLES
from billing_tracker.routers.errors import http_error

router = APIRouter(prefix="/api/expenses", tags=["expenses"])


@router.get("", response_model=List[schemas.ExpenseResponse])
def get_expenses(
    category: Optional[schemas.ExpenseCategoryValue] = None,
    status: Optional[schemas.ExpenseStatusValue] = None,
    project_id: Optional[int] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(*STAFF_ROLES)),
):
    return list_expenses(
        db,
        current_user.id,
        category=category,
        status=status,
        project_id=project_id,
        start_date=start_date,
        end_date=end_date,
    )


@router.post("", response_model=schemas.ExpenseResponse, status_code=status.HTTP_201_CREATED)
def create_expense_endpoint(
    payload: schemas.ExpenseCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(*WRITE_ROLES)),
):
    try:
        expense = create_expense(db, current_user.id, payload.model_dump())
    except ValueError as exc:
        raise http_error(exc)
    db.commit()
    db.refresh(expense)
    return expense


@router.get("/summary/all", response_model=schemas.ExpenseSummary)
def get_expense_summary_endpoint(
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(*STAFF_ROLES)),
):
    return get_expense_summary(db, current_user.id, start_date=start_date, end_date=end_date)


@router.get("/analytics/by-category", response_model=List[schemas.CategoryTotal])
def get_expenses_by_category_endpoint(
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(*STAFF_ROLES)),
):
    return get_expenses_by_category(db, current_user.id, start_date=start_date, end_date=end_date)


@router.get("/analytics/by-month", response_model=List[schemas.MonthTotal])
def get_expenses_by_month_endpoint(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(*STAFF_ROLES)),
):
    return get_expenses_by_month(db, current_user.id)


@router.post("/bulk/update-status", response_model=schemas.BulkStatusResult)
def bulk_update_status_endpoint(
    payload: schemas.BulkStatusUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(*WRITE_ROLES)),
):
    try:
        result = bulk_update_status(
            db, current_user.id, payload.expense_ids, payload.status, role=current_user.role
        )
    except ValueError as exc:
        raise http_error(exc)
    db.commit()
    return result


@router.get("/{expense_id}", response_model=schemas.ExpenseResponse)
def get_expense_endpoint(
    expense_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(*STAFF_ROLES)),
):
    try:
        return get_expense(db, expense_id, tenant_id=current_user.id)
    except ValueError as exc:
        raise http_error(exc)


@router.put("/{expense_id}", response_model=schemas.ExpenseResponse)
def update_expense_endpoint(
    expense_id: int,
    payload: schemas.ExpenseUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(*WRITE_ROLES)),
):
    try:
        expense = get_expense(db, expense_id, tenant_id=current_user.id)
        expense = update_expense(db, expense, payload.model_dump(exclude_unset=True), role=current_user.role)
    except ValueError as exc:
        raise http_error(exc)
    db.commit()
    db.refresh(expense)
    return expense


@router.delete("/{expense_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_expense_endpoint(
    expense_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(*WRITE_ROLES)),
):
    try:
        expense = get_expense(db, expense_id, tenant_id=current_user.id)
        delete_expense(db, expense)
    except ValueError as exc:
        raise http_error(exc)
    db.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)
