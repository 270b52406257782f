from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session

from billing_tracker.auth import get_current_user, portal_client_id, require_roles
from billing_tracker.db import get_db
from billing_tracker.invoicing import schemas
from billing_tracker.invoicing.service import (
    delete_payment,
    get_client_payment_summary,
    get_payment,
    list_payments,
    record_payment,
    update_payment,
)
from billing_tracker.models import User
from billing_tracker.roles import PRIVILEGED_ROLES, WRITE_ROLES
from billing_tracker.routers.errors import http_error

router = APIRouter(prefix="/api/payments", tags=["payments"])


@router.get("", response_model=List[schemas.PaymentResponse])
def get_payments(
    client_id: Optional[int] = None,
    invoice_id: Optional[int] = None,
    status: Optional[schemas.PaymentStatusValue] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return list_payments(
        db,
        tenant_id=current_user.id,
        portal_client_id=portal_client_id(current_user),
        client_id=client_id,
        invoice_id=invoice_id,
        status=status,
        start_date=start_date,
        end_date=end_date,
    )


@router.post("", response_model=schemas.PaymentResponse, status_code=status.HTTP_201_CREATED)
def create_payment(
    payload: schemas.PaymentCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(*WRITE_ROLES)),
):
    try:
        payment = record_payment(db, payload.model_dump(), user_id=current_user.id, tenant_id=current_user.id)
    except ValueError as exc:
        raise http_error(exc)
    db.commit()
    db.refresh(payment)
    return payment


@router.get("/client/{client_id}", response_model=schemas.ClientPaymentSummary)
def get_client_payments(
    client_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    try:
        return get_client_payment_summary(
            db,
            client_id,
            tenant_id=current_user.id,
            portal_client_id=portal_client_id(current_user),
        )
    except ValueError as exc:
        raise http_error(exc)


@router.get("/{payment_id}", response_model=schemas.PaymentResponse)
def get_payment_endpoint(
    payment_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    try:
        return get_payment(
            db,
            payment_id,
            tenant_id=current_user.id,
            portal_client_id=portal_client_id(current_user),
        )
    except ValueError as exc:
        raise http_error(exc)


@router.put("/{payment_id}", response_model=schemas.PaymentResponse)
def update_payment_endpoint(
    payment_id: int,
    payload: schemas.PaymentUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(*PRIVILEGED_ROLES)),
):
    try:
        payment = get_payment(db, payment_id, tenant_id=current_user.id)
        payment = update_payment(db, payment, payload.model_dump(exclude_unset=True))
    except ValueError as exc:
        raise http_error(exc)
    db.commit()
    db.refresh(payment)
    return payment


@router.delete("/{payment_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_payment_endpoint(
    payment_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(*PRIVILEGED_ROLES)),
):
    try:
        payment = get_payment(db, payment_id, tenant_id=current_user.id)
        delete_payment(db, payment)
    except ValueError as exc:
        raise http_error(exc)
    db.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)
