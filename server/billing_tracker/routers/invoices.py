from datetime import date
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session

from billing_tracker.auth import get_current_user, portal_client_id, require_roles
from billing_tracker.db import get_db
from billing_tracker.invoicing import schemas
from billing_tracker.invoicing.service import (
    apply_payment,
    delete_invoice,
    generate_invoice,
    get_invoice,
    list_invoices,
    refresh_overdue_status,
    update_invoice,
)
from billing_tracker.models import User
from billing_tracker.roles import WRITE_ROLES
from billing_tracker.routers.errors import http_error

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/invoices", tags=["invoices"])


def _scoped_invoice(db: Session, invoice_id: int, user: User):
    client_id = portal_client_id(user)
    if client_id is not None:
        return get_invoice(db, invoice_id, client_id=client_id)
    return get_invoice(db, invoice_id, tenant_id=user.id)


@router.get("", response_model=List[schemas.InvoiceResponse])
def get_invoices(
    client_id: Optional[int] = None,
    status: Optional[schemas.InvoiceStatusValue] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    invoices = list_invoices(
        db,
        tenant_id=current_user.id,
        portal_client_id=portal_client_id(current_user),
        client_id=client_id,
        status=status,
        start_date=start_date,
        end_date=end_date,
    )
    db.commit()
    return invoices


@router.post("", response_model=schemas.InvoiceDetailResponse, status_code=status.HTTP_201_CREATED)
def create_invoice_endpoint(
    payload: schemas.InvoiceCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(*WRITE_ROLES)),
):
    try:
        invoice = generate_invoice(
            db,
            tenant_id=current_user.id,
            client_id=payload.client_id,
            project_id=payload.project_id,
            work_log_ids=payload.work_log_ids,
            tax_percentage=payload.tax_percentage,
            tax_enabled=payload.tax_enabled,
            due_date=payload.due_date,
            notes=payload.notes,
        )
    except ValueError as exc:
        raise http_error(exc)
    db.commit()
    db.refresh(invoice)
    return invoice


@router.get("/{invoice_id}", response_model=schemas.InvoiceDetailResponse)
def get_invoice_endpoint(
    invoice_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    try:
        invoice = _scoped_invoice(db, invoice_id, current_user)
    except ValueError as exc:
        raise http_error(exc)
    if refresh_overdue_status(invoice):
        logger.info("Marked invoice %s overdue on read", invoice.invoice_number)
        db.commit()
        db.refresh(invoice)
    return invoice


@router.put("/{invoice_id}", response_model=schemas.InvoiceResponse)
def update_invoice_endpoint(
    invoice_id: int,
    payload: schemas.InvoiceUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(*WRITE_ROLES)),
):
    try:
        invoice = get_invoice(db, invoice_id, tenant_id=current_user.id)
        invoice = update_invoice(db, invoice, payload.model_dump(exclude_unset=True), role=current_user.role)
    except ValueError as exc:
        raise http_error(exc)
    db.commit()
    db.refresh(invoice)
    return invoice


@router.delete("/{invoice_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_invoice_endpoint(
    invoice_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(*WRITE_ROLES)),
):
    try:
        invoice = get_invoice(db, invoice_id, tenant_id=current_user.id)
        delete_invoice(db, invoice, role=current_user.role)
    except ValueError as exc:
        raise http_error(exc)
    db.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{invoice_id}/payments", response_model=schemas.InvoiceResponse)
def record_invoice_payment(
    invoice_id: int,
    payload: schemas.InvoicePaymentCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(*WRITE_ROLES)),
):
    try:
        invoice = apply_payment(db, invoice_id, payload.amount, tenant_id=current_user.id)
    except ValueError as exc:
        raise http_error(exc)
    db.commit()
    db.refresh(invoice)
    return invoice
