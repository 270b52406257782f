from datetime import date
import logging
from typing import Optional, Sequence

from sqlalchemy.orm import Session

from billing_tracker.exceptions import ConflictError, InvoicedWorkLogError, NotFoundError, ValidationError
from billing_tracker.invoicing.calculations import calculate_billable_amount
from billing_tracker.models import Client, Expense, Invoice, Payment, Project, WorkLog
from billing_tracker.utils import ZERO, as_decimal, sum_money


logger = logging.getLogger(__name__)


def get_client(db: Session, client_id: int, *, tenant_id: int | None = None) -> Client:
    query = db.query(Client).filter(Client.id == client_id)
    if tenant_id is not None:
        query = query.filter(Client.user_id == tenant_id)
    client = query.first()
    if not client:
        raise NotFoundError("Client not found.")
    return client


def get_project(db: Session, project_id: int, *, tenant_id: int | None = None) -> Project:
    query = db.query(Project).filter(Project.id == project_id)
    if tenant_id is not None:
        query = query.filter(Project.user_id == tenant_id)
    project = query.first()
    if not project:
        raise NotFoundError("Project not found.")
    return project


def list_clients(db: Session, tenant_id: int) -> Sequence[Client]:
    return db.query(Client).filter(Client.user_id == tenant_id).order_by(Client.created_at.desc(), Client.id.desc()).all()


def create_client(db: Session, tenant_id: int, payload: dict) -> Client:
    existing = db.query(Client).filter(Client.user_id == tenant_id, Client.email == payload["email"]).first()
    if existing:
        raise ValidationError("Client already exists.")
    client = Client(user_id=tenant_id, **payload)
    db.add(client)
    db.flush()
    return client


def update_client(db: Session, client: Client, payload: dict) -> Client:
    email = payload.get("email")
    if email and email != client.email:
        duplicate = (
            db.query(Client)
            .filter(Client.user_id == client.user_id, Client.email == email, Client.id != client.id)
            .first()
        )
        if duplicate:
            raise ValidationError("Client already exists.")
    for field in ["name", "email", "company", "phone", "address", "billing_rate", "status"]:
        if field in payload and payload[field] is not None:
            setattr(client, field, payload[field])
    db.flush()
    return client


def delete_client(db: Session, client: Client) -> None:
    """Remove a client that nothing references yet."""
    if db.query(Project.id).filter(Project.client_id == client.id).first():
        raise ConflictError("Client has projects and cannot be deleted.")
    if db.query(Invoice.id).filter(Invoice.client_id == client.id).first():
        raise ConflictError("Client has invoices and cannot be deleted.")
    if db.query(Payment.id).filter(Payment.client_id == client.id).first():
        raise ConflictError("Client has payments and cannot be deleted.")
    db.delete(client)
    db.flush()
    logger.info("Deleted client id=%s", client.id)


def list_projects(db: Session, tenant_id: int, client_id: Optional[int] = None) -> Sequence[Project]:
    query = db.query(Project).filter(Project.user_id == tenant_id)
    if client_id:
        query = query.filter(Project.client_id == client_id)
    return query.order_by(Project.name).all()


def create_project(db: Session, tenant_id: int, payload: dict) -> Project:
    get_client(db, payload["client_id"], tenant_id=tenant_id)
    project = Project(user_id=tenant_id, **payload)
    db.add(project)
    db.flush()
    return project


def update_project(db: Session, project: Project, payload: dict) -> Project:
    # A new hourly rate applies to work logged from now on; existing amounts stay.
    for field in ["name", "description", "hourly_rate", "budget", "status", "start_date", "end_date"]:
        if field in payload and payload[field] is not None:
            setattr(project, field, payload[field])
    db.flush()
    return project


def delete_project(db: Session, project: Project) -> None:
    if db.query(WorkLog.id).filter(WorkLog.project_id == project.id).first():
        raise ConflictError("Project has work logs and cannot be deleted.")
    if db.query(Invoice.id).filter(Invoice.project_id == project.id).first():
        raise ConflictError("Project has invoices and cannot be deleted.")
    if db.query(Expense.id).filter(Expense.project_id == project.id).first():
        raise ConflictError("Project has expenses and cannot be deleted.")
    db.delete(project)
    db.flush()
    logger.info("Deleted project id=%s", project.id)


def get_project_summary(db: Session, project: Project) -> dict:
    work_logs = db.query(WorkLog).filter(WorkLog.project_id == project.id).all()
    return {
        "project_id": project.id,
        "total_hours": sum((as_decimal(work_log.hours) for work_log in work_logs), ZERO),
        "total_earnings": sum_money(work_log.billable_amount for work_log in work_logs if work_log.billable),
        "work_log_count": len(work_logs),
    }


def list_work_logs(
    db: Session,
    tenant_id: int,
    *,
    project_id: Optional[int] = None,
    client_id: Optional[int] = None,
    billable: Optional[bool] = None,
    unbilled_only: bool = False,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
) -> Sequence[WorkLog]:
    query = db.query(WorkLog).filter(WorkLog.user_id == tenant_id)
    if project_id:
        query = query.filter(WorkLog.project_id == project_id)
    if client_id:
        query = query.filter(WorkLog.client_id == client_id)
    if billable is not None:
        query = query.filter(WorkLog.billable == billable)
    if unbilled_only:
        query = query.filter(WorkLog.invoice_id.is_(None))
    if start_date:
        query = query.filter(WorkLog.work_date >= start_date)
    if end_date:
        query = query.filter(WorkLog.work_date <= end_date)
    return query.order_by(WorkLog.work_date.desc(), WorkLog.id.desc()).all()


def get_work_log(db: Session, work_log_id: int, *, tenant_id: int) -> WorkLog:
    work_log = db.query(WorkLog).filter(WorkLog.id == work_log_id, WorkLog.user_id == tenant_id).first()
    if not work_log:
        raise NotFoundError("Work log not found.")
    return work_log


def create_work_log(db: Session, tenant_id: int, payload: dict) -> WorkLog:
    project = get_project(db, payload["project_id"], tenant_id=tenant_id)
    billable = payload.get("billable", True)
    work_log = WorkLog(
        user_id=tenant_id,
        project_id=project.id,
        client_id=project.client_id,
        work_date=payload["work_date"],
        hours=payload["hours"],
        description=payload["description"],
        billable=billable,
        billable_amount=calculate_billable_amount(payload["hours"], project.hourly_rate) if billable else ZERO,
    )
    db.add(work_log)
    db.flush()
    return work_log


def update_work_log(db: Session, work_log: WorkLog, payload: dict) -> WorkLog:
    if work_log.invoice_id is not None:
        raise InvoicedWorkLogError("edit")
    for field in ["work_date", "hours", "description", "billable"]:
        if field in payload and payload[field] is not None:
            setattr(work_log, field, payload[field])
    project = get_project(db, work_log.project_id)
    work_log.billable_amount = (
        calculate_billable_amount(work_log.hours, project.hourly_rate) if work_log.billable else ZERO
    )
    return work_log


def delete_work_log(db: Session, work_log: WorkLog) -> None:
    if work_log.invoice_id is not None:
        raise InvoicedWorkLogError("delete")
    db.delete(work_log)
    logger.info("Deleted work log id=%s", work_log.id)
