from typing import List, Optional

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session

from billing_tracker.auth import require_roles
from billing_tracker.db import get_db
from billing_tracker.invoicing.service import get_client_invoice_stats, recompute_client_balance
from billing_tracker.models import User
from billing_tracker.roles import STAFF_ROLES, WRITE_ROLES
from billing_tracker.routers.errors import http_error
from billing_tracker.timesheets import schemas
from billing_tracker.timesheets.service import (
    create_client,
    create_project,
    delete_client,
    delete_project,
    get_client,
    get_project,
    get_project_summary,
    list_clients,
    list_projects,
    update_client,
    update_project,
)

router = APIRouter(prefix="/api", tags=["clients"])


@router.get("/clients", response_model=List[schemas.ClientResponse])
def get_clients(db: Session = Depends(get_db), current_user: User = Depends(require_roles(*STAFF_ROLES))):
    return list_clients(db, current_user.id)


@router.post("/clients", response_model=schemas.ClientResponse, status_code=status.HTTP_201_CREATED)
def create_client_endpoint(
    payload: schemas.ClientCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(*WRITE_ROLES)),
):
    try:
        client = create_client(db, current_user.id, payload.model_dump())
    except ValueError as exc:
        raise http_error(exc)
    db.commit()
    db.refresh(client)
    return client


@router.get("/clients/{client_id}", response_model=schemas.ClientResponse)
def get_client_endpoint(
    client_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(*STAFF_ROLES)),
):
    try:
        return get_client(db, client_id, tenant_id=current_user.id)
    except ValueError as exc:
        raise http_error(exc)


@router.put("/clients/{client_id}", response_model=schemas.ClientResponse)
def update_client_endpoint(
    client_id: int,
    payload: schemas.ClientUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(*WRITE_ROLES)),
):
    try:
        client = get_client(db, client_id, tenant_id=current_user.id)
        client = update_client(db, client, payload.model_dump(exclude_unset=True))
    except ValueError as exc:
        raise http_error(exc)
    db.commit()
    db.refresh(client)
    return client


@router.delete("/clients/{client_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_client_endpoint(
    client_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(*WRITE_ROLES)),
):
    try:
        client = get_client(db, client_id, tenant_id=current_user.id)
        delete_client(db, client)
    except ValueError as exc:
        raise http_error(exc)
    db.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/clients/{client_id}/invoice-stats", response_model=schemas.ClientInvoiceStats)
def get_client_invoice_stats_endpoint(
    client_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(*STAFF_ROLES)),
):
    try:
        get_client(db, client_id, tenant_id=current_user.id)
    except ValueError as exc:
        raise http_error(exc)
    return get_client_invoice_stats(db, client_id)


@router.post("/clients/{client_id}/recalculate-balance", response_model=schemas.ClientBalanceResponse)
def recalculate_client_balance(
    client_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(*WRITE_ROLES)),
):
    try:
        client = get_client(db, client_id, tenant_id=current_user.id)
        recompute_client_balance(db, client.id)
    except ValueError as exc:
        raise http_error(exc)
    db.commit()
    db.refresh(client)
    return {
        "client_id": client.id,
        "outstanding_balance": client.outstanding_balance,
        "total_billed": client.total_billed,
    }


@router.get("/projects", response_model=List[schemas.ProjectResponse])
def get_projects(
    client_id: Optional[int] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(*STAFF_ROLES)),
):
    return list_projects(db, current_user.id, client_id)


@router.post("/projects", response_model=schemas.ProjectResponse, status_code=status.HTTP_201_CREATED)
def create_project_endpoint(
    payload: schemas.ProjectCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(*WRITE_ROLES)),
):
    try:
        project = create_project(db, current_user.id, payload.model_dump())
    except ValueError as exc:
        raise http_error(exc)
    db.commit()
    db.refresh(project)
    return project


@router.get("/projects/{project_id}", response_model=schemas.ProjectResponse)
def get_project_endpoint(
    project_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(*STAFF_ROLES)),
):
    try:
        return get_project(db, project_id, tenant_id=current_user.id)
    except ValueError as exc:
        raise http_error(exc)


@router.get("/projects/{project_id}/summary", response_model=schemas.ProjectSummary)
def get_project_summary_endpoint(
    project_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(*STAFF_ROLES)),
):
    try:
        project = get_project(db, project_id, tenant_id=current_user.id)
    except ValueError as exc:
        raise http_error(exc)
    return get_project_summary(db, project)


@router.put("/projects/{project_id}", response_model=schemas.ProjectResponse)
def update_project_endpoint(
    project_id: int,
    payload: schemas.ProjectUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(*WRITE_ROLES)),
):
    try:
        project = get_project(db, project_id, tenant_id=current_user.id)
        project = update_project(db, project, payload.model_dump(exclude_unset=True))
    except ValueError as exc:
        raise http_error(exc)
    db.commit()
    db.refresh(project)
    return project


@router.delete("/projects/{project_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_project_endpoint(
    project_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(*WRITE_ROLES)),
):
    try:
        project = get_project(db, project_id, tenant_id=current_user.id)
        delete_project(db, project)
    except ValueError as exc:
        raise http_error(exc)
    db.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)
