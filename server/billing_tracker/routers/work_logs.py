from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session

from billing_tracker.auth import require_roles
from billing_tracker.db import get_db
from billing_tracker.models import User
from billing_tracker.roles import STAFF_ROLES, WRITE_ROLES
from billing_tracker.routers.errors import http_error
from billing_tracker.timesheets import schemas
from billing_tracker.timesheets.service import (
    create_work_log,
    delete_work_log,
    get_work_log,
    list_work_logs,
    update_work_log,
)

router = APIRouter(prefix="/api/work-logs", tags=["work-logs"])


@router.get("", response_model=List[schemas.WorkLogResponse])
def get_work_logs(
    project_id: Optional[int] = None,
    client_id: Optional[int] = None,
    billable: Optional[bool] = None,
    unbilled_only: bool = False,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(*STAFF_ROLES)),
):
    return list_work_logs(
        db,
        current_user.id,
        project_id=project_id,
        client_id=client_id,
        billable=billable,
        unbilled_only=unbilled_only,
        start_date=start_date,
        end_date=end_date,
    )


@router.post("", response_model=schemas.WorkLogResponse, status_code=status.HTTP_201_CREATED)
def create_work_log_endpoint(
    payload: schemas.WorkLogCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(*WRITE_ROLES)),
):
    try:
        work_log = create_work_log(db, current_user.id, payload.model_dump())
    except ValueError as exc:
        raise http_error(exc)
    db.commit()
    db.refresh(work_log)
    return work_log


@router.get("/{work_log_id}", response_model=schemas.WorkLogResponse)
def get_work_log_endpoint(
    work_log_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(*STAFF_ROLES)),
):
    try:
        return get_work_log(db, work_log_id, tenant_id=current_user.id)
    except ValueError as exc:
        raise http_error(exc)


@router.put("/{work_log_id}", response_model=schemas.WorkLogResponse)
def update_work_log_endpoint(
    work_log_id: int,
    payload: schemas.WorkLogUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(*WRITE_ROLES)),
):
    try:
        work_log = get_work_log(db, work_log_id, tenant_id=current_user.id)
        work_log = update_work_log(db, work_log, payload.model_dump(exclude_unset=True))
    except ValueError as exc:
        raise http_error(exc)
    db.commit()
    db.refresh(work_log)
    return work_log


@router.delete("/{work_log_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_work_log_endpoint(
    work_log_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(*WRITE_ROLES)),
):
    try:
        work_log = get_work_log(db, work_log_id, tenant_id=current_user.id)
        delete_work_log(db, work_log)
    except ValueError as exc:
        raise http_error(exc)
    db.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)
