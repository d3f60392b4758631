from __future__ import annotations

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from crm.db.session import get_db
from crm.models.crm import Status
from crm.models.security import User
from crm.schemas.crm import Page, StatusCreate, StatusKind, StatusOut, StatusUpdate
from crm.security.context import ScopeContext
from crm.security.dependencies import get_current_user, get_scope_context
from crm.services import records
from crm.services.statuses import ensure_unique_status

router = APIRouter(prefix="/statuses", tags=["statuses"])


@router.get("", response_model=Page[StatusOut])
def list_statuses(
    associated_to: StatusKind | None = Query(None, alias="associatedTo"),
    page: int = Query(1, ge=1),
    limit: int | None = Query(None, ge=1),
    sort_by: str | None = Query(None, alias="sortBy"),
    context: ScopeContext = Depends(get_scope_context),
    db: Session = Depends(get_db),
) -> dict:
    criteria = [Status.associated_to == associated_to] if associated_to else []
    return records.list_records(db, Status, context, criteria, page=page, limit=limit, sort_by=sort_by)


@router.post("", response_model=StatusOut, status_code=status.HTTP_201_CREATED)
def create_status(
    payload: StatusCreate,
    user: User = Depends(get_current_user),
    context: ScopeContext = Depends(get_scope_context),
    db: Session = Depends(get_db),
) -> Status:
    ensure_unique_status(db, payload.name, payload.associated_to)
    data = payload.model_dump(exclude={"department_ids"})
    return records.create_record(db, Status, data, user, context, payload.department_ids)


@router.get("/{status_id}", response_model=StatusOut)
def get_status(
    status_id: int,
    user: User = Depends(get_current_user),
    context: ScopeContext = Depends(get_scope_context),
    db: Session = Depends(get_db),
) -> Status:
    return records.get_record(db, Status, status_id, user, context)


@router.patch("/{status_id}", response_model=StatusOut)
def update_status(
    status_id: int,
    payload: StatusUpdate,
    user: User = Depends(get_current_user),
    context: ScopeContext = Depends(get_scope_context),
    db: Session = Depends(get_db),
) -> Status:
    record = records.get_mutable_record(db, Status, status_id, user, context)
    data = payload.model_dump(exclude_unset=True, exclude={"department_ids"})
    if data.get("name") and data["name"] != record.name:
        ensure_unique_status(db, data["name"], record.associated_to, exclude_id=record.id)
    return records.update_record(db, record, data, user, context, payload.department_ids)


@router.delete("/{status_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_status(
    status_id: int,
    user: User = Depends(get_current_user),
    context: ScopeContext = Depends(get_scope_context),
    db: Session = Depends(get_db),
) -> None:
    record = records.get_mutable_record(db, Status, status_id, user, context)
    records.delete_record(db, record, user)
