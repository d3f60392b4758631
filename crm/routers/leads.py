from __future__ import annotations

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from crm.db.session import get_db
from crm.models.crm import Lead
from crm.models.security import User
from crm.schemas.crm import LeadCreate, LeadNoteIn, LeadOut, LeadUpdate, Page
from crm.security.context import ScopeContext
from crm.security.dependencies import get_current_user, get_scope_context
from crm.services import leads as lead_service
from crm.services import records

router = APIRouter(prefix="/leads", tags=["leads"])


@router.get("", response_model=Page[LeadOut])
def list_leads(
    search: str | None = None,
    status_id: int | None = None,
    source: str | None = None,
    assigned_to_id: int | None = None,
    is_converted: bool | None = None,
    page: int = Query(1, ge=1),
    limit: int | None = Query(None, ge=1),
    sort_by: str | None = Query(None, alias="sortBy"),
    context: ScopeContext = Depends(get_scope_context),
    db: Session = Depends(get_db),
) -> dict:
    # Department scoping comes from crm/db/filters.py; only explicit filters are added here.
    criteria = lead_service.lead_filters(search, status_id, source, assigned_to_id, is_converted)
    return records.list_records(db, Lead, context, criteria, page=page, limit=limit, sort_by=sort_by)


@router.post("", response_model=LeadOut, status_code=status.HTTP_201_CREATED)
def create_lead(
    payload: LeadCreate,
    user: User = Depends(get_current_user),
    context: ScopeContext = Depends(get_scope_context),
    db: Session = Depends(get_db),
) -> Lead:
    data = payload.model_dump(exclude={"department_ids"})
    return lead_service.create_lead(db, data, user, context, payload.department_ids)


@router.get("/{lead_id}", response_model=LeadOut)
def get_lead(
    lead_id: int,
    user: User = Depends(get_current_user),
    context: ScopeContext = Depends(get_scope_context),
    db: Session = Depends(get_db),
) -> Lead:
    return records.get_record(db, Lead, lead_id, user, context)


@router.patch("/{lead_id}", response_model=LeadOut)
def update_lead(
    lead_id: int,
    payload: LeadUpdate,
    user: User = Depends(get_current_user),
    context: ScopeContext = Depends(get_scope_context),
    db: Session = Depends(get_db),
) -> Lead:
    lead = records.get_mutable_record(db, Lead, lead_id, user, context)
    data = payload.model_dump(exclude_unset=True, exclude={"department_ids"})
    return lead_service.update_lead(db, lead, data, user, context, payload.department_ids)


@router.delete("/{lead_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_lead(
    lead_id: int,
    user: User = Depends(get_current_user),
    context: ScopeContext = Depends(get_scope_context),
    db: Session = Depends(get_db),
) -> None:
    lead = records.get_mutable_record(db, Lead, lead_id, user, context)
    records.delete_record(db, lead, user)


@router.post("/{lead_id}/notes", response_model=LeadOut, status_code=status.HTTP_201_CREATED)
def add_note(
    lead_id: int,
    payload: LeadNoteIn,
    user: User = Depends(get_current_user),
    context: ScopeContext = Depends(get_scope_context),
    db: Session = Depends(get_db),
) -> Lead:
    lead = records.get_mutable_record(db, Lead, lead_id, user, context)
    return lead_service.add_note(db, lead, payload.note, user)
