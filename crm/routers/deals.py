from __future__ import annotations

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import or_
from sqlalchemy.orm import Session

from crm.db.session import get_db
from crm.models.crm import Deal
from crm.models.security import User
from crm.schemas.crm import DealCreate, DealOut, DealUpdate, Page
from crm.security.context import ScopeContext
from crm.security.dependencies import get_current_user, get_scope_context
from crm.services import records
from crm.services.pipeline import check_deal_references

router = APIRouter(prefix="/deals", tags=["deals"])


@router.get("", response_model=Page[DealOut])
def list_deals(
    search: str | None = None,
    status_id: int | None = None,
    lead_id: int | None = None,
    assigned_to_id: int | None = None,
    page: int = Query(1, ge=1),
    limit: int | None = Query(None, ge=1),
    sort_by: str | None = Query(None, alias="sortBy"),
    context: ScopeContext = Depends(get_scope_context),
    db: Session = Depends(get_db),
) -> dict:
    criteria = []
    if search:
        criteria.append(or_(Deal.name.ilike(f"%{search}%"), Deal.description.ilike(f"%{search}%")))
    if status_id is not None:
        criteria.append(Deal.status_id == status_id)
    if lead_id is not None:
        criteria.append(Deal.lead_id == lead_id)
    if assigned_to_id is not None:
        criteria.append(Deal.assigned_to_id == assigned_to_id)
    return records.list_records(db, Deal, context, criteria, page=page, limit=limit, sort_by=sort_by)


@router.post("", response_model=DealOut, status_code=status.HTTP_201_CREATED)
def create_deal(
    payload: DealCreate,
    user: User = Depends(get_current_user),
    context: ScopeContext = Depends(get_scope_context),
    db: Session = Depends(get_db),
) -> Deal:
    data = payload.model_dump(exclude={"department_ids"})
    check_deal_references(db, data)
    return records.create_record(db, Deal, data, user, context, payload.department_ids)


@router.get("/{deal_id}", response_model=DealOut)
def get_deal(
    deal_id: int,
    user: User = Depends(get_current_user),
    context: ScopeContext = Depends(get_scope_context),
    db: Session = Depends(get_db),
) -> Deal:
    return records.get_record(db, Deal, deal_id, user, context)


@router.patch("/{deal_id}", response_model=DealOut)
def update_deal(
    deal_id: int,
    payload: DealUpdate,
    user: User = Depends(get_current_user),
    context: ScopeContext = Depends(get_scope_context),
    db: Session = Depends(get_db),
) -> Deal:
    deal = records.get_mutable_record(db, Deal, deal_id, user, context)
    data = payload.model_dump(exclude_unset=True, exclude={"department_ids"})
    check_deal_references(db, data)
    return records.update_record(db, deal, data, user, context, payload.department_ids)


@router.delete("/{deal_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_deal(
    deal_id: int,
    user: User = Depends(get_current_user),
    context: ScopeContext = Depends(get_scope_context),
    db: Session = Depends(get_db),
) -> None:
    deal = records.get_mutable_record(db, Deal, deal_id, user, context)
    records.delete_record(db, deal, user)
