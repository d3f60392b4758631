from __future__ import annotations

from typing import Literal

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from crm.db.session import get_db
from crm.schemas.crm import CountOut, DashboardOut, TopPerformerOut, ValueOut
from crm.security.context import ScopeContext
from crm.security.decorators import require_permissions
from crm.security.dependencies import get_effective_role, get_scope_context
from crm.security.permissions import Permission
from crm.security.roles import EffectiveRole
from crm.services import analytics

router = APIRouter(prefix="/analytics", tags=["analytics"])


@router.get("/dashboard", response_model=DashboardOut)
@require_permissions([Permission.CAN_VIEW_LEADS, Permission.CAN_VIEW_DEALS])
def dashboard(
    effective: EffectiveRole = Depends(get_effective_role),
    context: ScopeContext = Depends(get_scope_context),
    db: Session = Depends(get_db),
) -> dict:
    return analytics.dashboard(db, effective, context)


@router.get("/leads/total", response_model=CountOut)
@require_permissions([Permission.CAN_VIEW_LEADS])
def leads_total(context: ScopeContext = Depends(get_scope_context), db: Session = Depends(get_db)) -> dict:
    return {"count": analytics.total_leads(db, context)}


@router.get("/leads/new-week", response_model=CountOut)
@require_permissions([Permission.CAN_VIEW_LEADS])
def leads_new_this_week(context: ScopeContext = Depends(get_scope_context), db: Session = Depends(get_db)) -> dict:
    return {"count": analytics.new_leads_this_week(db, context)}


@router.get("/deals/total", response_model=CountOut)
@require_permissions([Permission.CAN_VIEW_DEALS])
def deals_total(context: ScopeContext = Depends(get_scope_context), db: Session = Depends(get_db)) -> dict:
    return {"count": analytics.total_deals(db, context)}


@router.get("/deals/closed-won", response_model=CountOut)
@require_permissions([Permission.CAN_VIEW_DEALS])
def deals_closed_won(context: ScopeContext = Depends(get_scope_context), db: Session = Depends(get_db)) -> dict:
    return {"count": analytics.closed_won_deals(db, context)}


@router.get("/deals/total-value", response_model=ValueOut)
@require_permissions([Permission.CAN_VIEW_DEALS])
def deals_total_value(context: ScopeContext = Depends(get_scope_context), db: Session = Depends(get_db)) -> dict:
    return {"total_value": analytics.total_deal_value(db, context)}


@router.get("/users/top-performers", response_model=list[TopPerformerOut])
@require_permissions([Permission.CAN_VIEW_DEALS])
def top_performers(
    period: Literal["monthly", "quarterly", "yearly"] = "monthly",
    context: ScopeContext = Depends(get_scope_context),
    db: Session = Depends(get_db),
) -> list[dict]:
    return analytics.top_performers(db, context, period)
