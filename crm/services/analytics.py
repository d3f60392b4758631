"""
Dashboard counters.

Every query selects from the scoped models directly, so the session's scope
filters narrow them exactly like list endpoints; ownership narrowing for
team/own callers is added from ``ownership_criteria``.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any

from sqlalchemy import desc, func, select
from sqlalchemy.orm import Session

from crm.db.base import utcnow
from crm.models.crm import Deal, Lead, Status
from crm.models.security import User
from crm.security.access import ownership_criteria
from crm.security.context import ScopeContext
from crm.security.roles import EffectiveRole

TOP_PERFORMER_ROLES = frozenset({"SuperAdmin", "Admin", "TeamManager", "SalesManager"})
CLOSED_WON_NAMES = ("closed won", "closed-won", "closedwon")

PERIOD_DAYS = {"monthly": 30, "quarterly": 90, "yearly": 365}


def _count(db: Session, model: type, context: ScopeContext, *criteria: Any) -> int:
    stmt = select(func.count()).select_from(model).where(*criteria, *ownership_criteria(model, context))
    return db.scalar(stmt) or 0


def total_leads(db: Session, context: ScopeContext) -> int:
    return _count(db, Lead, context)


def new_leads_this_week(db: Session, context: ScopeContext, now: datetime | None = None) -> int:
    since = (now or utcnow()) - timedelta(days=7)
    return _count(db, Lead, context, Lead.created_at >= since)


def total_deals(db: Session, context: ScopeContext) -> int:
    return _count(db, Deal, context)


def closed_won_deals(db: Session, context: ScopeContext) -> int:
    status_ids = select(Status.id).where(
        Status.associated_to == "deal",
        func.lower(Status.name).in_(CLOSED_WON_NAMES),
    )
    return _count(db, Deal, context, Deal.status_id.in_(status_ids))


def total_deal_value(db: Session, context: ScopeContext) -> float:
    stmt = select(func.coalesce(func.sum(Deal.amount), 0)).where(*ownership_criteria(Deal, context))
    return float(db.scalar(stmt) or 0)


def top_performers(
    db: Session,
    context: ScopeContext,
    period: str = "monthly",
    now: datetime | None = None,
    limit: int = 5,
) -> list[dict[str, Any]]:
    """Deal creators ranked by total deal amount over the period."""

    criteria = [*ownership_criteria(Deal, context)]
    days = PERIOD_DAYS.get(period)
    if days is not None:
        criteria.append(Deal.created_at >= (now or utcnow()) - timedelta(days=days))

    total = func.sum(Deal.amount).label("total_amount")
    stmt = (
        select(Deal.created_by_id, User.name, User.email, total, func.count(Deal.id).label("deal_count"))
        .join(User, User.id == Deal.created_by_id)
        .where(*criteria)
        .group_by(Deal.created_by_id, User.name, User.email)
        .order_by(desc(total))
        .limit(limit)
    )
    return [
        {
            "user_id": row.created_by_id,
            "user_name": row.name,
            "user_email": row.email,
            "total_amount": float(row.total_amount or 0),
            "deal_count": row.deal_count,
        }
        for row in db.execute(stmt)
    ]


def dashboard(db: Session, effective: EffectiveRole, context: ScopeContext) -> dict[str, Any]:
    result: dict[str, Any] = {
        "total_leads": total_leads(db, context),
        "new_leads_this_week": new_leads_this_week(db, context),
        "total_deals": total_deals(db, context),
        "closed_won_deals": closed_won_deals(db, context),
        "total_deal_value": total_deal_value(db, context),
        "top_performers": None,
    }
    if effective.primary_role_name in TOP_PERFORMER_ROLES:
        result["top_performers"] = {period: top_performers(db, context, period) for period in PERIOD_DAYS}
    return result
