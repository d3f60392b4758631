from __future__ import annotations

from collections.abc import Iterable
import logging
from typing import Any

from sqlalchemy import ColumnElement, or_, select
from sqlalchemy.orm import Session

from crm.db.base import utcnow
from crm.errors import InvalidRequest
from crm.models.crm import Lead, LeadNote, Status
from crm.security.context import ScopeContext
from crm.services.records import create_record, update_record

logger = logging.getLogger(__name__)

CONVERTED_STATUS = "converted"


def lead_filters(
    search: str | None = None,
    status_id: int | None = None,
    source: str | None = None,
    assigned_to_id: int | None = None,
    is_converted: bool | None = None,
) -> list[ColumnElement[bool]]:
    criteria: list[ColumnElement[bool]] = []
    if search:
        pattern = f"%{search}%"
        criteria.append(
            or_(
                Lead.first_name.ilike(pattern),
                Lead.last_name.ilike(pattern),
                Lead.company.ilike(pattern),
                Lead.email.ilike(pattern),
            )
        )
    if status_id is not None:
        criteria.append(Lead.status_id == status_id)
    if source:
        criteria.append(Lead.source == source)
    if assigned_to_id is not None:
        criteria.append(Lead.assigned_to_id == assigned_to_id)
    if is_converted is not None:
        criteria.append(Lead.is_converted.is_(is_converted))
    return criteria


def visible_status(db: Session, status_id: int | None, associated_to: str) -> Status | None:
    """A status reference must point at a status of the right kind the caller can see."""

    if status_id is None:
        return None
    status = db.scalars(select(Status).where(Status.id == status_id)).first()
    if status is None or status.associated_to != associated_to:
        raise InvalidRequest(f"Unknown {associated_to} status: {status_id}")
    return status


def _is_converted_status(status: Status | None) -> bool:
    return status is not None and status.name.strip().lower() == CONVERTED_STATUS


def _apply_conversion(db: Session, lead: Lead | None, data: dict[str, Any]) -> None:
    """
    Keep ``is_converted``/``converted_at`` consistent.

    Moving to the "Converted" status converts the lead; moving away from it
    reverts the conversion. An explicit ``is_converted`` wins over both.
    """

    if "status_id" in data:
        new_status = visible_status(db, data["status_id"], "lead")
        current = db.get(Status, lead.status_id) if lead is not None and lead.status_id else None
        if _is_converted_status(new_status):
            data.setdefault("is_converted", True)
        elif _is_converted_status(current):
            data.setdefault("is_converted", False)

    if "is_converted" in data:
        already = bool(lead and lead.is_converted)
        if data["is_converted"] and not already:
            data["converted_at"] = utcnow()
        elif not data["is_converted"]:
            data["converted_at"] = None


def create_lead(
    db: Session,
    data: dict[str, Any],
    principal: Any,
    context: ScopeContext,
    department_ids: Iterable[int] | None = None,
) -> Lead:
    _apply_conversion(db, None, data)
    return create_record(db, Lead, data, principal, context, department_ids)


def update_lead(
    db: Session,
    lead: Lead,
    data: dict[str, Any],
    principal: Any,
    context: ScopeContext,
    department_ids: Iterable[int] | None = None,
) -> Lead:
    _apply_conversion(db, lead, data)
    return update_record(db, lead, data, principal, context, department_ids)


def add_note(db: Session, lead: Lead, note: str, principal: Any) -> Lead:
    lead.notes.append(LeadNote(note=note, created_by_id=principal.id))
    lead.updated_by_id = principal.id
    db.commit()
    logger.info("Note added lead_id=%s user_id=%s", lead.id, principal.id)
    return lead
