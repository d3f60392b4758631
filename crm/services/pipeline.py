"""Deal and task helpers: reference checks and date-based task views."""

from __future__ import annotations

from datetime import date
from typing import Any

from sqlalchemy import ColumnElement, select
from sqlalchemy.orm import Session

from crm.errors import InvalidRequest
from crm.models.crm import Deal, Lead, Task
from crm.services.leads import visible_status

TASK_STATUSES = ("todo", "done")
TASK_PRIORITIES = ("low", "medium", "high")


def _ensure_visible(db: Session, model: type, record_id: int | None) -> None:
    if record_id is None:
        return
    if db.execute(select(model.id).where(model.id == record_id)).first() is None:
        raise InvalidRequest(f"Unknown {model.__name__.lower()}: {record_id}")


def check_deal_references(db: Session, data: dict[str, Any]) -> None:
    if "lead_id" in data:
        if data["lead_id"] is None:
            raise InvalidRequest("A deal requires a lead")
        _ensure_visible(db, Lead, data["lead_id"])
    if data.get("status_id") is not None:
        visible_status(db, data["status_id"], "deal")


def check_task_references(db: Session, data: dict[str, Any]) -> None:
    _ensure_visible(db, Lead, data.get("lead_id"))
    _ensure_visible(db, Deal, data.get("deal_id"))


def due_today_filter(today: date | None = None) -> list[ColumnElement[bool]]:
    return [Task.due_date == (today or date.today())]


def overdue_filter(today: date | None = None) -> list[ColumnElement[bool]]:
    return [Task.status == "todo", Task.due_date < (today or date.today())]
