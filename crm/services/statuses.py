from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session

from crm.errors import InvalidRequest
from crm.models.crm import Status


def ensure_unique_status(db: Session, name: str, associated_to: str, exclude_id: int | None = None) -> None:
    """Status names are unique per kind within what the caller can see."""

    stmt = select(Status.id).where(Status.name == name, Status.associated_to == associated_to)
    if exclude_id is not None:
        stmt = stmt.where(Status.id != exclude_id)
    if db.execute(stmt).first() is not None:
        raise InvalidRequest(f'Status with name "{name}" already exists for {associated_to}')
