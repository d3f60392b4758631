"""
Generic create/read/update/delete for scoped records.

Handlers never filter by department themselves: the session's scope
filters narrow every read, ``get_scoped_or_404`` re-checks single records
and the flush guard refuses records without departments. What remains here
is the bookkeeping every scoped record shares (owner stamps, requested
departments, ownership narrowing for list endpoints).
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
import logging
from typing import Any, TypeVar

from sqlalchemy import ColumnElement, inspect
from sqlalchemy.orm import Session

from crm.db.pagination import paginate
from crm.errors import InvalidRequest
from crm.security.access import get_scoped_or_404, ownership_criteria
from crm.security.context import ScopeContext
from crm.security.tenancy import resolve_requested_departments, scoped_model_for
from crm.services.departments import ensure_departments_exist
from crm.settings import get_settings

logger = logging.getLogger(__name__)

T = TypeVar("T")


def list_records(
    db: Session,
    model: type,
    context: ScopeContext,
    criteria: Sequence[ColumnElement[bool]] = (),
    *,
    page: int = 1,
    limit: int | None = None,
    sort_by: str | None = None,
) -> dict[str, Any]:
    return paginate(
        db,
        model,
        [*criteria, *ownership_criteria(model, context)],
        page=page,
        limit=limit or get_settings().default_page_limit,
        sort_by=sort_by,
    )


def get_record(db: Session, model: type[T], record_id: int, principal: Any, context: ScopeContext) -> T:
    return get_scoped_or_404(
        db,
        model,
        record_id,
        principal,
        context,
        conceal=get_settings().conceal_forbidden_records,
    )


def get_mutable_record(db: Session, model: type[T], record_id: int, principal: Any, context: ScopeContext) -> T:
    """Updates and deletes always report an out-of-scope record as Forbidden."""
    return get_scoped_or_404(db, model, record_id, principal, context)


def assign_departments(db: Session, record: Any, context: ScopeContext, department_ids: Iterable[int] | None) -> None:
    """
    Apply client-supplied departments to a scoped record.

    ``None`` leaves the record as is (new records then fall back to the
    creator's department at flush time). An explicit empty list is rejected.
    """

    ids = resolve_requested_departments(context, department_ids)
    if ids is None:
        return
    if not ids:
        raise InvalidRequest("At least one department is required")
    ensure_departments_exist(db, ids)
    scoped_model_for(type(record)).marker.assign(db, record, ids)


def create_record(
    db: Session,
    model: type[T],
    data: dict[str, Any],
    principal: Any,
    context: ScopeContext,
    department_ids: Iterable[int] | None = None,
) -> T:
    record = model(**data)
    if hasattr(record, "created_by_id"):
        record.created_by_id = principal.id
    assign_departments(db, record, context, department_ids)
    db.add(record)
    db.commit()
    logger.info("%s created id=%s user_id=%s", model.__name__, record.id, principal.id)
    return record


def update_record(
    db: Session,
    record: T,
    data: dict[str, Any],
    principal: Any,
    context: ScopeContext,
    department_ids: Iterable[int] | None = None,
) -> T:
    columns = inspect(type(record)).columns
    for key, value in data.items():
        if value is None and key in columns and not columns[key].nullable:
            raise InvalidRequest(f"{key} cannot be null")
        setattr(record, key, value)
    if hasattr(record, "updated_by_id"):
        record.updated_by_id = principal.id
    assign_departments(db, record, context, department_ids)
    db.commit()
    logger.info("%s updated id=%s user_id=%s", type(record).__name__, record.id, principal.id)
    return record


def delete_record(db: Session, record: Any, principal: Any) -> None:
    db.delete(record)
    db.commit()
    logger.info("%s deleted id=%s user_id=%s", type(record).__name__, record.id, principal.id)
