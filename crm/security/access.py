"""
Record access checks.

The storage layer (crm/db/filters.py) only narrows by department. This
module adds the remaining stages:

* ``check_access`` decides for one loaded record, ownership included.
* ``get_scoped_or_404`` separates "does not exist" from "exists but out of
  scope" for single-record operations.
* ``apply_ownership_filter`` layers the team/own owner condition on lists.
"""

from __future__ import annotations

import logging
from typing import Any, TypeVar

from sqlalchemy import ColumnElement, Select, false, or_, select
from sqlalchemy.orm import Session

from crm.db.filters import SKIP_SCOPE
from crm.errors import Forbidden, NotFound
from crm.security.context import AccessScope, ScopeContext
from crm.security.tenancy import scoped_model_for

logger = logging.getLogger(__name__)

T = TypeVar("T")


def check_access(record: Any, principal: Any, context: ScopeContext) -> bool:
    if not context.restricts_departments:
        return True

    entry = scoped_model_for(type(record))
    if entry is None:
        return True

    in_scope = bool(entry.marker.department_ids(record) & set(context.department_ids))
    if context.scope is AccessScope.DEPARTMENT:
        return in_scope

    if context.requires_ownership:
        if not entry.owner_attributes:
            return in_scope
        user_id = getattr(principal, "id", None)
        return in_scope and user_id is not None and user_id in entry.owner_ids(record)

    return False


def get_scoped_or_404(
    db: Session,
    model: type[T],
    record_id: int,
    principal: Any,
    context: ScopeContext,
    *,
    conceal: bool = False,
) -> T:
    """
    Load one record for a single-record operation.

    Missing id -> NotFound. Existing but out of scope -> Forbidden, or
    NotFound when ``conceal`` is set.
    """

    label = model.__name__
    record = db.execute(
        select(model).where(model.id == record_id).execution_options(**{SKIP_SCOPE: True})
    ).scalar_one_or_none()
    if record is None:
        raise NotFound(f"{label} not found")

    if not check_access(record, principal, context):
        logger.info(
            "Access denied model=%s id=%s user_id=%s scope=%s",
            label,
            record_id,
            context.user_id,
            context.scope.value,
        )
        if conceal:
            raise NotFound(f"{label} not found")
        raise Forbidden(f"You do not have access to this {label.lower()}")

    return record


def ownership_criteria(model: type, context: ScopeContext) -> list[ColumnElement[bool]]:
    if not context.requires_ownership:
        return []
    entry = scoped_model_for(model)
    if entry is None or not entry.owner_attributes:
        return []
    if context.user_id is None:
        return [false()]
    return [or_(*(getattr(model, attr) == context.user_id for attr in entry.owner_attributes))]


def apply_ownership_filter(stmt: Select, model: type, context: ScopeContext) -> Select:
    criteria = ownership_criteria(model, context)
    return stmt.where(*criteria) if criteria else stmt
