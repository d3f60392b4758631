"""
Tenancy markers: which organizational unit a scoped record belongs to.

Two storage shapes exist for the same concept:

* ``DepartmentSetMarker`` - a many-to-many set of departments (leads, deals,
  tasks, statuses).
* ``DepartmentColumnMarker`` - a single department column (users).

The query filter injector and the record access checker only talk to the
marker interface, so both shapes are enforced by one code path. Models that
are never registered here (roles, departments) are scope-exempt.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
import logging
from typing import Any

from sqlalchemy import ColumnElement, inspect, select
from sqlalchemy.orm import Session

from crm.errors import Forbidden
from crm.security.context import ScopeContext

logger = logging.getLogger(__name__)


class TenancyMarker:
    """Strategy interface. One instance per scoped model."""

    def bind(self, model: type) -> None:
        raise NotImplementedError

    def criteria(self, model: type, department_ids: Iterable[int]) -> ColumnElement[bool]:
        """SQL expression: record belongs to at least one of ``department_ids``."""
        raise NotImplementedError

    def tenancy_columns(self) -> tuple[Any, ...]:
        """Columns whose presence in a WHERE clause counts as an explicit tenancy filter."""
        raise NotImplementedError

    def department_ids(self, record: Any) -> frozenset[int]:
        raise NotImplementedError

    def assign(self, session: Session, record: Any, department_ids: Iterable[int]) -> None:
        raise NotImplementedError


class DepartmentSetMarker(TenancyMarker):
    def __init__(self, attribute: str = "departments") -> None:
        self.attribute = attribute
        self._model: type | None = None
        self._resolved: tuple[Any, Any, type] | None = None

    def bind(self, model: type) -> None:
        self._model = model
        self._resolved = None

    def _relationship_parts(self) -> tuple[Any, Any, type]:
        # Resolved on first use: mappers are only configured once every model is imported.
        if self._resolved is None:
            rel = inspect(self._model).relationships[self.attribute]
            if rel.secondary is None:
                raise TypeError(f"{self._model.__name__}.{self.attribute} must be a many-to-many relationship")
            # synchronize_pairs: [(records.id, assoc.record_fk)]
            # secondary_synchronize_pairs: [(departments.id, assoc.department_fk)]
            self._resolved = (
                rel.synchronize_pairs[0][1],
                rel.secondary_synchronize_pairs[0][1],
                rel.mapper.class_,
            )
        return self._resolved

    def criteria(self, model: type, department_ids: Iterable[int]) -> ColumnElement[bool]:
        record_column, department_column, _target = self._relationship_parts()
        ids = sorted(set(department_ids))
        pk = inspect(model).primary_key[0]
        return pk.in_(select(record_column).where(department_column.in_(ids)))

    def tenancy_columns(self) -> tuple[Any, ...]:
        return (self._relationship_parts()[1],)

    def department_ids(self, record: Any) -> frozenset[int]:
        return frozenset(d.id for d in getattr(record, self.attribute) or [] if d.id is not None)

    def assign(self, session: Session, record: Any, department_ids: Iterable[int]) -> None:
        target = self._relationship_parts()[2]
        with session.no_autoflush:
            departments = [session.get(target, dept_id) for dept_id in department_ids]
        setattr(record, self.attribute, [d for d in departments if d is not None])


class DepartmentColumnMarker(TenancyMarker):
    def __init__(self, attribute: str = "department_id") -> None:
        self.attribute = attribute
        self._model: type | None = None

    def bind(self, model: type) -> None:
        self._model = model

    def criteria(self, model: type, department_ids: Iterable[int]) -> ColumnElement[bool]:
        return getattr(model, self.attribute).in_(sorted(set(department_ids)))

    def tenancy_columns(self) -> tuple[Any, ...]:
        return (inspect(self._model).columns[self.attribute],)

    def department_ids(self, record: Any) -> frozenset[int]:
        value = getattr(record, self.attribute)
        return frozenset() if value is None else frozenset({value})

    def assign(self, session: Session, record: Any, department_ids: Iterable[int]) -> None:
        ids = list(department_ids)
        setattr(record, self.attribute, ids[0] if ids else None)


@dataclass(frozen=True)
class ScopedModel:
    """
    Registry entry.

    ``owner_attributes`` names the columns compared against the caller's id
    for team/own access. An empty tuple marks shared records (statuses):
    department membership alone decides access.
    """

    model: type
    marker: TenancyMarker
    owner_attributes: tuple[str, ...]

    def owner_ids(self, record: Any) -> frozenset[int]:
        values = (getattr(record, attr, None) for attr in self.owner_attributes)
        return frozenset(v for v in values if v is not None)


_REGISTRY: dict[type, ScopedModel] = {}


def register_scoped_model(
    model: type,
    marker: TenancyMarker,
    owner_attributes: Iterable[str] = ("created_by_id", "assigned_to_id"),
) -> ScopedModel:
    marker.bind(model)
    entry = ScopedModel(model=model, marker=marker, owner_attributes=tuple(owner_attributes))
    _REGISTRY[model] = entry
    logger.debug("Registered scoped model %s marker=%s", model.__name__, type(marker).__name__)
    return entry


def scoped_model_for(model: type) -> ScopedModel | None:
    return _REGISTRY.get(model)


def scoped_models() -> tuple[ScopedModel, ...]:
    return tuple(_REGISTRY.values())


def resolve_requested_departments(context: ScopeContext, requested: Iterable[int] | None) -> tuple[int, ...] | None:
    """
    Validate client-supplied department ids for a write.

    Returns None when nothing was requested (the write guard then falls back
    to the creator's own department). Global/admin callers may target any
    department; narrower scopes only the departments in their context.
    """

    if requested is None:
        return None

    ids = tuple(dict.fromkeys(int(d) for d in requested))
    if not context.restricts_departments:
        return ids

    outside = [d for d in ids if d not in context.department_ids]
    if outside:
        logger.info(
            "Rejected out-of-scope department input user_id=%s scope=%s departments=%s",
            context.user_id,
            context.scope.value,
            outside,
        )
        raise Forbidden(f"Cannot assign records to departments outside your scope: {outside}")
    return ids
