from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import event
from sqlalchemy.orm import ORMExecuteState, Session, with_loader_criteria
from sqlalchemy.sql import visitors
from sqlalchemy.sql.elements import ColumnClause

from crm.db.session import SCOPE_INFO_KEY
from crm.errors import ConfigurationError
from crm.security.context import ScopeContext
from crm.security.tenancy import ScopedModel, scoped_model_for, scoped_models

logger = logging.getLogger(__name__)

# Execution option for system lookups (existence checks, authentication).
SKIP_SCOPE = "skip_scope"


def _scope_of(session: Session) -> ScopeContext | None:
    return session.info.get(SCOPE_INFO_KEY)


def _constrains_tenancy(whereclause: Any, entry: ScopedModel) -> bool:
    """True when the WHERE clause already names one of the model's tenancy columns."""

    if whereclause is None:
        return False
    wanted = {(col.table.name, col.name) for col in entry.marker.tenancy_columns()}
    for element in visitors.iterate(whereclause):
        if not isinstance(element, ColumnClause):
            continue
        table = getattr(element, "table", None)
        if table is not None and (getattr(table, "name", None), element.name) in wanted:
            return True
    return False


@event.listens_for(Session, "do_orm_execute")
def _apply_scope_filters(execute_state: ORMExecuteState) -> None:
    """
    Transparent department scoping.

    Handler code stays unchanged:
        db.scalars(select(Lead)).all()
    returns only the leads whose departments intersect the request scope.
    Ownership narrowing for team/own scopes is layered on separately by
    ``crm.security.access.apply_ownership_filter``.
    """

    if execute_state.is_column_load:
        return
    if execute_state.execution_options.get(SKIP_SCOPE, False):
        return

    ctx = _scope_of(execute_state.session)
    if ctx is None or not ctx.restricts_departments:
        return

    stmt = execute_state.statement
    whereclause = getattr(stmt, "whereclause", None)

    if execute_state.is_select:
        options = []
        for entry in scoped_models():
            if _constrains_tenancy(whereclause, entry):
                logger.debug("Explicit tenancy filter on %s; injector skipped", entry.model.__name__)
                continue
            options.append(
                with_loader_criteria(
                    entry.model,
                    entry.marker.criteria(entry.model, ctx.department_ids),
                    include_aliases=True,
                )
            )
        if options:
            execute_state.statement = stmt.options(*options)
        return

    if execute_state.is_update or execute_state.is_delete:
        for mapper in execute_state.all_mappers:
            entry = scoped_model_for(mapper.class_)
            if entry is None or _constrains_tenancy(whereclause, entry):
                continue
            stmt = stmt.where(entry.marker.criteria(entry.model, ctx.department_ids))
            operation = "update" if execute_state.is_update else "delete"
            logger.debug("Scoped bulk %s on %s", operation, entry.model.__name__)
        execute_state.statement = stmt


@event.listens_for(Session, "before_flush")
def _guard_scoped_writes(session: Session, flush_context: Any, instances: Any) -> None:
    """
    Every scoped record must carry a tenancy marker.

    New records without one get the creator's home department. A record that
    still has none, or an update that empties it, is a caller bug.
    """

    ctx = _scope_of(session)

    for record in session.new:
        entry = scoped_model_for(type(record))
        if entry is None:
            continue
        if not entry.marker.department_ids(record) and ctx is not None and ctx.home_department_ids:
            entry.marker.assign(session, record, ctx.home_department_ids)
        if not entry.marker.department_ids(record):
            logger.error(
                "Scoped insert without tenancy marker model=%s user_id=%s",
                type(record).__name__,
                getattr(ctx, "user_id", None),
            )
            raise ConfigurationError(f"{type(record).__name__} cannot be created without a department")

    for record in session.dirty:
        entry = scoped_model_for(type(record))
        if entry is None or not session.is_modified(record):
            continue
        if not entry.marker.department_ids(record):
            logger.error(
                "Scoped update emptied tenancy marker model=%s id=%s",
                type(record).__name__,
                getattr(record, "id", None),
            )
            raise ConfigurationError(f"{type(record).__name__} must keep at least one department")
