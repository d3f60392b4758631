"""
Tests for the query filter injector (crm/db/filters.py).

Handler-style queries are run against a session carrying a ScopeContext and
must only see rows in the context's departments.
"""
from __future__ import annotations

from sqlalchemy import delete, func, select, update

from crm.db.filters import SKIP_SCOPE
from crm.models.crm import Lead
from crm.models.security import Role, User
from crm.security.context import AccessScope, ScopeContext


def sales_scope(org, scope: AccessScope = AccessScope.DEPARTMENT) -> ScopeContext:
    return ScopeContext(
        scope=scope,
        user_id=org.sales_user.id,
        department_ids=(org.sales.id,),
        home_department_ids=(org.sales.id,),
    )


def test_select_returns_only_rows_in_scope_departments(org, use_scope):
    db = use_scope(sales_scope(org))

    leads = db.scalars(select(Lead)).all()

    assert [lead.company for lead in leads] == ["Acme"]


def test_count_is_narrowed_like_the_rows(org, use_scope):
    db = use_scope(sales_scope(org))

    assert db.scalar(select(func.count()).select_from(Lead)) == 1
    assert db.scalar(select(func.count()).select_from(User)) == 1


def test_single_department_column_model_is_narrowed(org, use_scope):
    db = use_scope(sales_scope(org, AccessScope.OWN))

    emails = db.scalars(select(User.email)).all()

    assert emails == ["sam@example.com"]


def test_empty_department_ids_match_nothing(org, use_scope):
    db = use_scope(ScopeContext(AccessScope.OWN, user_id=org.sales_user.id))

    assert db.scalars(select(Lead)).all() == []
    assert db.scalar(select(func.count()).select_from(Lead)) == 0


def test_global_and_admin_scopes_are_unfiltered(org, use_scope):
    for scope in (AccessScope.GLOBAL, AccessScope.ADMIN):
        db = use_scope(ScopeContext(scope, user_id=org.sales_user.id))

        assert db.scalar(select(func.count()).select_from(Lead)) == 2


def test_session_without_scope_is_unfiltered(db_session, org):
    assert db_session.scalar(select(func.count()).select_from(Lead)) == 2


def test_skip_scope_option_bypasses_the_filter(org, use_scope):
    db = use_scope(sales_scope(org))

    stmt = select(Lead).execution_options(**{SKIP_SCOPE: True})

    assert {lead.company for lead in db.scalars(stmt).all()} == {"Acme", "Globex"}


def test_explicit_tenancy_filter_is_trusted(org, use_scope):
    db = use_scope(sales_scope(org))

    users = db.scalars(select(User).where(User.department_id == org.support.id)).all()

    assert [u.email for u in users] == ["sue@example.com"]


def test_unscoped_models_are_never_filtered(org, use_scope):
    db = use_scope(ScopeContext(AccessScope.OWN, user_id=org.sales_user.id))

    names = set(db.scalars(select(Role.name)).all())

    assert {"SuperAdmin", "Admin", "TeamManager", "SalesManager", "User"} <= names


def test_bulk_update_only_touches_scoped_rows(org, use_scope):
    db = use_scope(sales_scope(org))

    db.execute(update(Lead).values(company="Renamed").execution_options(synchronize_session=False))
    db.commit()

    rows = db.execute(select(Lead.id, Lead.company).execution_options(**{SKIP_SCOPE: True})).all()
    companies = dict(rows)
    assert companies[org.sales_lead.id] == "Renamed"
    assert companies[org.support_lead.id] == "Globex"


def test_bulk_delete_only_touches_scoped_rows(org, use_scope):
    db = use_scope(sales_scope(org))

    db.execute(delete(Lead).execution_options(synchronize_session=False))
    db.commit()

    remaining = db.scalars(select(Lead.id).execution_options(**{SKIP_SCOPE: True})).all()
    assert remaining == [org.support_lead.id]
