"""
Tests for record access checks (crm/security/access.py).

``check_access`` is exercised with transient ORM objects; ``get_scoped_or_404``
runs against db_session.
"""
from __future__ import annotations

from types import SimpleNamespace

import pytest
from sqlalchemy import select

from crm.errors import Forbidden, NotFound
from crm.models.crm import Lead, LeadNote, Status
from crm.models.security import Department, User
from crm.security.access import apply_ownership_filter, check_access, get_scoped_or_404, ownership_criteria
from crm.security.context import AccessScope, ScopeContext

SALES = Department(id=1, name="Sales")
SUPPORT = Department(id=2, name="Support")

ME = SimpleNamespace(id=10)


def ctx(scope: AccessScope, *departments: int) -> ScopeContext:
    return ScopeContext(scope, user_id=ME.id, department_ids=departments, home_department_ids=departments)


def lead(*departments: Department, created_by_id=None, assigned_to_id=None) -> Lead:
    return Lead(departments=list(departments), created_by_id=created_by_id, assigned_to_id=assigned_to_id)


@pytest.mark.parametrize("scope", [AccessScope.GLOBAL, AccessScope.ADMIN])
def test_broad_scopes_see_everything(scope):
    assert check_access(lead(SUPPORT, created_by_id=99), ME, ctx(scope))


def test_department_scope_checks_membership_only():
    assert check_access(lead(SALES, created_by_id=99), ME, ctx(AccessScope.DEPARTMENT, 1))
    assert not check_access(lead(SUPPORT, created_by_id=ME.id), ME, ctx(AccessScope.DEPARTMENT, 1))


def test_any_shared_department_is_enough():
    assert check_access(lead(SUPPORT, SALES), ME, ctx(AccessScope.DEPARTMENT, 1))


@pytest.mark.parametrize("scope", [AccessScope.TEAM, AccessScope.OWN])
def test_narrow_scopes_require_department_and_ownership(scope):
    assert check_access(lead(SALES, created_by_id=ME.id), ME, ctx(scope, 1))
    assert check_access(lead(SALES, assigned_to_id=ME.id), ME, ctx(scope, 1))
    assert not check_access(lead(SALES, created_by_id=99), ME, ctx(scope, 1))
    assert not check_access(lead(SUPPORT, created_by_id=ME.id), ME, ctx(scope, 1))


def test_shared_records_need_department_only():
    status = Status(name="New", associated_to="lead", departments=[SALES], created_by_id=99)

    assert check_access(status, ME, ctx(AccessScope.OWN, 1))
    assert not check_access(status, ME, ctx(AccessScope.OWN, 2))


def test_users_are_owned_by_themselves():
    me = User(id=ME.id, email="me@example.com", department_id=1)
    colleague = User(id=11, email="c@example.com", department_id=1)

    assert check_access(me, ME, ctx(AccessScope.OWN, 1))
    assert not check_access(colleague, ME, ctx(AccessScope.OWN, 1))
    assert check_access(colleague, ME, ctx(AccessScope.DEPARTMENT, 1))


def test_empty_department_ids_deny_everything_narrow():
    assert not check_access(lead(SALES, created_by_id=ME.id), ME, ctx(AccessScope.OWN))


def test_unscoped_models_are_always_accessible():
    assert check_access(LeadNote(note="hi"), ME, ctx(AccessScope.OWN))


def test_ownership_criteria_only_for_team_and_own():
    assert ownership_criteria(Lead, ctx(AccessScope.DEPARTMENT, 1)) == []
    assert ownership_criteria(Status, ctx(AccessScope.OWN, 1)) == []
    assert len(ownership_criteria(Lead, ctx(AccessScope.TEAM, 1))) == 1


def test_apply_ownership_filter_narrows_lists(org, db_session):
    other = Lead(first_name="Other", created_by_id=org.support_user.id, assigned_to_id=org.sales_user.id)
    other.departments = [org.sales]
    db_session.add(other)
    db_session.commit()

    context = ScopeContext(AccessScope.OWN, user_id=org.sales_user.id, department_ids=(org.sales.id,))
    stmt = apply_ownership_filter(select(Lead).order_by(Lead.id), Lead, context)

    rows = db_session.scalars(stmt).all()
    assert [row.id for row in rows] == [org.sales_lead.id, other.id]


class TestGetScopedOr404:
    def context(self, org) -> ScopeContext:
        return ScopeContext(AccessScope.OWN, user_id=org.sales_user.id, department_ids=(org.sales.id,))

    def test_returns_record_in_scope(self, org, use_scope):
        db = use_scope(self.context(org))

        record = get_scoped_or_404(db, Lead, org.sales_lead.id, org.sales_user, self.context(org))

        assert record.id == org.sales_lead.id

    def test_missing_record_is_not_found(self, org, use_scope):
        db = use_scope(self.context(org))

        with pytest.raises(NotFound):
            get_scoped_or_404(db, Lead, 4040, org.sales_user, self.context(org))

    def test_out_of_scope_record_is_forbidden(self, org, use_scope):
        db = use_scope(self.context(org))

        with pytest.raises(Forbidden):
            get_scoped_or_404(db, Lead, org.support_lead.id, org.sales_user, self.context(org))

    def test_conceal_reports_out_of_scope_as_not_found(self, org, use_scope):
        db = use_scope(self.context(org))

        with pytest.raises(NotFound):
            get_scoped_or_404(db, Lead, org.support_lead.id, org.sales_user, self.context(org), conceal=True)
