"""
Tests for the before_flush guard: scoped records always carry a department.
"""
from __future__ import annotations

import pytest

from crm.errors import ConfigurationError
from crm.models.crm import Lead, Task
from crm.models.security import User
from crm.security.context import AccessScope, ScopeContext


def own_scope(org, home: tuple[int, ...]) -> ScopeContext:
    return ScopeContext(
        AccessScope.OWN,
        user_id=org.sales_user.id,
        department_ids=home,
        home_department_ids=home,
    )


def test_new_record_without_departments_gets_home_department(org, use_scope):
    db = use_scope(own_scope(org, (org.sales.id,)))

    lead = Lead(first_name="Grace", company="Initech", created_by_id=org.sales_user.id)
    db.add(lead)
    db.commit()

    assert lead.department_ids == [org.sales.id]


def test_explicit_departments_are_kept(org, use_scope):
    db = use_scope(ScopeContext(AccessScope.GLOBAL, user_id=org.sales_user.id, home_department_ids=(org.sales.id,)))

    task = Task(name="Follow up", created_by_id=org.sales_user.id)
    task.departments = [org.support]
    db.add(task)
    db.commit()

    assert task.department_ids == [org.support.id]


def test_new_user_without_department_gets_home_department(org, use_scope):
    db = use_scope(own_scope(org, (org.sales.id,)))

    user = User(name="Nia", email="nia@example.com")
    db.add(user)
    db.commit()

    assert user.department_id == org.sales.id


def test_insert_without_any_department_is_a_configuration_error(org, use_scope):
    db = use_scope(own_scope(org, ()))

    db.add(Lead(first_name="Orphan", created_by_id=org.sales_user.id))

    with pytest.raises(ConfigurationError):
        db.flush()


def test_insert_without_scope_or_departments_is_a_configuration_error(db_session, org):
    db_session.add(Task(name="Nobody's task"))

    with pytest.raises(ConfigurationError):
        db_session.flush()


def test_update_that_empties_departments_is_rejected(org, use_scope):
    db = use_scope(own_scope(org, (org.sales.id,)))

    org.sales_lead.departments = []

    with pytest.raises(ConfigurationError):
        db.flush()


def test_update_that_keeps_departments_is_allowed(org, use_scope):
    db = use_scope(own_scope(org, (org.sales.id,)))

    org.sales_lead.company = "Acme Corp"
    db.commit()

    assert org.sales_lead.department_ids == [org.sales.id]
