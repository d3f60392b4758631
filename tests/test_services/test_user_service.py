from __future__ import annotations

import pytest

from crm.errors import Forbidden, InvalidRequest, NotFound
from crm.models.security import UserStatus
from crm.security.context import AccessScope, ScopeContext
from crm.security.roles import EffectiveRole
from crm.services import users as user_service
from crm.services.roles import LAST_ROLE_MESSAGE

ADMIN = EffectiveRole(primary_role_name="Admin", all_role_names=("Admin",))
SALES_MANAGER = EffectiveRole(primary_role_name="SalesManager", all_role_names=("SalesManager",))


def admin_context(org) -> ScopeContext:
    return ScopeContext(AccessScope.ADMIN, user_id=org.sales_user.id, home_department_ids=(org.sales.id,))


def test_create_user_with_roles_and_department(db_session, org):
    data = {"name": "Nia", "email": "nia@example.com", "department_id": org.support.id}

    user = user_service.create_user(db_session, data, [org.roles["User"].id], org.sales_user, ADMIN, admin_context(org))

    assert user.department_id == org.support.id
    assert [r.name for r in user.roles] == ["User"]
    assert user.created_by_id == org.sales_user.id


def test_create_user_requires_a_role(db_session, org):
    data = {"name": "Nia", "email": "nia@example.com"}

    with pytest.raises(InvalidRequest):
        user_service.create_user(db_session, data, [], org.sales_user, ADMIN, admin_context(org))


def test_create_user_rejects_duplicate_email(db_session, org):
    data = {"name": "Sam again", "email": "sam@example.com"}

    with pytest.raises(InvalidRequest):
        user_service.create_user(db_session, data, [org.roles["User"].id], org.sales_user, ADMIN, admin_context(org))


def test_roles_hidden_from_the_caller_cannot_be_assigned(db_session, org):
    context = ScopeContext(AccessScope.TEAM, user_id=org.sales_user.id, department_ids=(org.sales.id,))

    with pytest.raises(Forbidden):
        user_service.add_role(db_session, org.support_user, org.roles["Admin"].id, SALES_MANAGER, context)


def test_add_role_is_idempotent(db_session, org):
    user_service.add_role(db_session, org.sales_user, org.roles["User"].id, ADMIN, admin_context(org))

    assert [r.name for r in org.sales_user.roles] == ["User"]


def test_last_role_cannot_be_removed(db_session, org):
    with pytest.raises(InvalidRequest) as exc_info:
        user_service.remove_role(db_session, org.sales_user, org.roles["User"].id)

    assert exc_info.value.message == LAST_ROLE_MESSAGE
    assert [r.name for r in org.sales_user.roles] == ["User"]


def test_remove_role_that_is_not_assigned(db_session, org):
    with pytest.raises(NotFound):
        user_service.remove_role(db_session, org.sales_user, org.roles["Admin"].id)


def test_remove_one_of_several_roles(db_session, org):
    user_service.add_role(db_session, org.sales_user, org.roles["SalesManager"].id, ADMIN, admin_context(org))

    user_service.remove_role(db_session, org.sales_user, org.roles["User"].id)

    assert [r.name for r in org.sales_user.roles] == ["SalesManager"]


def test_soft_delete(db_session, org):
    user = user_service.soft_delete_user(db_session, org.support_user, org.sales_user)

    assert user.status == UserStatus.DELETED.value


def test_cannot_delete_yourself(db_session, org):
    with pytest.raises(InvalidRequest):
        user_service.soft_delete_user(db_session, org.sales_user, org.sales_user)


def test_list_users_hides_deleted_by_default(db_session, org):
    user_service.soft_delete_user(db_session, org.support_user, org.sales_user)
    context = ScopeContext(AccessScope.GLOBAL, user_id=org.sales_user.id)

    page = user_service.list_users(db_session, context)
    deleted = user_service.list_users(db_session, context, status=UserStatus.DELETED.value)

    assert [u.email for u in page["results"]] == ["sam@example.com"]
    assert [u.email for u in deleted["results"]] == ["sue@example.com"]
