"""
Access scope classification and scope context construction.

Both functions are pure. The only input that needs storage, whether the
principal manages their department, is resolved by the caller (see
``crm.services.departments.ManagerLookup``) and passed in as a bool.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
import logging
from typing import Any

from crm.security.context import AccessScope, ScopeContext
from crm.security.permissions import Permission

logger = logging.getLogger(__name__)

SUPER_ADMIN_ROLE = "SuperAdmin"
ADMIN_ROLE = "Admin"


def classify_scope(
    permissions: Mapping[Permission, bool],
    role_names: Iterable[str],
    is_department_manager: bool,
) -> AccessScope:
    """
    Map effective permissions and role names to one scope. First match wins.

    Permission sets are unions across roles, so a principal can hold broad and
    narrow flags at once; the order below makes the broadest one govern.
    ``role_names`` holds every assigned role name; a role-name match on any
    of them counts.
    """

    names = {role_names} if isinstance(role_names, str) else set(role_names)

    def has(perm: Permission) -> bool:
        return bool(permissions.get(perm, False))

    if SUPER_ADMIN_ROLE in names or has(Permission.CAN_VIEW_ORGANIZATIONS):
        return AccessScope.GLOBAL
    if ADMIN_ROLE in names or has(Permission.CAN_VIEW_OWN_ORGANIZATION):
        return AccessScope.ADMIN
    if is_department_manager or has(Permission.CAN_MANAGE_TEAMS):
        return AccessScope.DEPARTMENT
    if has(Permission.CAN_VIEW_TEAMS):
        return AccessScope.TEAM
    return AccessScope.OWN


def build_context(principal: Any, scope: AccessScope) -> ScopeContext:
    """
    Build the request's ScopeContext. Never raises.

    A principal without a department, or without any role, gets
    ``department_ids=()``; downstream that matches nothing rather than
    everything.
    """

    user_id = getattr(principal, "id", None)
    department_id = getattr(principal, "department_id", None)
    home = (department_id,) if department_id is not None else ()

    if scope in (AccessScope.GLOBAL, AccessScope.ADMIN):
        ctx = ScopeContext(scope=scope, user_id=user_id, home_department_ids=home)
    elif not getattr(principal, "roles", None):
        ctx = ScopeContext(scope=scope, user_id=user_id, home_department_ids=home)
    else:
        ctx = ScopeContext(scope=scope, user_id=user_id, department_ids=home, home_department_ids=home)

    logger.debug("Scope context built user_id=%s scope=%s departments=%s", user_id, scope.value, ctx.department_ids)
    return ctx
