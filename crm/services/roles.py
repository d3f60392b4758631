"""
Role catalog rules.

* System roles carry no department; custom roles belong to exactly one.
* A custom role may only grant flags the SuperAdmin system role grants.
* System roles are read-only; assigned roles cannot be deleted.
* No membership change may leave a user without any role.

Role rows are loaded ``with_for_update()`` before a mutation so that the
permission check and the write happen under the same row lock on backends
that support it.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
import logging
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from crm.errors import Forbidden, InvalidRequest, NotFound
from crm.models.security import Role, User, UserStatus, user_roles
from crm.security.context import ScopeContext
from crm.security.permissions import Permission, normalize_permissions, parse_permission, to_storage
from crm.security.roles import EffectiveRole, visible_role_names
from crm.security.scope import SUPER_ADMIN_ROLE
from crm.security.tenancy import resolve_requested_departments
from crm.services.departments import ensure_departments_exist

logger = logging.getLogger(__name__)

LAST_ROLE_MESSAGE = "Cannot remove role — user would have zero roles"


def _role_visible(role: Role, effective: EffectiveRole, context: ScopeContext) -> bool:
    if not visible_role_names(effective.primary_role_name, [role.name]):
        return False
    if role.is_system_role or not context.restricts_departments:
        return True
    return role.department_id in context.department_ids


def list_roles(db: Session, effective: EffectiveRole, context: ScopeContext) -> list[Role]:
    roles = db.scalars(select(Role).order_by(Role.is_system_role.desc(), Role.name, Role.id)).all()
    return [r for r in roles if _role_visible(r, effective, context)]


def member_counts(db: Session, role_ids: Iterable[int]) -> dict[int, int]:
    """Active-or-invited members per role, as visible to the session's scope."""

    ids = list(role_ids)
    if not ids:
        return {}
    rows = db.execute(
        select(user_roles.c.role_id, func.count(User.id))
        .select_from(User)
        .join(user_roles, user_roles.c.user_id == User.id)
        .where(user_roles.c.role_id.in_(ids), User.status != UserStatus.DELETED.value)
        .group_by(user_roles.c.role_id)
    ).all()
    return {role_id: count for role_id, count in rows}


def get_role(db: Session, role_id: int, *, for_update: bool = False) -> Role:
    stmt = select(Role).where(Role.id == role_id)
    if for_update:
        stmt = stmt.with_for_update()
    role = db.scalars(stmt).first()
    if role is None:
        raise NotFound("Role not found")
    return role


def get_visible_role(db: Session, role_id: int, effective: EffectiveRole, context: ScopeContext) -> Role:
    role = get_role(db, role_id)
    if not _role_visible(role, effective, context):
        raise Forbidden("You do not have access to this role")
    return role


def _super_admin_permissions(db: Session) -> dict[Permission, bool]:
    role = db.scalars(select(Role).where(Role.name == SUPER_ADMIN_ROLE, Role.is_system_role.is_(True))).first()
    if role is None:
        raise NotFound("SuperAdmin role not found for validation")
    return normalize_permissions(role.permissions)[0]


def validate_custom_role_permissions(db: Session, raw: Mapping[str, Any]) -> dict[Permission, bool]:
    """
    Normalize a custom role's permission map and enforce the subset rule.

    Granting a flag outside the catalog also counts as exceeding the system
    roles, since no system role can define it.
    """

    ceiling = _super_admin_permissions(db)
    normalized, unknown = normalize_permissions(raw)

    exceeding = sorted(name for name in unknown if raw.get(name) is True)
    exceeding += sorted(perm.value for perm, value in normalized.items() if value and not ceiling.get(perm, False))
    if exceeding:
        logger.info("Rejected custom role permissions exceeding SuperAdmin: %s", exceeding)
        raise InvalidRequest(f"Cannot exceed system role permissions: {', '.join(exceeding)}")
    return normalized


def _ensure_unique_name(db: Session, name: str, department_id: int | None, exclude_id: int | None = None) -> None:
    stmt = select(Role.id).where(Role.name == name)
    if department_id is None:
        stmt = stmt.where(Role.department_id.is_(None))
    else:
        stmt = stmt.where(Role.department_id == department_id)
    if exclude_id is not None:
        stmt = stmt.where(Role.id != exclude_id)
    if db.execute(stmt).first() is not None:
        raise InvalidRequest("Role name already exists in this department")


def create_custom_role(db: Session, data: dict[str, Any], context: ScopeContext) -> Role:
    requested = data.pop("department_id", None)
    if requested is not None:
        department_ids = resolve_requested_departments(context, [requested])
    else:
        department_ids = context.home_department_ids
    if not department_ids:
        raise InvalidRequest("Custom roles must belong to a department")
    department_id = ensure_departments_exist(db, department_ids[:1])[0]

    _ensure_unique_name(db, data["name"], department_id)
    permissions = validate_custom_role_permissions(db, data.pop("permissions", None) or {})

    role = Role(
        name=data["name"],
        description=data.get("description"),
        is_system_role=False,
        department_id=department_id,
        permissions=to_storage(permissions),
    )
    db.add(role)
    db.commit()
    logger.info("Custom role created id=%s name=%s department_id=%s", role.id, role.name, department_id)
    return role


def update_role(db: Session, role_id: int, data: dict[str, Any]) -> Role:
    role = get_role(db, role_id, for_update=True)
    if role.is_system_role:
        raise Forbidden("Cannot update system roles")

    if "name" in data and data["name"] != role.name:
        _ensure_unique_name(db, data["name"], role.department_id, exclude_id=role.id)
        role.name = data["name"]
    if "description" in data:
        role.description = data["description"]
    if data.get("permissions") is not None:
        role.permissions = to_storage(validate_custom_role_permissions(db, data["permissions"]))

    db.commit()
    logger.info("Role updated id=%s", role.id)
    return role


def delete_role(db: Session, role_id: int) -> None:
    role = get_role(db, role_id, for_update=True)
    if role.is_system_role:
        raise Forbidden("Cannot delete system roles")

    assigned = db.execute(select(user_roles.c.user_id).where(user_roles.c.role_id == role.id).limit(1)).first()
    if assigned is not None:
        raise InvalidRequest("Cannot delete role that is assigned to users")

    db.delete(role)
    db.commit()
    logger.info("Role deleted id=%s", role_id)


def validate_minimum_role_requirement(users: Iterable[User], role: Role) -> None:
    """Deleted users are exempt; everyone else must keep at least one role."""

    stranded = [
        u.name or u.email
        for u in users
        if u.status != UserStatus.DELETED.value and not [r for r in u.roles if r.id != role.id]
    ]
    if stranded:
        raise InvalidRequest(f"{LAST_ROLE_MESSAGE}: {', '.join(stranded)}")


def assign_users_to_role(db: Session, role_id: int, user_ids: Iterable[int]) -> dict[str, Any]:
    """
    Replace the role's membership with ``user_ids``.

    Only users visible in the session's scope are added or removed; members
    outside it are left untouched.
    """

    role = get_role(db, role_id, for_update=True)
    wanted = list(dict.fromkeys(user_ids))

    current = list(
        db.scalars(
            select(User).join(user_roles, user_roles.c.user_id == User.id).where(user_roles.c.role_id == role.id)
        ).all()
    )
    current_ids = {u.id for u in current}

    to_add_ids = [uid for uid in wanted if uid not in current_ids]
    to_remove = [u for u in current if u.id not in wanted]

    to_add = list(db.scalars(select(User).where(User.id.in_(to_add_ids))).all()) if to_add_ids else []
    missing = sorted(set(to_add_ids) - {u.id for u in to_add})
    if missing:
        raise NotFound(f"Users not found: {missing}")

    validate_minimum_role_requirement(to_remove, role)

    for user in to_add:
        user.roles.append(role)
    for user in to_remove:
        user.roles.remove(role)
    db.commit()

    logger.info(
        "Role membership replaced role_id=%s added=%s removed=%s",
        role.id,
        [u.id for u in to_add],
        [u.id for u in to_remove],
    )
    return {
        "role_id": role.id,
        "assigned_users": wanted,
        "users_added": [u.id for u in to_add],
        "users_removed": [u.id for u in to_remove],
    }


def ensure_assignable(role: Role, effective: EffectiveRole, context: ScopeContext) -> None:
    if not _role_visible(role, effective, context):
        raise Forbidden(f"You cannot assign the role '{role.name}'")


def permission_counts(role: Role) -> tuple[int, int]:
    """(granted, total) over catalog flags stored on the role."""

    known = {name: value for name, value in (role.permissions or {}).items() if parse_permission(name) is not None}
    return sum(1 for value in known.values() if value is True), len(known)
