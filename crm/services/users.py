from __future__ import annotations

from collections.abc import Iterable
import logging
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from crm.db.filters import SKIP_SCOPE
from crm.errors import InvalidRequest, NotFound
from crm.models.security import User, UserStatus
from crm.security.context import ScopeContext
from crm.security.roles import EffectiveRole
from crm.services.records import assign_departments, list_records
from crm.services.roles import LAST_ROLE_MESSAGE, ensure_assignable, get_role

logger = logging.getLogger(__name__)


def _ensure_unique_email(db: Session, email: str, exclude_id: int | None = None) -> None:
    # Uniqueness is global, so the check must see users outside the caller's scope.
    stmt = select(User.id).where(User.email == email).execution_options(**{SKIP_SCOPE: True})
    if exclude_id is not None:
        stmt = stmt.where(User.id != exclude_id)
    if db.execute(stmt).first() is not None:
        raise InvalidRequest("Email already taken")


def list_users(
    db: Session,
    context: ScopeContext,
    *,
    status: str | None = None,
    page: int = 1,
    limit: int | None = None,
    sort_by: str | None = None,
) -> dict[str, Any]:
    criteria = [User.status == status] if status else [User.status != UserStatus.DELETED.value]
    return list_records(db, User, context, criteria, page=page, limit=limit, sort_by=sort_by)


def create_user(
    db: Session,
    data: dict[str, Any],
    role_ids: Iterable[int],
    principal: User,
    effective: EffectiveRole,
    context: ScopeContext,
) -> User:
    department_id = data.pop("department_id", None)
    _ensure_unique_email(db, data["email"])

    ids = list(dict.fromkeys(role_ids))
    if not ids:
        raise InvalidRequest("Each user must have at least one role assigned")
    roles = [get_role(db, role_id) for role_id in ids]
    for role in roles:
        ensure_assignable(role, effective, context)

    user = User(**data, created_by_id=principal.id)
    user.roles = roles
    assign_departments(db, user, context, None if department_id is None else [department_id])
    db.add(user)
    db.commit()
    logger.info("User created id=%s by user_id=%s", user.id, principal.id)
    return user


def update_user(db: Session, user: User, data: dict[str, Any], context: ScopeContext) -> User:
    department_id = data.pop("department_id", None)
    if "email" in data and data["email"] != user.email:
        _ensure_unique_email(db, data["email"], exclude_id=user.id)
    for key, value in data.items():
        setattr(user, key, value)
    assign_departments(db, user, context, None if department_id is None else [department_id])
    db.commit()
    logger.info("User updated id=%s", user.id)
    return user


def soft_delete_user(db: Session, user: User, principal: User) -> User:
    if user.id == principal.id:
        raise InvalidRequest("You cannot delete your own account")
    user.status = UserStatus.DELETED.value
    db.commit()
    logger.info("User soft-deleted id=%s by user_id=%s", user.id, principal.id)
    return user


def add_role(db: Session, user: User, role_id: int, effective: EffectiveRole, context: ScopeContext) -> User:
    role = get_role(db, role_id)
    ensure_assignable(role, effective, context)
    if role.id not in user.role_ids:
        user.roles.append(role)
        db.commit()
        logger.info("Role added user_id=%s role_id=%s", user.id, role.id)
    return user


def remove_role(db: Session, user: User, role_id: int) -> User:
    role = next((r for r in user.roles if r.id == role_id), None)
    if role is None:
        raise NotFound("Role not assigned to user")
    if len(user.roles) == 1:
        raise InvalidRequest(LAST_ROLE_MESSAGE)
    user.roles.remove(role)
    db.commit()
    logger.info("Role removed user_id=%s role_id=%s", user.id, role_id)
    return user
