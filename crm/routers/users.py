from __future__ import annotations

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from crm.db.session import get_db
from crm.models.security import User
from crm.schemas.crm import Page
from crm.schemas.security import UserCreate, UserOut, UserRoleChange, UserStatusValue, UserUpdate
from crm.security.context import ScopeContext
from crm.security.dependencies import get_current_user, get_effective_role, get_scope_context
from crm.security.roles import EffectiveRole
from crm.services import records
from crm.services import users as user_service

router = APIRouter(prefix="/users", tags=["users"])


@router.get("", response_model=Page[UserOut])
def list_users(
    user_status: UserStatusValue | None = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    limit: int | None = Query(None, ge=1),
    sort_by: str | None = Query(None, alias="sortBy"),
    context: ScopeContext = Depends(get_scope_context),
    db: Session = Depends(get_db),
) -> dict:
    return user_service.list_users(db, context, status=user_status, page=page, limit=limit, sort_by=sort_by)


@router.post("", response_model=UserOut, status_code=status.HTTP_201_CREATED)
def create_user(
    payload: UserCreate,
    user: User = Depends(get_current_user),
    effective: EffectiveRole = Depends(get_effective_role),
    context: ScopeContext = Depends(get_scope_context),
    db: Session = Depends(get_db),
) -> User:
    data = payload.model_dump(exclude={"role_ids"})
    return user_service.create_user(db, data, payload.role_ids, user, effective, context)


@router.get("/{user_id}", response_model=UserOut)
def get_user(
    user_id: int,
    user: User = Depends(get_current_user),
    context: ScopeContext = Depends(get_scope_context),
    db: Session = Depends(get_db),
) -> User:
    return records.get_record(db, User, user_id, user, context)


@router.patch("/{user_id}", response_model=UserOut)
def update_user(
    user_id: int,
    payload: UserUpdate,
    user: User = Depends(get_current_user),
    context: ScopeContext = Depends(get_scope_context),
    db: Session = Depends(get_db),
) -> User:
    target = records.get_mutable_record(db, User, user_id, user, context)
    return user_service.update_user(db, target, payload.model_dump(exclude_unset=True), context)


@router.delete("/{user_id}", response_model=UserOut)
def delete_user(
    user_id: int,
    user: User = Depends(get_current_user),
    context: ScopeContext = Depends(get_scope_context),
    db: Session = Depends(get_db),
) -> User:
    target = records.get_mutable_record(db, User, user_id, user, context)
    return user_service.soft_delete_user(db, target, user)


@router.post("/{user_id}/roles", response_model=UserOut)
def add_role(
    user_id: int,
    payload: UserRoleChange,
    user: User = Depends(get_current_user),
    effective: EffectiveRole = Depends(get_effective_role),
    context: ScopeContext = Depends(get_scope_context),
    db: Session = Depends(get_db),
) -> User:
    target = records.get_mutable_record(db, User, user_id, user, context)
    return user_service.add_role(db, target, payload.role_id, effective, context)


@router.delete("/{user_id}/roles/{role_id}", response_model=UserOut)
def remove_role(
    user_id: int,
    role_id: int,
    user: User = Depends(get_current_user),
    context: ScopeContext = Depends(get_scope_context),
    db: Session = Depends(get_db),
) -> User:
    target = records.get_mutable_record(db, User, user_id, user, context)
    return user_service.remove_role(db, target, role_id)
