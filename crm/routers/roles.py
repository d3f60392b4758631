from __future__ import annotations

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from crm.db.session import get_db
from crm.models.security import Role
from crm.schemas.security import RoleAssignmentOut, RoleAssignUsers, RoleCreate, RoleListItem, RoleOut, RoleUpdate
from crm.security.context import ScopeContext
from crm.security.dependencies import get_effective_role, get_scope_context
from crm.security.roles import EffectiveRole
from crm.services import roles as role_service

router = APIRouter(prefix="/roles", tags=["roles"])


@router.get("", response_model=list[RoleListItem])
def list_roles(
    effective: EffectiveRole = Depends(get_effective_role),
    context: ScopeContext = Depends(get_scope_context),
    db: Session = Depends(get_db),
) -> list[RoleListItem]:
    roles = role_service.list_roles(db, effective, context)
    counts = role_service.member_counts(db, [r.id for r in roles])
    items = []
    for role in roles:
        granted_count, total = role_service.permission_counts(role)
        items.append(
            RoleListItem.model_validate(role).model_copy(
                update={
                    "member_count": counts.get(role.id, 0),
                    "permissions_count": granted_count,
                    "total_permissions": total,
                }
            )
        )
    return items


@router.post("", response_model=RoleOut, status_code=status.HTTP_201_CREATED)
def create_role(
    payload: RoleCreate,
    context: ScopeContext = Depends(get_scope_context),
    db: Session = Depends(get_db),
) -> Role:
    return role_service.create_custom_role(db, payload.model_dump(), context)


@router.get("/{role_id}", response_model=RoleOut)
def get_role(
    role_id: int,
    effective: EffectiveRole = Depends(get_effective_role),
    context: ScopeContext = Depends(get_scope_context),
    db: Session = Depends(get_db),
) -> Role:
    return role_service.get_visible_role(db, role_id, effective, context)


@router.patch("/{role_id}", response_model=RoleOut)
def update_role(
    role_id: int,
    payload: RoleUpdate,
    effective: EffectiveRole = Depends(get_effective_role),
    context: ScopeContext = Depends(get_scope_context),
    db: Session = Depends(get_db),
) -> Role:
    role_service.get_visible_role(db, role_id, effective, context)
    return role_service.update_role(db, role_id, payload.model_dump(exclude_unset=True))


@router.delete("/{role_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_role(
    role_id: int,
    effective: EffectiveRole = Depends(get_effective_role),
    context: ScopeContext = Depends(get_scope_context),
    db: Session = Depends(get_db),
) -> None:
    role_service.get_visible_role(db, role_id, effective, context)
    role_service.delete_role(db, role_id)


@router.put("/{role_id}/users", response_model=RoleAssignmentOut)
def assign_users(
    role_id: int,
    payload: RoleAssignUsers,
    effective: EffectiveRole = Depends(get_effective_role),
    context: ScopeContext = Depends(get_scope_context),
    db: Session = Depends(get_db),
) -> dict:
    role_service.get_visible_role(db, role_id, effective, context)
    return role_service.assign_users_to_role(db, role_id, payload.user_ids)
