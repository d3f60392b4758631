from __future__ import annotations

from fastapi import APIRouter, Depends

from crm.models.security import User
from crm.schemas.security import MeOut
from crm.security.context import ScopeContext
from crm.security.dependencies import get_current_user, get_effective_role, get_manager_lookup, get_scope_context
from crm.security.roles import EffectiveRole
from crm.services.departments import ManagerLookup

router = APIRouter(tags=["me"])


@router.get("/me", response_model=MeOut)
def me(
    user: User = Depends(get_current_user),
    effective: EffectiveRole = Depends(get_effective_role),
    context: ScopeContext = Depends(get_scope_context),
    managers: ManagerLookup = Depends(get_manager_lookup),
) -> dict:
    return {
        "user": user,
        "primary_role": effective.primary_role_name,
        "role_names": list(effective.all_role_names),
        "permissions": sorted(p.value for p in effective.granted),
        "is_department_manager": managers.is_manager(user),
        "scope": context.to_dict(),
    }
