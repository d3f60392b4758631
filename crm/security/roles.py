"""
Role resolution.

Turns a principal's assigned roles into one ``EffectiveRole``: the primary
role name (first assigned role, used only for the legacy role-visibility
rules below), every role name, and the OR-aggregated permission map.

Pure functions over already-loaded data. Missing data degrades to "no
access" instead of raising.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
import logging
from typing import Any

from crm.security.permissions import Permission, granted, parse_permission

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EffectiveRole:
    primary_role_name: str | None
    all_role_names: tuple[str, ...] = ()
    permissions: Mapping[Permission, bool] = field(default_factory=dict)

    def has(self, perm: Permission) -> bool:
        return bool(self.permissions.get(perm, False))

    def has_any(self, perms: Iterable[Permission]) -> bool:
        return any(self.has(p) for p in perms)

    @property
    def granted(self) -> frozenset[Permission]:
        return granted(self.permissions)


NO_ROLE = EffectiveRole(primary_role_name=None)


def aggregate_permissions(roles: Iterable[Any]) -> dict[Permission, bool]:
    """
    Boolean OR across the roles' permission maps.

    A flag is granted if any role grants it; absent flags are False. Catalog
    defaults are not applied here: they were applied when each role was
    stored, and a principal with no roles must end up with nothing.
    """

    result = {perm: False for perm in Permission}
    for role in roles:
        for name, value in (getattr(role, "permissions", None) or {}).items():
            perm = parse_permission(name)
            if perm is None:
                logger.debug("Ignoring unknown permission %r on role %r", name, role_name(role))
                continue
            if value is True:
                result[perm] = True
    return result


def role_name(role: Any) -> str | None:
    name = getattr(role, "name", None)
    return str(name) if name else None


def resolve_effective_role(principal: Any) -> EffectiveRole:
    roles: Sequence[Any] = list(getattr(principal, "roles", None) or [])
    if not roles:
        return NO_ROLE

    names = tuple(n for n in (role_name(r) for r in roles) if n)
    return EffectiveRole(
        primary_role_name=role_name(roles[0]),
        all_role_names=names,
        permissions=aggregate_permissions(roles),
    )


# Legacy visibility rules keyed on the primary role name.
_HIDDEN_BY_ROLE: dict[str, frozenset[str]] = {
    "SuperAdmin": frozenset(),
    "Admin": frozenset({"SuperAdmin"}),
    "TeamManager": frozenset({"SuperAdmin", "Admin", "SalesManager"}),
    "SalesManager": frozenset({"SuperAdmin", "Admin"}),
}


def visible_role_names(primary_role_name: str | None, candidate_names: Iterable[str]) -> list[str]:
    """
    Which roles the principal may see (and therefore assign).

    No primary role sees nothing. Primary roles without a rule above see only
    themselves.
    """

    names = list(candidate_names)
    if primary_role_name is None:
        return []
    hidden = _HIDDEN_BY_ROLE.get(primary_role_name)
    if hidden is None:
        return [n for n in names if n == primary_role_name]
    return [n for n in names if n not in hidden]
