from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class AccessScope(str, Enum):
    """
    Breadth of data a principal may access.

    Totally ordered: GLOBAL covers ADMIN covers DEPARTMENT covers TEAM covers OWN.
    ADMIN is the organization tier.
    """

    GLOBAL = "global"
    ADMIN = "admin"
    DEPARTMENT = "department"
    TEAM = "team"
    OWN = "own"

    @property
    def breadth(self) -> int:
        return _BREADTH[self]

    def covers(self, other: AccessScope) -> bool:
        return self.breadth >= other.breadth


_BREADTH = {
    AccessScope.OWN: 0,
    AccessScope.TEAM: 1,
    AccessScope.DEPARTMENT: 2,
    AccessScope.ADMIN: 3,
    AccessScope.GLOBAL: 4,
}

# Scopes that are narrowed to ``department_ids`` at the storage layer.
DEPARTMENT_BOUND_SCOPES = frozenset({AccessScope.DEPARTMENT, AccessScope.TEAM, AccessScope.OWN})


@dataclass(frozen=True)
class ScopeContext:
    """
    Per-request access boundaries.

    Created once per request after authentication and attached to:
    - request.state (FastAPI request lifetime)
    - Session.info (SQLAlchemy session lifetime)

    ``department_ids`` is the filter. An empty tuple under a department-bound
    scope matches nothing. ``home_department_ids`` is never a filter; it is the
    tenancy marker given to records the principal creates without one.
    """

    scope: AccessScope
    user_id: int | None = None
    department_ids: tuple[int, ...] = ()
    home_department_ids: tuple[int, ...] = ()

    @property
    def restricts_departments(self) -> bool:
        return self.scope in DEPARTMENT_BOUND_SCOPES

    @property
    def requires_ownership(self) -> bool:
        return self.scope in (AccessScope.TEAM, AccessScope.OWN)

    def to_dict(self) -> dict[str, object]:
        return {
            "scope": self.scope.value,
            "user_id": self.user_id,
            "department_ids": list(self.department_ids),
        }
