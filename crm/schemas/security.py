from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

UserStatusValue = Literal["Active", "Inactive", "Invited", "Deleted"]


class DepartmentSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str


class DepartmentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    description: str | None
    is_active: bool
    manager_ids: list[int]
    created_at: datetime


class DepartmentCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    description: str | None = None
    is_active: bool = True


class DepartmentUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=100)
    description: str | None = None
    is_active: bool | None = None


class ManagerChange(BaseModel):
    user_id: int


class RoleSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str


class RoleOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    description: str | None
    is_system_role: bool
    department_id: int | None
    permissions: dict[str, bool]
    created_at: datetime


class RoleListItem(RoleOut):
    member_count: int = 0
    permissions_count: int = 0
    total_permissions: int = 0


class RoleCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    description: str | None = None
    department_id: int | None = None
    permissions: dict[str, Any] = Field(default_factory=dict)


class RoleUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=100)
    description: str | None = None
    permissions: dict[str, Any] | None = None


class RoleAssignUsers(BaseModel):
    user_ids: list[int]


class RoleAssignmentOut(BaseModel):
    role_id: int
    assigned_users: list[int]
    users_added: list[int]
    users_removed: list[int]


class UserOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str | None
    email: str
    status: str
    is_active: bool
    is_owner: bool
    department_id: int | None
    department: DepartmentSummary | None
    roles: list[RoleSummary]
    created_at: datetime


class UserCreate(BaseModel):
    name: str | None = Field(default=None, max_length=100)
    email: str = Field(min_length=3, max_length=255)
    department_id: int | None = None
    status: UserStatusValue = "Active"
    role_ids: list[int] = Field(min_length=1)


class UserUpdate(BaseModel):
    name: str | None = Field(default=None, max_length=100)
    email: str | None = Field(default=None, min_length=3, max_length=255)
    department_id: int | None = None
    status: UserStatusValue | None = None


class UserRoleChange(BaseModel):
    role_id: int


class ScopeOut(BaseModel):
    scope: str
    user_id: int | None
    department_ids: list[int]


class MeOut(BaseModel):
    user: UserOut
    primary_role: str | None
    role_names: list[str]
    permissions: list[str]
    is_department_manager: bool
    scope: ScopeOut
