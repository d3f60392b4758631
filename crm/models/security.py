from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from sqlalchemy import JSON, Boolean, Column, DateTime, ForeignKey, Integer, String, Table, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from crm.db.base import Base, utcnow
from crm.security.tenancy import DepartmentColumnMarker, register_scoped_model


class UserStatus(str, Enum):
    ACTIVE = "Active"
    INACTIVE = "Inactive"
    INVITED = "Invited"
    DELETED = "Deleted"


department_managers = Table(
    "department_managers",
    Base.metadata,
    Column("department_id", ForeignKey("departments.id"), primary_key=True),
    Column("user_id", ForeignKey("users.id"), primary_key=True),
)


class Department(Base):
    __tablename__ = "departments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    users: Mapped[list["User"]] = relationship(back_populates="department")
    managers: Mapped[list["User"]] = relationship(secondary=department_managers, lazy="selectin")

    @property
    def manager_ids(self) -> list[int]:
        return [u.id for u in self.managers]


# Surrogate id keeps assignment order: the first assigned role is the primary role.
user_roles = Table(
    "user_roles",
    Base.metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("user_id", ForeignKey("users.id"), nullable=False, index=True),
    Column("role_id", ForeignKey("roles.id"), nullable=False, index=True),
    UniqueConstraint("user_id", "role_id"),
)


class Role(Base):
    """
    Role catalog entry. Never scoped by the query filter injector.

    System roles carry no department; custom roles belong to exactly one.
    ``permissions`` stores the full catalog shape as ``{flag name: bool}``.
    """

    __tablename__ = "roles"
    __table_args__ = (UniqueConstraint("name", "department_id"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_system_role: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False, index=True)
    department_id: Mapped[int | None] = mapped_column(ForeignKey("departments.id"), nullable=True, index=True)
    permissions: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime | None] = mapped_column(DateTime, onupdate=utcnow, nullable=True)

    users: Mapped[list["User"]] = relationship(secondary=user_roles, back_populates="roles")


class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)

    department_id: Mapped[int | None] = mapped_column(ForeignKey("departments.id"), nullable=True, index=True)
    status: Mapped[str] = mapped_column(String(20), default=UserStatus.ACTIVE.value, nullable=False, index=True)
    is_owner: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    created_by_id: Mapped[int | None] = mapped_column(ForeignKey("users.id"), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime | None] = mapped_column(DateTime, onupdate=utcnow, nullable=True)

    department: Mapped[Department | None] = relationship(back_populates="users")
    roles: Mapped[list[Role]] = relationship(
        secondary=user_roles,
        back_populates="users",
        order_by=user_roles.c.id,
        lazy="selectin",
    )

    @property
    def is_active(self) -> bool:
        return self.status == UserStatus.ACTIVE.value

    @property
    def role_ids(self) -> list[int]:
        return [r.id for r in self.roles]


# Users are scoped by their single department column; own/team callers see themselves.
register_scoped_model(User, DepartmentColumnMarker("department_id"), owner_attributes=("id",))
