from __future__ import annotations

from collections.abc import Iterable
import logging
from typing import Any

from sqlalchemy import delete, insert, select
from sqlalchemy.orm import Session

from crm.db.filters import SKIP_SCOPE
from crm.errors import InvalidRequest, NotFound
from crm.models.security import Department, User, department_managers

logger = logging.getLogger(__name__)


class ManagerLookup:
    """
    "Does this user manage their own department?", cached per request.

    One instance is created by the security dependency for each request, so
    the classifier never hits the department store twice for one principal.
    """

    def __init__(self, db: Session) -> None:
        self._db = db
        self._cache: dict[int, bool] = {}

    def is_manager(self, user: Any) -> bool:
        user_id = getattr(user, "id", None)
        department_id = getattr(user, "department_id", None)
        if user_id is None or department_id is None:
            return False
        if user_id not in self._cache:
            self._cache[user_id] = _is_listed_manager(self._db, department_id, user_id)
        return self._cache[user_id]


def find_department_managers(db: Session, department_id: int) -> list[User]:
    stmt = (
        select(User)
        .join(department_managers, department_managers.c.user_id == User.id)
        .where(department_managers.c.department_id == department_id)
        .order_by(User.id)
        .execution_options(**{SKIP_SCOPE: True})
    )
    return list(db.scalars(stmt).all())


def get_department(db: Session, department_id: int) -> Department:
    department = db.get(Department, department_id)
    if department is None:
        raise NotFound("Department not found")
    return department


def ensure_departments_exist(db: Session, department_ids: Iterable[int]) -> list[int]:
    ids = list(dict.fromkeys(department_ids))
    found = set(db.scalars(select(Department.id).where(Department.id.in_(ids))).all())
    missing = [d for d in ids if d not in found]
    if missing:
        raise InvalidRequest(f"Unknown departments: {missing}")
    return ids


def _ensure_unique_name(db: Session, name: str, exclude_id: int | None = None) -> None:
    stmt = select(Department.id).where(Department.name == name)
    if exclude_id is not None:
        stmt = stmt.where(Department.id != exclude_id)
    if db.execute(stmt).first() is not None:
        raise InvalidRequest("Department name already taken")


def create_department(db: Session, data: dict[str, Any]) -> Department:
    _ensure_unique_name(db, data["name"])
    department = Department(**data)
    db.add(department)
    db.commit()
    logger.info("Department created id=%s name=%s", department.id, department.name)
    return department


def update_department(db: Session, department_id: int, data: dict[str, Any]) -> Department:
    department = get_department(db, department_id)
    if "name" in data and data["name"] != department.name:
        _ensure_unique_name(db, data["name"], exclude_id=department.id)
    for key, value in data.items():
        setattr(department, key, value)
    db.commit()
    return department


def delete_department(db: Session, department_id: int) -> None:
    department = get_department(db, department_id)
    member = db.execute(
        select(User.id).where(User.department_id == department.id).limit(1).execution_options(**{SKIP_SCOPE: True})
    ).first()
    if member is not None:
        raise InvalidRequest("Department still has users")
    db.execute(delete(department_managers).where(department_managers.c.department_id == department.id))
    db.expire(department, ["managers"])
    db.delete(department)
    db.commit()
    logger.info("Department deleted id=%s", department_id)


def _is_listed_manager(db: Session, department_id: int, user_id: int) -> bool:
    row = db.execute(
        select(department_managers.c.user_id).where(
            department_managers.c.department_id == department_id,
            department_managers.c.user_id == user_id,
        )
    ).first()
    return row is not None


def add_manager(db: Session, department_id: int, user_id: int) -> Department:
    department = get_department(db, department_id)
    stmt = select(User).where(User.id == user_id).execution_options(**{SKIP_SCOPE: True})
    user = db.execute(stmt).scalar_one_or_none()
    if user is None:
        raise NotFound("User not found")
    if not _is_listed_manager(db, department.id, user.id):
        db.execute(insert(department_managers).values(department_id=department.id, user_id=user.id))
        db.commit()
        db.expire(department, ["managers"])
        logger.info("Manager added department_id=%s user_id=%s", department_id, user_id)
    return department


def remove_manager(db: Session, department_id: int, user_id: int) -> Department:
    """Drop one manager row. Other managers of the department stay listed."""

    department = get_department(db, department_id)
    if _is_listed_manager(db, department.id, user_id):
        db.execute(
            delete(department_managers).where(
                department_managers.c.department_id == department.id,
                department_managers.c.user_id == user_id,
            )
        )
        db.commit()
        db.expire(department, ["managers"])
        logger.info("Manager removed department_id=%s user_id=%s", department_id, user_id)
    return department
