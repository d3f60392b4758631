from __future__ import annotations

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from crm.db.pagination import paginate
from crm.db.session import get_db
from crm.models.security import Department
from crm.schemas.crm import Page
from crm.schemas.security import DepartmentCreate, DepartmentOut, DepartmentUpdate, ManagerChange
from crm.services import departments as department_service
from crm.settings import get_settings

router = APIRouter(prefix="/departments", tags=["departments"])


@router.get("", response_model=Page[DepartmentOut])
def list_departments(
    is_active: bool | None = None,
    page: int = Query(1, ge=1),
    limit: int | None = Query(None, ge=1),
    sort_by: str | None = Query(None, alias="sortBy"),
    db: Session = Depends(get_db),
) -> dict:
    # Departments are the tenancy catalog itself and are never scope-filtered.
    criteria = [Department.is_active.is_(is_active)] if is_active is not None else []
    limit = limit or get_settings().default_page_limit
    return paginate(db, Department, criteria, page=page, limit=limit, sort_by=sort_by)


@router.post("", response_model=DepartmentOut, status_code=status.HTTP_201_CREATED)
def create_department(payload: DepartmentCreate, db: Session = Depends(get_db)) -> Department:
    return department_service.create_department(db, payload.model_dump())


@router.get("/{department_id}", response_model=DepartmentOut)
def get_department(department_id: int, db: Session = Depends(get_db)) -> Department:
    return department_service.get_department(db, department_id)


@router.patch("/{department_id}", response_model=DepartmentOut)
def update_department(department_id: int, payload: DepartmentUpdate, db: Session = Depends(get_db)) -> Department:
    return department_service.update_department(db, department_id, payload.model_dump(exclude_unset=True))


@router.delete("/{department_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_department(department_id: int, db: Session = Depends(get_db)) -> None:
    department_service.delete_department(db, department_id)


@router.post("/{department_id}/managers", response_model=DepartmentOut)
def add_manager(department_id: int, payload: ManagerChange, db: Session = Depends(get_db)) -> Department:
    return department_service.add_manager(db, department_id, payload.user_id)


@router.post("/{department_id}/managers/remove", response_model=DepartmentOut)
def remove_manager(department_id: int, payload: ManagerChange, db: Session = Depends(get_db)) -> Department:
    return department_service.remove_manager(db, department_id, payload.user_id)
