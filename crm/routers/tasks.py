from __future__ import annotations

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from crm.db.session import get_db
from crm.models.crm import Task
from crm.models.security import User
from crm.schemas.crm import Page, TaskCreate, TaskOut, TaskPriority, TaskStatus, TaskUpdate
from crm.security.context import ScopeContext
from crm.security.dependencies import get_current_user, get_scope_context
from crm.services import records
from crm.services.pipeline import check_task_references, due_today_filter, overdue_filter

router = APIRouter(prefix="/tasks", tags=["tasks"])


@router.get("", response_model=Page[TaskOut])
def list_tasks(
    task_status: TaskStatus | None = Query(None, alias="status"),
    priority: TaskPriority | None = None,
    assigned_to_id: int | None = None,
    lead_id: int | None = None,
    deal_id: int | None = None,
    page: int = Query(1, ge=1),
    limit: int | None = Query(None, ge=1),
    sort_by: str | None = Query(None, alias="sortBy"),
    context: ScopeContext = Depends(get_scope_context),
    db: Session = Depends(get_db),
) -> dict:
    criteria = []
    if task_status is not None:
        criteria.append(Task.status == task_status)
    if priority is not None:
        criteria.append(Task.priority == priority)
    if assigned_to_id is not None:
        criteria.append(Task.assigned_to_id == assigned_to_id)
    if lead_id is not None:
        criteria.append(Task.lead_id == lead_id)
    if deal_id is not None:
        criteria.append(Task.deal_id == deal_id)
    return records.list_records(db, Task, context, criteria, page=page, limit=limit, sort_by=sort_by)


@router.get("/due-today", response_model=Page[TaskOut])
def tasks_due_today(
    page: int = Query(1, ge=1),
    limit: int | None = Query(None, ge=1),
    sort_by: str | None = Query(None, alias="sortBy"),
    context: ScopeContext = Depends(get_scope_context),
    db: Session = Depends(get_db),
) -> dict:
    return records.list_records(db, Task, context, due_today_filter(), page=page, limit=limit, sort_by=sort_by)


@router.get("/overdue", response_model=Page[TaskOut])
def overdue_tasks(
    page: int = Query(1, ge=1),
    limit: int | None = Query(None, ge=1),
    sort_by: str | None = Query(None, alias="sortBy"),
    context: ScopeContext = Depends(get_scope_context),
    db: Session = Depends(get_db),
) -> dict:
    return records.list_records(db, Task, context, overdue_filter(), page=page, limit=limit, sort_by=sort_by)


@router.post("", response_model=TaskOut, status_code=status.HTTP_201_CREATED)
def create_task(
    payload: TaskCreate,
    user: User = Depends(get_current_user),
    context: ScopeContext = Depends(get_scope_context),
    db: Session = Depends(get_db),
) -> Task:
    data = payload.model_dump(exclude={"department_ids"})
    check_task_references(db, data)
    return records.create_record(db, Task, data, user, context, payload.department_ids)


@router.get("/{task_id}", response_model=TaskOut)
def get_task(
    task_id: int,
    user: User = Depends(get_current_user),
    context: ScopeContext = Depends(get_scope_context),
    db: Session = Depends(get_db),
) -> Task:
    return records.get_record(db, Task, task_id, user, context)


@router.patch("/{task_id}", response_model=TaskOut)
def update_task(
    task_id: int,
    payload: TaskUpdate,
    user: User = Depends(get_current_user),
    context: ScopeContext = Depends(get_scope_context),
    db: Session = Depends(get_db),
) -> Task:
    task = records.get_mutable_record(db, Task, task_id, user, context)
    data = payload.model_dump(exclude_unset=True, exclude={"department_ids"})
    check_task_references(db, data)
    return records.update_record(db, task, data, user, context, payload.department_ids)


@router.delete("/{task_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_task(
    task_id: int,
    user: User = Depends(get_current_user),
    context: ScopeContext = Depends(get_scope_context),
    db: Session = Depends(get_db),
) -> None:
    task = records.get_mutable_record(db, Task, task_id, user, context)
    records.delete_record(db, task, user)
