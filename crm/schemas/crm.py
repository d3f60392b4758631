from __future__ import annotations

from datetime import date, datetime
from typing import Generic, Literal, TypeVar

from pydantic import BaseModel, ConfigDict, Field

T = TypeVar("T")

StatusKind = Literal["lead", "deal"]
TaskStatus = Literal["todo", "done"]
TaskPriority = Literal["low", "medium", "high"]


class Page(BaseModel, Generic[T]):
    """Paginated list body: ``{results, page, limit, totalPages, totalResults}``."""

    model_config = ConfigDict(from_attributes=True)

    results: list[T]
    page: int
    limit: int
    total_pages: int = Field(serialization_alias="totalPages")
    total_results: int = Field(serialization_alias="totalResults")


class StatusOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    associated_to: str
    color: str | None
    description: str | None
    department_ids: list[int]
    created_by_id: int | None
    created_at: datetime


class StatusCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    associated_to: StatusKind
    color: str | None = Field(default=None, pattern=r"^#[0-9A-Fa-f]{6}$")
    description: str | None = None
    department_ids: list[int] | None = None


class StatusUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=100)
    color: str | None = Field(default=None, pattern=r"^#[0-9A-Fa-f]{6}$")
    description: str | None = None
    department_ids: list[int] | None = None


class LeadNoteOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    note: str
    created_by_id: int | None
    created_at: datetime


class LeadNoteIn(BaseModel):
    note: str = Field(min_length=1)


class LeadOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    first_name: str | None
    last_name: str | None
    email: str | None
    phone: str | None
    company: str | None
    job_title: str | None
    source: str | None
    description: str | None
    website: str | None
    value: float
    currency: str
    tags: list[str]
    status_id: int | None
    assigned_to_id: int | None
    is_converted: bool
    converted_at: datetime | None
    department_ids: list[int]
    notes: list[LeadNoteOut]
    created_by_id: int | None
    updated_by_id: int | None
    created_at: datetime
    updated_at: datetime | None


class LeadCreate(BaseModel):
    first_name: str | None = None
    last_name: str | None = None
    email: str | None = None
    phone: str | None = None
    company: str | None = None
    job_title: str | None = None
    source: str | None = None
    description: str | None = None
    website: str | None = None
    value: float = 0
    currency: str = Field(default="USD", min_length=3, max_length=3)
    tags: list[str] = Field(default_factory=list)
    status_id: int | None = None
    assigned_to_id: int | None = None
    is_converted: bool = False
    department_ids: list[int] | None = None


class LeadUpdate(BaseModel):
    first_name: str | None = None
    last_name: str | None = None
    email: str | None = None
    phone: str | None = None
    company: str | None = None
    job_title: str | None = None
    source: str | None = None
    description: str | None = None
    website: str | None = None
    value: float | None = None
    currency: str | None = Field(default=None, min_length=3, max_length=3)
    tags: list[str] | None = None
    status_id: int | None = None
    assigned_to_id: int | None = None
    is_converted: bool | None = None
    department_ids: list[int] | None = None


class DealOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    description: str | None
    amount: float
    currency: str
    tags: list[str]
    lead_id: int
    status_id: int | None
    assigned_to_id: int | None
    expected_close_date: date | None
    actual_close_date: date | None
    department_ids: list[int]
    created_by_id: int | None
    created_at: datetime
    updated_at: datetime | None


class DealCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    description: str | None = None
    amount: float = 0
    currency: str = Field(default="USD", min_length=3, max_length=3)
    tags: list[str] = Field(default_factory=list)
    lead_id: int
    status_id: int | None = None
    assigned_to_id: int | None = None
    expected_close_date: date | None = None
    actual_close_date: date | None = None
    department_ids: list[int] | None = None


class DealUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = None
    amount: float | None = None
    currency: str | None = Field(default=None, min_length=3, max_length=3)
    tags: list[str] | None = None
    lead_id: int | None = None
    status_id: int | None = None
    assigned_to_id: int | None = None
    expected_close_date: date | None = None
    actual_close_date: date | None = None
    department_ids: list[int] | None = None


class TaskOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    description: str | None
    status: str
    priority: str
    due_date: date | None
    assigned_to_id: int | None
    lead_id: int | None
    deal_id: int | None
    department_ids: list[int]
    created_by_id: int | None
    created_at: datetime
    updated_at: datetime | None


class TaskCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    description: str | None = None
    status: TaskStatus = "todo"
    priority: TaskPriority = "medium"
    due_date: date | None = None
    assigned_to_id: int | None = None
    lead_id: int | None = None
    deal_id: int | None = None
    department_ids: list[int] | None = None


class TaskUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = None
    status: TaskStatus | None = None
    priority: TaskPriority | None = None
    due_date: date | None = None
    assigned_to_id: int | None = None
    lead_id: int | None = None
    deal_id: int | None = None
    department_ids: list[int] | None = None


class CountOut(BaseModel):
    count: int


class ValueOut(BaseModel):
    total_value: float


class TopPerformerOut(BaseModel):
    user_id: int | None
    user_name: str | None
    user_email: str | None
    total_amount: float
    deal_count: int


class DashboardOut(BaseModel):
    total_leads: int
    new_leads_this_week: int
    total_deals: int
    closed_won_deals: int
    total_deal_value: float
    top_performers: dict[str, list[TopPerformerOut]] | None = None
