# timetracker/schemas/task.py
from datetime import date, datetime
from typing import Annotated, Literal, Optional

from pydantic import Field

from timetracker.schemas.common import CamelModel, NotNull

TaskStatus = Literal["pending", "in_progress", "completed", "cancelled"]
TaskPriority = Literal["low", "medium", "high", "urgent"]


class TaskBase(CamelModel):
    name: Optional[str] = None
    description: Optional[str] = None
    assigned_to: Optional[str] = None
    due_date: Optional[date] = None
    estimated_hours: Optional[float] = Field(default=None, ge=0)


class TaskCreate(TaskBase):
    project_id: str
    title: str = Field(min_length=1, max_length=255)
    status: TaskStatus = "pending"
    priority: TaskPriority = "medium"
    actual_hours: float = Field(default=0, ge=0)


class TaskUpdate(TaskBase):
    title: Annotated[Optional[str], NotNull, Field(min_length=1, max_length=255)] = None
    status: Annotated[Optional[TaskStatus], NotNull] = None
    priority: Annotated[Optional[TaskPriority], NotNull] = None
    actual_hours: Optional[float] = Field(default=None, ge=0)


class TaskClone(CamelModel):
    target_project_id: str = Field(min_length=1)


class Task(TaskBase):
    id: str
    project_id: str
    title: str
    status: TaskStatus
    priority: TaskPriority
    created_by: Optional[str] = None
    actual_hours: Optional[float] = None
    created_at: datetime
    updated_at: datetime
