# timetracker/schemas/project.py
from datetime import date, datetime
from typing import Annotated, List, Literal, Optional

from pydantic import Field, ValidationInfo, field_validator

from timetracker.schemas.common import CamelModel, NotNull

ProjectStatus = Literal["active", "inactive", "completed", "archived"]
OptionalFlag = Annotated[Optional[bool], NotNull]


class ProjectBase(CamelModel):
    description: Optional[str] = None
    organization_id: Optional[str] = None
    department_id: Optional[str] = None
    manager_id: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    budget: Optional[float] = Field(default=None, ge=0)
    project_number: Optional[str] = None

    @field_validator("end_date")
    @classmethod
    def end_after_start(cls, end_date: Optional[date], info: ValidationInfo) -> Optional[date]:
        start_date = info.data.get("start_date")
        if end_date and start_date and end_date < start_date:
            raise ValueError("End date must be on or after start date")
        return end_date


class ProjectCreate(ProjectBase):
    name: str = Field(min_length=1, max_length=255)
    status: ProjectStatus = "active"
    is_enterprise_wide: bool = False
    is_template: bool = False
    allow_time_tracking: bool = True
    require_task_selection: bool = False
    enable_budget_tracking: bool = False
    enable_billing: bool = False


class ProjectUpdate(ProjectBase):
    name: Annotated[Optional[str], NotNull, Field(min_length=1, max_length=255)] = None
    status: Annotated[Optional[ProjectStatus], NotNull] = None
    is_enterprise_wide: OptionalFlag = None
    is_template: OptionalFlag = None
    allow_time_tracking: OptionalFlag = None
    require_task_selection: OptionalFlag = None
    enable_budget_tracking: OptionalFlag = None
    enable_billing: OptionalFlag = None


class Project(ProjectBase):
    id: str
    name: str
    status: ProjectStatus
    user_id: str
    is_enterprise_wide: bool
    is_template: bool
    allow_time_tracking: bool
    require_task_selection: bool
    enable_budget_tracking: bool
    enable_billing: bool
    created_at: datetime
    updated_at: datetime


class ProjectEmployeesAssign(CamelModel):
    employee_ids: List[str] = Field(min_length=1)


class ProjectAssignment(CamelModel):
    id: str
    project_id: str
    employee_id: str
    user_id: str
    created_at: datetime
