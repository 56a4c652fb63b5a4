# timetracker/schemas/employee.py
from datetime import datetime
from typing import Annotated, Optional

from pydantic import Field

from timetracker.schemas.common import CamelModel, NotNull

RequiredText = Annotated[str, Field(min_length=1, max_length=255)]
OptionalText = Annotated[Optional[str], NotNull, Field(min_length=1, max_length=255)]


class EmployeeCreate(CamelModel):
    employee_id: RequiredText
    first_name: RequiredText
    last_name: RequiredText
    department: RequiredText
    user_id: Optional[str] = None


class EmployeeUpdate(CamelModel):
    employee_id: OptionalText = None
    first_name: OptionalText = None
    last_name: OptionalText = None
    department: OptionalText = None
    user_id: Optional[str] = None


class Employee(CamelModel):
    id: str
    employee_id: str
    first_name: str
    last_name: str
    department: str
    user_id: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    assignment_id: Optional[str] = None
    assigned_at: Optional[datetime] = None


class EmployeeUserLink(CamelModel):
    user_id: str = Field(min_length=1)
