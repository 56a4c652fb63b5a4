# timetracker/schemas/organization.py
from datetime import datetime
from typing import Annotated, Optional

from pydantic import Field

from timetracker.schemas.common import CamelModel, NotNull

Name = Annotated[str, Field(min_length=1, max_length=255)]
OptionalName = Annotated[Optional[str], NotNull, Field(min_length=1, max_length=255)]


class OrganizationCreate(CamelModel):
    name: Name
    description: Optional[str] = None


class OrganizationUpdate(CamelModel):
    name: OptionalName = None
    description: Optional[str] = None


class Organization(CamelModel):
    id: str
    name: str
    description: Optional[str] = None
    user_id: str
    created_at: datetime
    updated_at: datetime


class DepartmentCreate(CamelModel):
    name: Name
    organization_id: str = Field(min_length=1)
    manager_id: Optional[str] = None
    description: Optional[str] = Field(default=None, max_length=255)


class DepartmentUpdate(CamelModel):
    name: OptionalName = None
    organization_id: Annotated[Optional[str], NotNull] = None
    manager_id: Optional[str] = None
    description: Optional[str] = Field(default=None, max_length=255)


class DepartmentManager(CamelModel):
    manager_id: Optional[str] = None


class Department(CamelModel):
    id: str
    name: str
    organization_id: str
    manager_id: Optional[str] = None
    description: Optional[str] = None
    user_id: str
    created_at: datetime
    updated_at: datetime
