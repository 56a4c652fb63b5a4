# timetracker/schemas/user.py
from datetime import datetime
from typing import Annotated, List, Literal, Optional

from pydantic import EmailStr

from timetracker.schemas.common import CamelModel, NotNull

Role = Literal["admin", "manager", "project_manager", "employee", "viewer"]


class UserBase(CamelModel):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    profile_image_url: Optional[str] = None
    organization_id: Optional[str] = None
    department: Optional[str] = None


class UserCreate(UserBase):
    email: EmailStr
    role: Role = "employee"
    is_active: bool = True


class UserUpdate(UserBase):
    is_active: Annotated[Optional[bool], NotNull] = None


class RoleChange(CamelModel):
    role: Role


class User(UserBase):
    id: str
    email: str
    role: Role
    is_active: bool = True
    last_login_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class CurrentRole(CamelModel):
    role: str
    permissions: List[str]
