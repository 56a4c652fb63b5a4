# timetracker/schemas/dashboard.py
from typing import Optional

from timetracker.schemas.common import CamelModel


class DashboardStats(CamelModel):
    total_hours: float = 0
    billable_hours: float = 0
    total_entries: int = 0
    active_projects: int = 0
    total_projects: int = 0
    total_employees: int = 0


class ProjectBreakdown(CamelModel):
    project_id: Optional[str] = None
    project_name: str
    hours: float
    percentage: float


class DepartmentHours(CamelModel):
    department: str
    total_hours: float
    user_count: int
    entry_count: int
