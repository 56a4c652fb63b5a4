# timetracker/api/endpoints/dashboard.py
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from timetracker.core import security
from timetracker.core.dependencies import get_storage
from timetracker.core.exceptions import ValidationException
from timetracker.schemas import dashboard as dashboard_schema
from timetracker.schemas import time_entry as time_entry_schema
from timetracker.storage.base import Record, Storage

router = APIRouter()


class DateRange:
    """Optional ``startDate``/``endDate`` query pair, both inclusive."""

    def __init__(
        self,
        start_date: Optional[date] = Query(default=None, alias="startDate"),
        end_date: Optional[date] = Query(default=None, alias="endDate"),
    ):
        if start_date and end_date and end_date < start_date:
            raise ValidationException.for_field("endDate", "End date must be on or after start date")
        self.start_date = start_date
        self.end_date = end_date


@router.get("/stats", response_model=dashboard_schema.DashboardStats)
def read_dashboard_stats(
    period: DateRange = Depends(),
    storage: Storage = Depends(get_storage),
    current_user: Record = Depends(security.get_current_user)
):
    """ Hour totals and project/employee counts for the caller (last 30 days by default). """
    return storage.dashboard_stats(current_user["id"], period.start_date, period.end_date)


@router.get("/project-breakdown", response_model=List[dashboard_schema.ProjectBreakdown])
def read_project_breakdown(
    period: DateRange = Depends(),
    storage: Storage = Depends(get_storage),
    current_user: Record = Depends(security.get_current_user)
):
    return storage.project_breakdown(current_user["id"], period.start_date, period.end_date)


@router.get("/recent-activity", response_model=List[time_entry_schema.TimeEntry])
def read_recent_activity(
    limit: int = Query(default=10, ge=1, le=100),
    period: DateRange = Depends(),
    storage: Storage = Depends(get_storage),
    current_user: Record = Depends(security.get_current_user)
):
    return storage.recent_activity(current_user["id"], limit, period.start_date, period.end_date)


@router.get("/department-hours", response_model=List[dashboard_schema.DepartmentHours])
def read_department_hours(
    period: DateRange = Depends(),
    storage: Storage = Depends(get_storage),
    current_user: Record = Depends(security.get_current_user)
):
    """ Hours logged per department across the organization. """
    return storage.department_hours(period.start_date, period.end_date)
