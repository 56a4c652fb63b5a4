# timetracker/storage/fallback.py
import logging
from typing import Optional

from timetracker.core.exceptions import StorageUnavailable
from timetracker.storage.base import Storage

logger = logging.getLogger(__name__)


class FallbackStorage(Storage):
    """
    Stand-in used when no database is configured or reachable.

    Reads come back empty, writes raise ``StorageUnavailable``. The app can
    still start, serve health checks and render empty pages.
    """

    kind = "fallback"
    degraded = True

    def __init__(self, reason: Optional[str] = None):
        self.degraded_reason = reason or "no database configured"

    def _unavailable(self, *args, **kwargs):
        logger.warning("Write rejected: fallback storage is active (%s)", self.degraded_reason)
        raise StorageUnavailable("Storage unavailable: no database is connected",
                                 details={"reason": self.degraded_reason})

    def _empty(self, *args, **kwargs):
        return []

    def _none(self, *args, **kwargs):
        return None

    list_users = _empty
    get_user = _none
    get_user_by_email = _none
    create_user = _unavailable
    upsert_user = _unavailable
    update_user = _unavailable
    update_user_role = _unavailable
    delete_user = _unavailable
    list_users_without_employee = _empty

    list_organizations = _empty
    get_organization = _none
    create_organization = _unavailable
    update_organization = _unavailable
    delete_organization = _unavailable
    list_departments_by_organization = _empty

    list_departments = _empty
    get_department = _none
    create_department = _unavailable
    update_department = _unavailable
    delete_department = _unavailable
    assign_department_manager = _unavailable

    list_employees = _empty
    get_employee = _none
    create_employee = _unavailable
    update_employee = _unavailable
    delete_employee = _unavailable
    link_employee_user = _unavailable

    list_projects = _empty
    get_project = _none
    create_project = _unavailable
    update_project = _unavailable
    delete_project = _unavailable
    list_project_employees = _empty
    assign_project_employees = _unavailable
    remove_project_employee = _unavailable

    list_tasks = _empty
    get_task = _none
    create_task = _unavailable
    update_task = _unavailable
    delete_task = _unavailable
    clone_task = _unavailable

    list_time_entries = _empty
    get_time_entry = _none
    create_time_entry = _unavailable
    update_time_entry = _unavailable
    delete_time_entry = _unavailable
    list_project_time_entries = _empty

    def dashboard_stats(self, user_id, start_date=None, end_date=None):
        return {
            "totalHours": 0.0,
            "billableHours": 0.0,
            "totalEntries": 0,
            "activeProjects": 0,
            "totalProjects": 0,
            "totalEmployees": 0,
        }

    project_breakdown = _empty
    recent_activity = _empty
    department_hours = _empty

    def check_health(self):
        return {"status": "unavailable", "reason": self.degraded_reason}
