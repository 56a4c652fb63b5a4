# timetracker/core/security.py
# Role permissions and the role-checking dependencies every mutating route declares.
from typing import Dict, FrozenSet, Tuple

from fastapi import Depends, Request

from timetracker.auth.providers import AuthProvider
from timetracker.core.dependencies import get_auth_provider, get_storage
from timetracker.core.exceptions import AuthenticationRequired, AuthorizationDenied
from timetracker.storage.base import Record, Storage

ADMIN = "admin"
MANAGER = "manager"
PROJECT_MANAGER = "project_manager"
EMPLOYEE = "employee"
VIEWER = "viewer"

ROLE_PERMISSIONS: Dict[str, Tuple[str, ...]] = {
    ADMIN: (
        "manage_users", "manage_system", "view_all_projects", "manage_all_departments",
        "generate_all_reports", "system_configuration",
    ),
    MANAGER: (
        "manage_department", "view_department_projects", "manage_employees",
        "generate_department_reports", "view_department_analytics",
    ),
    PROJECT_MANAGER: (
        "create_projects", "manage_projects", "view_project_analytics",
        "generate_project_reports", "manage_tasks", "assign_team_members",
    ),
    EMPLOYEE: (
        "log_time", "view_assigned_projects", "view_own_reports",
        "manage_profile", "complete_tasks",
    ),
    VIEWER: (
        "view_assigned_projects", "view_own_time_entries", "view_basic_reports",
    ),
}

# Roles that see every project and every time entry.
ORGANIZATION_WIDE_ROLES = frozenset({ADMIN, MANAGER})


def get_role_permissions(role: str) -> Tuple[str, ...]:
    return ROLE_PERMISSIONS.get(role, ROLE_PERMISSIONS[EMPLOYEE])


def get_current_user(
    request: Request,
    storage: Storage = Depends(get_storage),
    provider: AuthProvider = Depends(get_auth_provider),
) -> Record:
    user = provider.authenticate(request, storage)
    if user is None:
        raise AuthenticationRequired()
    return user


class RoleChecker:
    """Dependency that admits only callers whose current role is in ``allowed_roles``."""

    def __init__(self, *allowed_roles: str):
        self.allowed_roles: FrozenSet[str] = frozenset(allowed_roles)

    def __call__(self, current_user: Record = Depends(get_current_user)) -> Record:
        if current_user.get("role") not in self.allowed_roles:
            raise AuthorizationDenied()
        return current_user

    def __repr__(self):
        return f"RoleChecker({', '.join(sorted(self.allowed_roles))})"


def require_roles(*roles: str) -> RoleChecker:
    return RoleChecker(*roles)


def sees_everything(user: Record) -> bool:
    return user.get("role") in ORGANIZATION_WIDE_ROLES


def can_view_project(user: Record, project: Record) -> bool:
    return (
        sees_everything(user)
        or project.get("isEnterpriseWide")
        or user["id"] in (project.get("userId"), project.get("managerId"))
    )


def can_modify_project(user: Record, project: Record) -> bool:
    return user.get("role") == ADMIN or user["id"] in (project.get("userId"), project.get("managerId"))


# Allow-lists shared by the route modules.
admin_only = require_roles(ADMIN)
project_editors = require_roles(ADMIN, PROJECT_MANAGER)
time_loggers = require_roles(ADMIN, MANAGER, PROJECT_MANAGER, EMPLOYEE)
people_managers = require_roles(ADMIN, MANAGER)
report_viewers = require_roles(ADMIN, MANAGER, PROJECT_MANAGER)
any_signed_in = require_roles(*ROLE_PERMISSIONS)
