# timetracker/api/api.py
from fastapi import APIRouter

from timetracker.api.endpoints import (
    admin, dashboard, departments, employees, health, log, organizations, projects, reports,
    tasks, time_entries, users,
)

API_PREFIX = "/api"

# (router, prefix, tag) for every module mounted under API_PREFIX
ROUTERS = [
    (projects.router, "/projects", "projects"),
    (tasks.router, "/tasks", "tasks"),
    (time_entries.router, "/time-entries", "time-entries"),
    (employees.router, "/employees", "employees"),
    (departments.router, "/departments", "departments"),
    (organizations.router, "/organizations", "organizations"),
    (users.router, "/users", "users"),
    (dashboard.router, "/dashboard", "dashboard"),
    (reports.router, "/reports", "reports"),
    (admin.router, "/admin", "admin"),
    (health.router, "/health", "health"),
    (log.router, "/log", "log"),
]

api_router = APIRouter()
for router, prefix, tag in ROUTERS:
    api_router.include_router(router, prefix=prefix, tags=[tag])
