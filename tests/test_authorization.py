"""Every mutating /api route rejects roles outside its allow-list and changes nothing."""

import re
from datetime import date

from fastapi.routing import APIRoute

from timetracker.api.api import API_PREFIX, ROUTERS
from timetracker.core.security import ROLE_PERMISSIONS, RoleChecker, get_role_permissions

MUTATING_METHODS = {"POST", "PUT", "PATCH", "DELETE"}
ALL_ROLES = tuple(ROLE_PERMISSIONS)


def find_role_checker(dependant):
    for dependency in dependant.dependencies:
        if isinstance(dependency.call, RoleChecker):
            return dependency.call
        found = find_role_checker(dependency)
        if found is not None:
            return found
    return None


def mutating_api_routes():
    """Yields (method, full path, route) for every mutating route mounted under the API prefix."""
    for router, prefix, _ in ROUTERS:
        for route in router.routes:
            if not isinstance(route, APIRoute):
                continue
            for method in sorted(route.methods & MUTATING_METHODS):
                yield method, API_PREFIX + prefix + route.path, route


def published_mutating_routes(app):
    for path, operations in app.openapi()["paths"].items():
        if not path.startswith(API_PREFIX + "/"):
            continue
        for method in operations:
            if method.upper() in MUTATING_METHODS:
                yield method.upper(), path


def snapshot(storage):
    return {
        "users": storage.list_users(),
        "organizations": storage.list_organizations(),
        "departments": storage.list_departments(),
        "employees": storage.list_employees(),
        "projects": storage.list_projects(),
        "tasks": storage.list_tasks(),
        "timeEntries": storage.list_time_entries(),
    }


def test_route_listing_covers_every_published_mutating_route(app):
    listed = {(method, path) for method, path, _ in mutating_api_routes()}
    assert len(listed) > 20
    assert listed == set(published_mutating_routes(app))


def test_every_mutating_route_declares_an_allow_list():
    routes = list(mutating_api_routes())
    assert routes
    for method, path, route in routes:
        checker = find_role_checker(route.dependant)
        assert checker is not None, f"{method} {path} has no role check"
        assert checker.allowed_roles <= set(ALL_ROLES)


def test_roles_outside_allow_list_get_403_and_no_change(app, client, storage, settings, login_as):
    tokens = {}
    for role in ALL_ROLES:
        user = login_as(role)
        tokens[role] = (user, client.cookies.get(settings.SESSION_COOKIE_NAME))

    admin = tokens["admin"][0]
    organization = storage.create_organization({"name": "Acme", "userId": admin["id"]})
    project = storage.create_project({"name": "Audit", "userId": admin["id"], "isEnterpriseWide": True})
    task = storage.create_task({"projectId": project["id"], "title": "Plan"})
    employee = storage.create_employee({"employeeId": "E1", "firstName": "A", "lastName": "B",
                                        "department": "Finance", "userId": admin["id"]})
    department = storage.create_department({"name": "Finance", "organizationId": organization["id"],
                                            "userId": admin["id"]})
    entry = storage.create_time_entry({"userId": admin["id"], "projectId": project["id"], "hours": 1,
                                       "duration": 1, "date": date(2024, 1, 2)})
    ids = {
        "project_id": project["id"], "task_id": task["id"], "employee_id": employee["id"],
        "department_id": department["id"], "organization_id": organization["id"], "entry_id": entry["id"],
        "user_id": admin["id"],
    }
    before = snapshot(storage)

    checked = 0
    for method, template, route in mutating_api_routes():
        allowed = find_role_checker(route.dependant).allowed_roles
        path = re.sub(r"\{(\w+)\}", lambda m: ids.get(m.group(1), "unknown"), template)
        for role in ALL_ROLES:
            if role in allowed:
                continue
            client.cookies.clear()
            client.cookies.set(settings.SESSION_COOKIE_NAME, tokens[role][1])
            response = client.request(method, path, json={})
            assert response.status_code == 403, f"{role} {method} {path}: {response.status_code}"
            assert response.json() == {"message": "Insufficient permissions"}
            checked += 1

    assert checked > 0
    assert snapshot(storage) == before


def test_unauthenticated_requests_get_401(client):
    assert client.get("/api/projects").status_code == 401
    assert client.post("/api/projects", json={"name": "Audit"}).status_code == 401
    assert client.get("/api/users/me").json() == {"message": "Unauthorized"}


def test_current_role_lists_permissions(client, login_as):
    login_as("viewer")
    response = client.get("/api/users/current-role")
    assert response.status_code == 200
    assert response.json() == {"role": "viewer", "permissions": list(get_role_permissions("viewer"))}


def test_unknown_role_falls_back_to_employee_permissions():
    assert get_role_permissions("contractor") == ROLE_PERMISSIONS["employee"]
