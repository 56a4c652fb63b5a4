"""Test the project and task routes."""

from datetime import date

from timetracker.sessions.middleware import sign_session_id


def use_session_of(client, settings, token):
    client.cookies.clear()
    client.cookies.set(settings.SESSION_COOKIE_NAME, token)


def test_project_lifecycle(client, settings, login_as):
    login_as("viewer")
    viewer_token = client.cookies.get(settings.SESSION_COOKIE_NAME)
    login_as("project_manager")
    manager_token = client.cookies.get(settings.SESSION_COOKIE_NAME)

    response = client.post("/api/projects", json={"name": "Audit", "startDate": "2024-01-01",
                                                  "endDate": "2024-03-01"})
    assert response.status_code == 201
    created = response.json()
    assert created["id"]
    assert created["status"] == "active"
    assert created["startDate"] == "2024-01-01"

    response = client.get(f"/api/projects/{created['id']}")
    assert response.status_code == 200
    assert response.json() == created

    use_session_of(client, settings, viewer_token)
    assert client.delete(f"/api/projects/{created['id']}").status_code == 403

    use_session_of(client, settings, manager_token)
    assert client.delete(f"/api/projects/{created['id']}").status_code == 204
    assert client.get(f"/api/projects/{created['id']}").status_code == 404


def test_end_date_before_start_date_is_rejected(client, storage, login_as):
    login_as("project_manager")
    response = client.post("/api/projects", json={"name": "Audit", "startDate": "2024-03-01",
                                                  "endDate": "2024-01-01"})
    assert response.status_code == 400
    body = response.json()
    assert body["message"] == "Invalid request data"
    assert body["errors"][0]["field"] == "endDate"
    assert storage.list_projects() == []


def test_missing_name_is_reported_per_field(client, login_as):
    login_as("admin")
    response = client.post("/api/projects", json={"description": "no name"})
    assert response.status_code == 400
    assert response.json()["errors"] == [{"field": "name", "message": "Field required"}]


def test_partial_update_leaves_other_fields(client, login_as):
    login_as("project_manager")
    created = client.post("/api/projects", json={"name": "Audit", "description": "Yearly",
                                                 "startDate": "2024-01-01", "budget": 500}).json()

    response = client.patch(f"/api/projects/{created['id']}", json={"status": "completed"})
    assert response.status_code == 200
    updated = response.json()
    assert updated["status"] == "completed"
    for field in ("name", "description", "startDate", "budget", "userId"):
        assert updated[field] == created[field]


def test_explicit_null_for_required_field_is_rejected(client, login_as):
    login_as("project_manager")
    created = client.post("/api/projects", json={"name": "Audit"}).json()
    response = client.put(f"/api/projects/{created['id']}", json={"name": None})
    assert response.status_code == 400


def test_update_cannot_move_end_date_before_stored_start(client, login_as):
    login_as("project_manager")
    created = client.post("/api/projects", json={"name": "Audit", "startDate": "2024-06-01"}).json()
    response = client.put(f"/api/projects/{created['id']}", json={"endDate": "2024-01-01"})
    assert response.status_code == 400
    assert response.json()["errors"][0]["field"] == "endDate"


def test_projects_outside_scope_are_not_found(client, storage, login_as):
    owner = storage.create_user({"email": "other@test.com", "role": "project_manager"})
    hidden = storage.create_project({"name": "Hidden", "userId": owner["id"]})
    shared = storage.create_project({"name": "Shared", "userId": owner["id"], "isEnterpriseWide": True})

    login_as("employee")
    assert client.get(f"/api/projects/{hidden['id']}").status_code == 404
    assert client.get(f"/api/projects/{shared['id']}").status_code == 200
    assert [p["name"] for p in client.get("/api/projects").json()] == ["Shared"]

    login_as("manager")
    assert {p["name"] for p in client.get("/api/projects").json()} == {"Hidden", "Shared"}


def test_project_manager_cannot_modify_someone_elses_project(client, storage, login_as):
    owner = storage.create_user({"email": "other@test.com", "role": "project_manager"})
    shared = storage.create_project({"name": "Shared", "userId": owner["id"], "isEnterpriseWide": True})
    login_as("project_manager")
    assert client.put(f"/api/projects/{shared['id']}", json={"name": "Mine"}).status_code == 403
    assert storage.get_project(shared["id"])["name"] == "Shared"


def test_delete_cascades_tasks_and_assignments_but_keeps_time_entries(client, storage, login_as):
    manager = login_as("project_manager")
    project = client.post("/api/projects", json={"name": "Audit"}).json()
    task = client.post("/api/tasks", json={"projectId": project["id"], "title": "Plan"}).json()
    employee = storage.create_employee({"employeeId": "E1", "firstName": "A", "lastName": "B",
                                        "department": "Finance", "userId": manager["id"]})
    response = client.post(f"/api/projects/{project['id']}/employees", json={"employeeIds": [employee["id"]]})
    assert response.status_code == 201
    entry = client.post("/api/time-entries", json={"projectId": project["id"], "taskId": task["id"],
                                                   "hours": 2, "date": "2024-02-01"}).json()

    assert client.delete(f"/api/projects/{project['id']}").status_code == 204

    assert storage.get_task(task["id"]) is None
    assert storage.list_project_employees(project["id"]) == []
    response = client.get(f"/api/time-entries/{entry['id']}")
    assert response.status_code == 200
    assert response.json()["projectId"] == project["id"]
    listed = client.get("/api/time-entries").json()
    assert listed[0]["id"] == entry["id"]
    assert listed[0]["projectName"] is None


def test_project_tasks_and_clone(client, storage, login_as):
    login_as("project_manager")
    source = client.post("/api/projects", json={"name": "Audit"}).json()
    target = client.post("/api/projects", json={"name": "Audit 2025"}).json()
    task = client.post("/api/tasks", json={"projectId": source["id"], "title": "Plan", "estimatedHours": 4}).json()
    assert task["createdBy"] == source["userId"]

    assert [t["id"] for t in client.get(f"/api/projects/{source['id']}/tasks").json()] == [task["id"]]

    response = client.post(f"/api/tasks/{task['id']}/clone", json={"targetProjectId": target["id"]})
    assert response.status_code == 201
    clone = response.json()
    assert clone["projectId"] == target["id"]
    assert clone["status"] == "pending"
    assert len(client.get("/api/tasks").json()) == 2


def test_tampered_session_cookie_is_unauthenticated(client, settings, login_as):
    login_as("admin")
    client.cookies.clear()
    client.cookies.set(settings.SESSION_COOKIE_NAME, sign_session_id("forged", "another-secret"))
    assert client.get("/api/projects").status_code == 401


def test_report_lists_entries_with_their_user(client, storage, login_as):
    admin = login_as("admin")
    project = storage.create_project({"name": "Audit", "userId": admin["id"]})
    storage.create_time_entry({"userId": admin["id"], "projectId": project["id"], "hours": 3, "duration": 3,
                               "date": date(2024, 1, 5)})
    response = client.get(f"/api/reports/project-time-entries/{project['id']}")
    assert response.status_code == 200
    rows = response.json()
    assert rows[0]["hours"] == 3
    assert rows[0]["user"]["email"] == admin["email"]

    login_as("employee")
    assert client.get(f"/api/reports/project-time-entries/{project['id']}").status_code == 403
