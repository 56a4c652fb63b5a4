"""Test the admin user-management routes."""


def test_admin_cannot_demote_themselves(client, storage, login_as):
    admin = login_as("admin")
    response = client.post(f"/api/admin/users/{admin['id']}/role", json={"role": "employee"})
    assert response.status_code == 400
    assert response.json()["errors"][0]["field"] == "role"
    assert storage.get_user(admin["id"])["role"] == "admin"


def test_admin_changes_another_users_role(client, storage, login_as):
    other = storage.create_user({"email": "pat@test.com"})
    login_as("admin")
    response = client.post(f"/api/admin/users/{other['id']}/role", json={"role": "manager"})
    assert response.status_code == 200
    assert response.json()["role"] == "manager"
    assert storage.get_user(other["id"])["role"] == "manager"


def test_unknown_role_is_rejected(client, storage, login_as):
    other = storage.create_user({"email": "pat@test.com"})
    login_as("admin")
    response = client.post(f"/api/admin/users/{other['id']}/role", json={"role": "superuser"})
    assert response.status_code == 400


def test_create_user_and_reject_duplicate_email(client, login_as):
    login_as("admin")
    response = client.post("/api/admin/users", json={"email": "New.Hire@Test.com", "firstName": "New"})
    assert response.status_code == 201
    assert response.json()["email"] == "new.hire@test.com"
    assert response.json()["role"] == "employee"

    response = client.post("/api/admin/users", json={"email": "new.hire@test.com"})
    assert response.status_code == 409


def test_admin_cannot_delete_themselves(client, login_as):
    admin = login_as("admin")
    assert client.delete(f"/api/admin/users/{admin['id']}").status_code == 400
    assert client.delete("/api/admin/users/missing").status_code == 404


def test_delete_user_refused_while_they_own_projects(client, storage, login_as):
    other = storage.create_user({"email": "pm@test.com", "role": "project_manager"})
    storage.create_project({"name": "Audit", "userId": other["id"]})
    login_as("admin")
    response = client.delete(f"/api/admin/users/{other['id']}")
    assert response.status_code == 409
    assert "projects" in response.json()["message"]


def test_link_employee_to_user(client, storage, login_as):
    admin = login_as("admin")
    other = storage.create_user({"email": "pat@test.com"})
    employee = storage.create_employee({"employeeId": "E7", "firstName": "Pat", "lastName": "Doe",
                                        "department": "Finance", "userId": admin["id"]})

    without = {u["email"] for u in client.get("/api/admin/users/without-employee").json()}
    assert "pat@test.com" in without

    response = client.post(f"/api/admin/employees/{employee['id']}/link-user", json={"userId": other["id"]})
    assert response.status_code == 200
    assert response.json()["userId"] == other["id"]

    without = {u["email"] for u in client.get("/api/admin/users/without-employee").json()}
    assert "pat@test.com" not in without


def test_organization_and_department_management(client, login_as):
    login_as("admin")
    organization = client.post("/api/organizations", json={"name": "Acme"}).json()
    response = client.post("/api/departments", json={"name": "Finance", "organizationId": organization["id"]})
    assert response.status_code == 201
    department = response.json()

    listed = client.get(f"/api/organizations/{organization['id']}/departments").json()
    assert [d["id"] for d in listed] == [department["id"]]

    response = client.post("/api/departments", json={"name": "Legal", "organizationId": "missing"})
    assert response.status_code == 400
    assert response.json()["errors"][0]["field"] == "organizationId"

    assert client.delete(f"/api/organizations/{organization['id']}").status_code == 409
    assert client.delete(f"/api/departments/{department['id']}").status_code == 204
    assert client.delete(f"/api/organizations/{organization['id']}").status_code == 204
