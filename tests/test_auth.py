"""Test SAML sign-in, logout and the development bypass."""

import pytest
from fastapi.testclient import TestClient

from timetracker.auth.providers import DevBypassProvider, TEST_USER, safe_redirect
from timetracker.core.config import load_settings
from timetracker.main import create_app
from timetracker.sessions.middleware import sign_session_id, unsign_session_id


def session_id_from(response, settings):
    token = response.cookies.get(settings.SESSION_COOKIE_NAME)
    return unsign_session_id(token, settings.SESSION_SECRET) if token else None


def test_login_redirects_to_identity_provider(client):
    response = client.get("/api/login", params={"returnTo": "/reports"}, follow_redirects=False)
    assert response.status_code == 302
    assert response.headers["location"] == "https://idp.example.com/sso?RelayState=/reports"


def test_callback_for_unknown_user_creates_employee_with_fresh_session(
        client, storage, session_store, settings, saml_client):
    session_store.set("pre-login-sid", {"returnTo": "/reports"}, 600)
    client.cookies.set(settings.SESSION_COOKIE_NAME, sign_session_id("pre-login-sid", settings.SESSION_SECRET))
    saml_client.sign_in_as("New.Person@Test.com", first_name="New", last_name="Person")

    response = client.post("/saml/acs", data={"SAMLResponse": "assertion", "RelayState": "/reports"},
                           follow_redirects=False)

    assert response.status_code == 302
    assert response.headers["location"] == "/reports"
    user = storage.get_user_by_email("new.person@test.com")
    assert user["role"] == "employee"
    assert user["firstName"] == "New"
    assert user["lastLoginAt"] is not None

    new_sid = session_id_from(response, settings)
    assert new_sid and new_sid != "pre-login-sid"
    assert session_store.get("pre-login-sid") is None
    assert session_store.get(new_sid)["userId"] == user["id"]

    client.cookies.clear()
    client.cookies.set(settings.SESSION_COOKIE_NAME, sign_session_id(new_sid, settings.SESSION_SECRET))
    assert client.get("/api/auth/user").json()["email"] == "new.person@test.com"

    client.cookies.clear()
    client.cookies.set(settings.SESSION_COOKIE_NAME, sign_session_id("pre-login-sid", settings.SESSION_SECRET))
    assert client.get("/api/auth/user").status_code == 401


def test_callback_keeps_existing_role(client, storage, saml_client):
    existing = storage.create_user({"email": "boss@test.com", "role": "manager"})
    saml_client.sign_in_as("boss@test.com")
    client.post("/saml/acs", data={"SAMLResponse": "assertion"}, follow_redirects=False)
    assert storage.get_user(existing["id"])["role"] == "manager"


def test_invalid_assertion_redirects_to_error_page(client, storage, saml_client):
    saml_client.error = "Signature validation failed"
    response = client.post("/saml/acs", data={"SAMLResponse": "forged"}, follow_redirects=False)
    assert response.status_code == 302
    assert response.headers["location"] == "/login-error?reason=auth_error"
    assert storage.list_users() == []

    page = client.get("/login-error", params={"reason": "auth_error"})
    assert "could not be verified" in page.text


def test_inactive_user_is_refused(client, storage, saml_client):
    storage.create_user({"email": "gone@test.com", "isActive": False})
    saml_client.sign_in_as("gone@test.com")
    response = client.post("/saml/acs", data={"SAMLResponse": "assertion"}, follow_redirects=False)
    assert response.headers["location"] == "/login-error?reason=no_user"


def test_relay_state_must_be_a_local_path():
    assert safe_redirect("https://evil.example.com") == "/"
    assert safe_redirect("//evil.example.com") == "/"
    assert safe_redirect("/dashboard") == "/dashboard"


def test_logout_destroys_session(client, session_store, settings, login_as):
    login_as("employee")
    sid = unsign_session_id(client.cookies.get(settings.SESSION_COOKIE_NAME), settings.SESSION_SECRET)
    response = client.get("/api/logout", follow_redirects=False)
    assert response.status_code == 302
    assert response.headers["location"] == "https://idp.example.com/slo"
    assert session_store.get(sid) is None


def test_metadata_is_served_as_xml(client):
    response = client.get("/saml/metadata")
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("application/xml")


def test_dev_bypass_acts_as_test_admin(storage, session_store):
    settings = load_settings(APP_ENV="development", DEPLOYMENT_MODE="cloud")
    app = create_app(settings, storage=storage, session_store=session_store,
                     auth_provider=DevBypassProvider(settings))
    client = TestClient(app)
    response = client.get("/api/users/me")
    assert response.status_code == 200
    assert response.json()["email"] == TEST_USER["email"]
    assert response.json()["role"] == "admin"
    assert client.get("/saml/metadata").status_code == 404


def test_dev_bypass_rechecks_mode_on_every_request(storage, session_store):
    settings = load_settings(APP_ENV="development", DEPLOYMENT_MODE="cloud")
    provider = DevBypassProvider(settings)
    provider.settings = settings.model_copy(update={"APP_ENV": "production", "DEPLOYMENT_MODE": "onprem"})
    app = create_app(settings, storage=storage, session_store=session_store, auth_provider=provider)
    client = TestClient(app, raise_server_exceptions=False)
    response = client.get("/api/users/me")
    assert response.status_code == 500
    assert storage.list_users() == []


@pytest.mark.parametrize("reason", ["no_user", "something-else"])
def test_login_error_page(client, reason):
    response = client.get("/login-error", params={"reason": reason})
    assert response.status_code == 401
    assert "Sign-in failed" in response.text
