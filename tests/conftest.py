"""Shared fixtures: SQLite-backed storage, in-memory sessions and a fake SAML identity provider."""

import pytest
from fastapi.testclient import TestClient

from timetracker.auth.providers import SamlAuthProvider
from timetracker.auth.saml import SamlAssertion, SamlClient, SamlValidationError
from timetracker.core.config import load_settings
from timetracker.db.session import create_db_engine
from timetracker.main import create_app
from timetracker.sessions.middleware import new_session_id, sign_session_id
from timetracker.sessions.store import MemorySessionStore
from timetracker.storage.relational import RelationalStorage

SESSION_SECRET = "test-session-secret-with-enough-length-0123456789"


class FakeSamlClient(SamlClient):
    """Returns whatever assertion (or error) the test configured."""

    def __init__(self):
        self.assertion = None
        self.error = None

    def login_url(self, request_data, relay_state=None):
        return f"https://idp.example.com/sso?RelayState={relay_state or ''}"

    def process_response(self, request_data):
        if self.error:
            raise SamlValidationError(self.error)
        return self.assertion

    def metadata(self):
        return "<EntityDescriptor entityID=\"timetracker-test\"/>"

    def logout_url(self, request_data, name_id=None, session_index=None):
        return "https://idp.example.com/slo"

    def sign_in_as(self, email, first_name="Pat", last_name="Doe"):
        self.assertion = SamlAssertion(
            name_id=email,
            attributes={"firstName": [first_name], "lastName": [last_name]},
            session_index="idx-1",
        )


@pytest.fixture
def settings():
    return load_settings(APP_ENV="test", DEPLOYMENT_MODE="cloud", SESSION_SECRET=SESSION_SECRET)


@pytest.fixture
def onprem_settings():
    return load_settings(
        APP_ENV="production",
        DEPLOYMENT_MODE="onprem",
        DATABASE_URL="sqlite:///:memory:",
        SESSION_SECRET=SESSION_SECRET,
        SAML_ENTITY_ID="timetracker-test",
        SAML_SSO_URL="https://idp.example.com/sso",
        SAML_CERTIFICATE="MIIC...",
    )


@pytest.fixture
def storage():
    storage = RelationalStorage(create_db_engine("sqlite:///:memory:"))
    storage.create_schema()
    yield storage
    storage.close()


@pytest.fixture
def session_store():
    return MemorySessionStore()


@pytest.fixture
def saml_client():
    return FakeSamlClient()


@pytest.fixture
def app(settings, storage, session_store, saml_client):
    return create_app(
        settings,
        storage=storage,
        session_store=session_store,
        auth_provider=SamlAuthProvider(settings, client=saml_client),
    )


@pytest.fixture
def make_app(saml_client):
    """Builds an app for ``settings``, signing in through the fake identity provider."""

    def _make(settings, **components):
        components.setdefault("auth_provider", SamlAuthProvider(settings, client=saml_client))
        return create_app(settings, **components)

    return _make


@pytest.fixture
def client(app):
    return TestClient(app)


@pytest.fixture
def login_as(client, storage, session_store, settings):
    """Creates a user with ``role`` and points the client's session cookie at them."""
    counter = {"n": 0}

    def _login(role, email=None):
        counter["n"] += 1
        user = storage.create_user({
            "email": email or f"{role}{counter['n']}@test.com",
            "firstName": role.title(),
            "lastName": "User",
            "role": role,
        })
        sid = new_session_id()
        session_store.set(sid, {"userId": user["id"], "email": user["email"], "isAuthenticated": True},
                          settings.SESSION_TTL_SECONDS)
        client.cookies.clear()
        client.cookies.set(settings.SESSION_COOKIE_NAME, sign_session_id(sid, settings.SESSION_SECRET))
        return user

    return _login
