"""Test the health endpoints and response headers."""

from fastapi.testclient import TestClient

from timetracker.core.config import load_settings
from timetracker.main import build_session_store, create_app
from timetracker.sessions.store import DatabaseSessionStore, MemorySessionStore
from timetracker.storage.fallback import FallbackStorage


class RecordingScheduler:
    running = True

    def __init__(self):
        self.jobs = []

    def add_job(self, func, trigger, **kwargs):
        self.jobs.append((func, trigger, kwargs))


def test_health_with_database(client):
    response = client.get("/api/health")
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "healthy"
    assert body["storage"] == "relational"
    assert body["database"]["status"] == "healthy"
    assert body["sessionStore"]["status"] == "healthy"
    assert body["deployment"] == "cloud"
    assert body["version"] == "1.0.0"


def test_health_database_and_sessions(client):
    assert client.get("/api/health/database").json()["database"]["status"] == "healthy"
    assert client.get("/api/health/sessions").json()["sessionStore"]["store"] == "memory"


def test_fallback_storage_is_healthy_in_development(session_store):
    settings = load_settings(APP_ENV="development", DEPLOYMENT_MODE="cloud")
    app = create_app(settings, storage=FallbackStorage("development mode"), session_store=session_store)
    response = TestClient(app).get("/api/health")
    assert response.status_code == 200
    assert response.json()["database"] == {"status": "unavailable", "reason": "development mode"}


def test_fallback_storage_is_healthy_for_onprem_outside_production(session_store):
    settings = load_settings(APP_ENV="development", DEPLOYMENT_MODE="onprem")
    app = create_app(settings, storage=FallbackStorage("development mode"), session_store=session_store)
    client = TestClient(app)
    assert client.get("/api/health").status_code == 200
    assert client.get("/api/health/database").status_code == 200
    assert client.get("/health").json()["database"] == "fallback"


def test_fallback_storage_is_degraded_in_onprem_production(make_app, onprem_settings, session_store):
    app = make_app(onprem_settings, storage=FallbackStorage("startup connection failed: cannot reach host"),
                   session_store=session_store)
    client = TestClient(app)
    response = client.get("/api/health")
    assert response.status_code == 503
    assert response.json()["status"] == "degraded"
    assert response.json()["deployment"] == "on-premises"
    assert client.get("/api/health/database").status_code == 503

    response = client.get("/health")
    assert response.status_code == 503
    assert response.json()["database"] == "disconnected"
    assert response.json()["onPremises"] is True


def test_root_health_reports_database_state(client):
    response = client.get("/health")
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "healthy"
    assert body["database"] == "connected"
    assert body["environment"] == "test"
    assert body["onPremises"] is False


def test_onprem_production_keeps_sessions_in_the_database(onprem_settings, storage):
    store = build_session_store(onprem_settings, storage, RecordingScheduler())
    assert isinstance(store, DatabaseSessionStore)
    store.set("abc", {"userId": "u1"}, 60)
    assert store.get("abc") == {"userId": "u1"}


def test_sessions_stay_in_memory_outside_onprem_production(storage):
    settings = load_settings(APP_ENV="development", DEPLOYMENT_MODE="onprem")
    assert isinstance(build_session_store(settings, storage), MemorySessionStore)


def test_sessions_stay_in_memory_without_a_database(onprem_settings):
    store = build_session_store(onprem_settings, FallbackStorage("startup connection failed: unknown"))
    assert isinstance(store, MemorySessionStore)


def test_writes_against_fallback_storage_fail_cleanly(session_store):
    settings = load_settings(APP_ENV="development", DEPLOYMENT_MODE="cloud")
    app = create_app(settings, storage=FallbackStorage("development mode"), session_store=session_store)
    client = TestClient(app)
    assert client.get("/api/projects").json() == []
    response = client.post("/api/projects", json={"name": "Audit"})
    assert response.status_code == 500
    assert response.json() == {"message": "Storage unavailable"}


def test_security_headers(client):
    response = client.get("/api/health")
    assert response.headers["x-content-type-options"] == "nosniff"
    assert response.headers["x-frame-options"] == "DENY"
    assert "strict-transport-security" not in response.headers
