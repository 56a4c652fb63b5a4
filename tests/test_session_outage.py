"""Test how requests behave when the session store or the database is unreachable."""

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError

from timetracker.db.session import create_db_engine
from timetracker.sessions.middleware import new_session_id, sign_session_id
from timetracker.sessions.store import DatabaseSessionStore, MemorySessionStore
from timetracker.storage.fallback import FallbackStorage


class UnreachableEngine:
    def begin(self):
        raise OperationalError("SELECT 1", {}, Exception("connection reset"))

    connect = begin


class ExhaustedPoolEngine:
    def begin(self):
        raise PoolTimeoutError("QueuePool limit of size 5 overflow 10 reached, connection timed out")


class RecordingScheduler:
    def __init__(self):
        self.calls = []

    def __call__(self, delay, callback):
        self.calls.append((delay, callback))


@pytest.fixture
def database_sessions(storage):
    store = DatabaseSessionStore(storage.engine, reconnect_base=2.0, scheduler=RecordingScheduler())
    store.create_table()
    return store


@pytest.fixture
def signed_in_client(make_app, settings, storage, database_sessions):
    user = storage.create_user({"email": "pat@test.com", "role": "employee"})
    sid = new_session_id()
    database_sessions.set(sid, {"userId": user["id"], "email": user["email"], "isAuthenticated": True}, 600)
    client = TestClient(make_app(settings, storage=storage, session_store=database_sessions))
    client.cookies.set(settings.SESSION_COOKIE_NAME, sign_session_id(sid, settings.SESSION_SECRET))
    return client


def test_signed_in_request_succeeds_while_connected(signed_in_client):
    assert signed_in_client.get("/api/projects").status_code == 200


def test_lost_session_database_answers_503_with_retry_after(signed_in_client, database_sessions, monkeypatch):
    monkeypatch.setattr(database_sessions, "engine", UnreachableEngine())

    response = signed_in_client.get("/api/projects")
    assert response.status_code == 503
    assert response.json() == {"message": "Authentication temporarily unavailable"}
    assert int(response.headers["retry-after"]) >= 1
    assert not database_sessions.connected
    assert len(database_sessions._scheduler.calls) == 1

    response = signed_in_client.get("/api/health")
    assert response.status_code == 503
    assert response.json()["sessionStore"]["status"] == "disconnected"
    assert signed_in_client.get("/api/health/sessions").status_code == 503


def test_exhausted_pool_answers_503_and_stays_connected(signed_in_client, database_sessions, monkeypatch):
    monkeypatch.setattr(database_sessions, "engine", ExhaustedPoolEngine())

    response = signed_in_client.get("/api/projects")
    assert response.status_code == 503
    assert "retry-after" in response.headers
    assert database_sessions.connected
    assert database_sessions._scheduler.calls == []


def test_unreachable_database_at_startup_degrades_to_fallback(make_app, onprem_settings):
    settings = onprem_settings.model_copy(update={
        "DATABASE_URL": "sqlite:////nonexistent-dir/timetracker.db",
        "DB_CONNECT_RETRIES": 1,
    })
    app = make_app(settings)

    assert isinstance(app.state.storage, FallbackStorage)
    assert app.state.storage.degraded_reason == "startup connection failed: cannot reach host"
    assert isinstance(app.state.session_store, MemorySessionStore)

    client = TestClient(app)
    response = client.get("/api/health")
    assert response.status_code == 503
    assert response.json()["database"]["status"] == "unavailable"
    assert client.get("/health").json()["database"] == "disconnected"


def test_onprem_production_shares_one_scheduler(make_app, onprem_settings, storage):
    app = make_app(onprem_settings, storage=storage)
    store = app.state.session_store
    assert isinstance(store, DatabaseSessionStore)
    assert store._scheduler.scheduler is app.state.session_cleanup.scheduler
