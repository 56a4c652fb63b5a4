# timetracker/api/endpoints/health.py
import logging
import time

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from timetracker.core.config import Settings
from timetracker.core.dependencies import get_session_store, get_settings, get_storage
from timetracker.db.models import utcnow
from timetracker.sessions.store import SessionStore
from timetracker.storage.base import Storage

logger = logging.getLogger(__name__)

router = APIRouter()


def _respond(body: dict, healthy: bool) -> JSONResponse:
    body["status"] = "healthy" if healthy else "degraded"
    return JSONResponse(status_code=200 if healthy else 503, content=body)


def storage_is_healthy(settings: Settings, storage: Storage, database: dict) -> bool:
    """
    Fallback storage is the expected state outside on-premises production;
    there the database must answer.
    """
    if storage.degraded:
        return not settings.is_onprem_production
    return database.get("status") == "healthy"


@router.get("")
def health_check(
    request: Request,
    settings: Settings = Depends(get_settings),
    storage: Storage = Depends(get_storage),
    session_store: SessionStore = Depends(get_session_store)
):
    """ Process, database, session store and deployment status. 503 when degraded. """
    database = storage.check_health()
    sessions = session_store.check_health()
    healthy = storage_is_healthy(settings, storage, database) and session_store.connected
    if not healthy:
        logger.critical("Health check degraded: database=%s sessions=%s", database, sessions)
    return _respond({
        "timestamp": utcnow().isoformat() + "Z",
        "version": settings.VERSION,
        "environment": settings.APP_ENV,
        "deployment": settings.deployment_label,
        "storage": storage.kind,
        "database": database,
        "sessionStore": sessions,
        "uptime": round(time.monotonic() - request.app.state.started_at, 1),
    }, healthy)


@router.get("/database")
def database_health(
    settings: Settings = Depends(get_settings),
    storage: Storage = Depends(get_storage)
):
    database = storage.check_health()
    healthy = storage_is_healthy(settings, storage, database)
    return _respond({"storage": storage.kind, "database": database}, healthy)


@router.get("/sessions")
def session_store_health(session_store: SessionStore = Depends(get_session_store)):
    return _respond({"sessionStore": session_store.check_health()}, session_store.connected)


def service_health(
    settings: Settings = Depends(get_settings),
    storage: Storage = Depends(get_storage)
):
    """ Root ``/health`` for load balancers: database state in one word plus a message. """
    database = storage.check_health()
    if storage.degraded and not settings.is_onprem_production:
        state, message = "fallback", "Running in development mode with fallback storage"
    elif database.get("status") == "healthy":
        state, message = "connected", "Database connection established"
    else:
        state, message = "disconnected", "Database connection not established - check configuration"
    return _respond({
        "timestamp": utcnow().isoformat() + "Z",
        "database": state,
        "message": message,
        "environment": settings.APP_ENV,
        "onPremises": settings.is_onprem,
    }, storage_is_healthy(settings, storage, database))
