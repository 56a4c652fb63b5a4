# timetracker/main.py
import logging
import time
from contextlib import asynccontextmanager
from typing import Optional

from apscheduler.schedulers.background import BackgroundScheduler
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from timetracker.api.api import API_PREFIX, api_router
from timetracker.api.endpoints import auth, health
from timetracker.auth.providers import AuthProvider, build_auth_provider
from timetracker.core.config import Settings, load_settings
from timetracker.core.exceptions import ApplicationException, SessionStoreUnavailable, StorageUnavailable
from timetracker.core.logging_setup import configure_logging
from timetracker.core.middleware import SecurityHeadersMiddleware
from timetracker.sessions.cleanup import SessionCleanup
from timetracker.sessions.middleware import SessionMiddleware
from timetracker.sessions.store import DatabaseSessionStore, MemorySessionStore, ReconnectScheduler, SessionStore
from timetracker.storage.base import Storage
from timetracker.storage.factory import build_storage

logger = logging.getLogger(__name__)

SKIPPED_LOCATIONS = ("body", "query", "path")


def build_session_store(settings: Settings, storage: Storage,
                        scheduler: Optional[BackgroundScheduler] = None) -> SessionStore:
    """
    Sessions live in the database alongside the data in on-premises
    production, in memory otherwise or when storage has no database.
    """
    if settings.is_onprem_production and storage.engine is not None:
        store = DatabaseSessionStore(
            storage.engine,
            reconnect_base=settings.SESSION_RECONNECT_BASE_SECONDS,
            max_attempts=settings.SESSION_RECONNECT_MAX_ATTEMPTS,
            scheduler=ReconnectScheduler(scheduler),
        )
        store.create_table()
        return store
    return MemorySessionStore()


def _error_field(loc) -> str:
    return ".".join(str(part) for part in loc if part not in SKIPPED_LOCATIONS)


def _error_message(msg: str) -> str:
    return msg[len("Value error, "):] if msg.startswith("Value error, ") else msg


def register_exception_handlers(app: FastAPI, settings: Settings) -> None:

    @app.exception_handler(ApplicationException)
    async def application_exception_handler(request: Request, exc: ApplicationException):
        content = {"message": exc.message}
        errors = getattr(exc, "errors", None)
        if errors:
            content["errors"] = errors
        return JSONResponse(status_code=exc.status_code, content=content)

    @app.exception_handler(StorageUnavailable)
    async def storage_unavailable_handler(request: Request, exc: StorageUnavailable):
        logger.error("Storage unavailable on %s %s: %s %s", request.method, request.url.path,
                     exc.message, exc.details)
        if exc.retryable:
            return JSONResponse(status_code=503, content={"message": "Service temporarily unavailable"},
                                headers={"Retry-After": "5"})
        return JSONResponse(status_code=500, content={"message": "Storage unavailable"})

    @app.exception_handler(SessionStoreUnavailable)
    async def session_store_unavailable_handler(request: Request, exc: SessionStoreUnavailable):
        return JSONResponse(status_code=503, content={"message": exc.message},
                            headers={"Retry-After": str(exc.retry_after)})

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        errors = [
            {"field": _error_field(error.get("loc", ())), "message": _error_message(error.get("msg", ""))}
            for error in exc.errors()
        ]
        return JSONResponse(status_code=400, content={"message": "Invalid request data", "errors": errors})

    @app.exception_handler(Exception)
    async def unexpected_exception_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        content = {"message": "Internal server error"}
        if not settings.is_production:
            content["detail"] = str(exc)
        return JSONResponse(status_code=500, content=content)


def create_app(
    settings: Optional[Settings] = None,
    *,
    storage: Optional[Storage] = None,
    session_store: Optional[SessionStore] = None,
    auth_provider: Optional[AuthProvider] = None,
) -> FastAPI:
    """
    Builds the application. Components not passed in are chosen from the
    settings once, here.
    """
    settings = settings or load_settings()
    configure_logging(settings.LOG_LEVEL)

    storage = storage or build_storage(settings)
    # One scheduler thread runs both session cleanup and session reconnects
    scheduler = BackgroundScheduler(daemon=True)
    session_store = session_store or build_session_store(settings, storage, scheduler)
    auth_provider = auth_provider or build_auth_provider(settings)
    cleanup = SessionCleanup(
        session_store,
        interval_seconds=settings.SESSION_CLEANUP_INTERVAL_SECONDS,
        batch_size=settings.SESSION_CLEANUP_BATCH_SIZE,
        pause_seconds=settings.SESSION_CLEANUP_PAUSE_SECONDS,
        scheduler=scheduler,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("TimeTracker %s starting (%s, %s); storage=%s sessions=%s auth=%s",
                    settings.VERSION, settings.APP_ENV, settings.deployment_label,
                    storage.kind, session_store.kind, auth_provider.name)
        cleanup.start()
        yield
        cleanup.shutdown()
        storage.close()
        logger.info("TimeTracker stopped")

    app = FastAPI(title="TimeTracker API", version=settings.VERSION, lifespan=lifespan)
    app.state.settings = settings
    app.state.storage = storage
    app.state.session_store = session_store
    app.state.auth_provider = auth_provider
    app.state.session_cleanup = cleanup
    app.state.started_at = time.monotonic()

    app.add_middleware(SessionMiddleware, store=session_store, settings=settings)
    app.add_middleware(SecurityHeadersMiddleware, hsts=settings.is_production)
    if settings.CORS_ORIGINS:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.CORS_ORIGINS,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    register_exception_handlers(app, settings)

    # All data routes are under /api
    app.include_router(api_router, prefix=API_PREFIX)

    # Sign-in routes keep the paths the identity provider is configured with
    app.include_router(auth.router, tags=["auth"])

    # Load balancer probe outside the API prefix
    app.add_api_route("/health", health.service_health, methods=["GET"], tags=["health"])

    @app.get("/")
    def read_root():
        return {"message": "Welcome to the TimeTracker API"}

    return app


if __name__ == "__main__":
    import uvicorn

    settings = load_settings()
    uvicorn.run("timetracker.main:create_app", factory=True, host=settings.HOST, port=settings.PORT)
