# timetracker/db/session.py
"""
Database engine and session factory.

Handles pooled engine creation, the startup connection probe with retry
and failure diagnostics, and the health check used by ``/api/health``.
"""

import logging
import time
from typing import Any, Dict, Optional

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import DBAPIError, SQLAlchemyError
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import QueuePool, StaticPool

from timetracker.core.config import Settings
from timetracker.core.logging_setup import mask_url

logger = logging.getLogger(__name__)

RETRY_DELAYS = [1, 2, 3, 5, 8]

_UNREACHABLE_MARKERS = (
    "08001", "08s01", "hyt00", "timeout", "timed out", "could not connect", "connection refused",
    "unable to open", "name or service not known", "getaddrinfo", "network", "server is not found",
)
_CREDENTIAL_MARKERS = ("28000", "18456", "login failed", "authentication failed", "access denied", "password")
_MISSING_DB_MARKERS = ("4060", "cannot open database", "does not exist", "unknown database")


def diagnose_connection_error(exc: BaseException) -> str:
    """Classifies a connection failure so operators know where to look."""
    message = str(getattr(exc, "orig", None) or exc).lower()
    if any(marker in message for marker in _CREDENTIAL_MARKERS):
        return "bad credentials"
    if any(marker in message for marker in _MISSING_DB_MARKERS):
        return "database missing"
    if any(marker in message for marker in _UNREACHABLE_MARKERS):
        return "cannot reach host"
    return "unknown"


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def create_db_engine(url: str, settings: Optional[Settings] = None) -> Engine:
    if url.startswith("sqlite"):
        engine_config = {"connect_args": {"check_same_thread": False}}
        if ":memory:" in url or url.rstrip("/") == "sqlite:":
            engine_config["poolclass"] = StaticPool
        engine = create_engine(url, **engine_config)
        event.listen(engine, "connect", _enable_sqlite_foreign_keys)
        return engine

    settings = settings or Settings()
    engine_config = {
        'poolclass': QueuePool,
        'pool_size': settings.DB_POOL_SIZE,
        'max_overflow': settings.DB_MAX_OVERFLOW,
        'pool_timeout': settings.DB_POOL_TIMEOUT,
        'pool_recycle': settings.DB_POOL_RECYCLE,
        'pool_pre_ping': True,
    }
    return create_engine(url, **engine_config)


def create_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)


def connect_with_retry(engine: Engine, attempts: int = 3, sleep=time.sleep) -> None:
    """
    Probes the engine with ``SELECT 1``, retrying with increasing delays.

    Bad credentials and a missing database are not retried; waiting will not
    fix them. Re-raises the last error once attempts are exhausted.
    """
    attempts = max(1, min(attempts, len(RETRY_DELAYS)))
    for i in range(attempts):
        try:
            with engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            logger.info("Database connection established on attempt %d", i + 1)
            return
        except SQLAlchemyError as e:
            reason = diagnose_connection_error(e)
            logger.error("Database not ready (attempt %d/%d, %s) at %s: %s",
                         i + 1, attempts, reason, mask_url(str(engine.url)), getattr(e, "orig", e))
            if reason in ("bad credentials", "database missing") or i == attempts - 1:
                raise
            logger.info("Retrying in %d seconds...", RETRY_DELAYS[i])
            sleep(RETRY_DELAYS[i])


def get_database_health(engine: Engine) -> Dict[str, Any]:
    try:
        started = time.perf_counter()
        with engine.connect() as conn:
            conn.execute(text("SELECT 1")).fetchone()
        return {
            "status": "healthy",
            "latencyMs": round((time.perf_counter() - started) * 1000, 2),
            "pool": engine.pool.status(),
        }
    except DBAPIError as e:
        return {"status": "unhealthy", "reason": diagnose_connection_error(e)}
    except SQLAlchemyError as e:
        logger.warning("Database health check failed: %s", e)
        return {"status": "unhealthy", "reason": "unknown"}
