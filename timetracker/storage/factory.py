# timetracker/storage/factory.py
import logging

from sqlalchemy.exc import SQLAlchemyError

from timetracker.core.config import Settings
from timetracker.db.session import connect_with_retry, create_db_engine, diagnose_connection_error
from timetracker.storage.base import Storage
from timetracker.storage.fallback import FallbackStorage
from timetracker.storage.relational import RelationalStorage

logger = logging.getLogger(__name__)


def build_storage(settings: Settings) -> Storage:
    """
    Picks the storage backend once, at startup.

    Development mode never touches a database. On-premises production
    connects to the configured database; if that fails the process keeps
    running on fallback storage and ``/api/health`` reports the outage as
    critical until the service is restarted against a reachable database.
    """
    if not settings.is_onprem_production:
        logger.info("Development mode: using fallback storage")
        return FallbackStorage("development mode")

    engine = create_db_engine(settings.get_database_url(), settings)
    try:
        connect_with_retry(engine, settings.DB_CONNECT_RETRIES)
    except SQLAlchemyError as e:
        reason = diagnose_connection_error(e)
        logger.critical(
            "CRITICAL: database %s unavailable at startup (%s). Serving from fallback storage; "
            "all writes will fail until the database is reachable and the service restarts.",
            settings.get_database_host(), reason,
        )
        engine.dispose()
        return FallbackStorage(f"startup connection failed: {reason}")

    storage = RelationalStorage(engine)
    if settings.DB_CREATE_SCHEMA:
        storage.create_schema()
        logger.info("Database tables ensured")
    return storage
