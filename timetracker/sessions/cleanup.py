# timetracker/sessions/cleanup.py
import logging
from typing import Optional

from apscheduler.schedulers.background import BackgroundScheduler

from timetracker.core.exceptions import SessionStoreUnavailable
from timetracker.sessions.store import SessionStore

logger = logging.getLogger(__name__)

JOB_ID = "session-cleanup"


class SessionCleanup:
    """Periodically reclaims expired sessions on a background scheduler thread."""

    def __init__(self, store: SessionStore, interval_seconds: int = 300, batch_size: int = 500,
                 pause_seconds: float = 0.1, scheduler: Optional[BackgroundScheduler] = None):
        self.store = store
        self.interval_seconds = interval_seconds
        self.batch_size = batch_size
        self.pause_seconds = pause_seconds
        self.scheduler = scheduler if scheduler is not None else BackgroundScheduler(daemon=True)

    def run_once(self) -> int:
        try:
            removed = self.store.cleanup_expired(self.batch_size, self.pause_seconds)
        except SessionStoreUnavailable:
            logger.warning("Session cleanup skipped: session store is disconnected")
            return 0
        if removed:
            logger.info("Session cleanup removed %d expired sessions", removed)
        return removed

    def start(self) -> None:
        self.scheduler.add_job(
            self.run_once, 'interval', seconds=self.interval_seconds, id=JOB_ID,
            max_instances=1, coalesce=True, replace_existing=True,
        )
        if not self.scheduler.running:
            self.scheduler.start()
        logger.info("Session cleanup scheduled every %ds", self.interval_seconds)

    def shutdown(self) -> None:
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
