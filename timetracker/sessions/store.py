# timetracker/sessions/store.py
"""
Server-side session stores.

``MemorySessionStore`` is the default. ``DatabaseSessionStore`` keeps
sessions in the ``sessions`` table for on-premises deployments and reports
a lost connection explicitly instead of treating every request as
logged out.
"""

import json
import logging
import threading
import time
from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Optional

from apscheduler.schedulers.background import BackgroundScheduler
from sqlalchemy import delete, func, select, text, update
from sqlalchemy.engine import Engine
from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError

from timetracker.core.exceptions import SessionStoreUnavailable
from timetracker.db.models import SessionRecord, utcnow

logger = logging.getLogger(__name__)

sessions_table = SessionRecord.__table__

SessionData = Dict[str, Any]

RECONNECT_BASE_SECONDS = 2.0
RECONNECT_MAX_ATTEMPTS = 5


def _dumps(data: SessionData) -> str:
    return json.dumps(data, default=str)


class SessionStore(ABC):
    kind = "abstract"

    def __init__(self, clock: Callable[[], datetime] = utcnow):
        self._clock = clock

    @property
    def connected(self) -> bool:
        return True

    def expiry(self, max_age: int) -> datetime:
        return self._clock() + timedelta(seconds=max_age)

    @abstractmethod
    def get(self, sid: str) -> Optional[SessionData]:
        """Returns the session payload, or ``None`` when missing or expired."""

    @abstractmethod
    def set(self, sid: str, data: SessionData, max_age: int) -> None: ...

    @abstractmethod
    def destroy(self, sid: str) -> None: ...

    @abstractmethod
    def touch(self, sid: str, max_age: int) -> None: ...

    @abstractmethod
    def length(self) -> int: ...

    @abstractmethod
    def clear(self) -> None: ...

    @abstractmethod
    def cleanup_expired(self, batch_size: int = 500, pause: float = 0.1) -> int:
        """Deletes expired sessions in batches of ``batch_size``, sleeping ``pause`` between batches."""

    def check_health(self) -> Dict[str, Any]:
        return {"status": "healthy" if self.connected else "disconnected", "store": self.kind}


class MemorySessionStore(SessionStore):
    kind = "memory"

    def __init__(self, clock: Callable[[], datetime] = utcnow, sleep: Callable[[float], None] = time.sleep):
        super().__init__(clock)
        self._sessions: Dict[str, tuple] = {}
        self._lock = threading.Lock()
        self._sleep = sleep

    def get(self, sid):
        with self._lock:
            item = self._sessions.get(sid)
        if item is None or item[1] <= self._clock():
            return None
        return json.loads(item[0])

    def set(self, sid, data, max_age):
        with self._lock:
            self._sessions[sid] = (_dumps(data), self.expiry(max_age))

    def destroy(self, sid):
        with self._lock:
            self._sessions.pop(sid, None)

    def touch(self, sid, max_age):
        with self._lock:
            item = self._sessions.get(sid)
            if item is not None:
                self._sessions[sid] = (item[0], self.expiry(max_age))

    def length(self):
        now = self._clock()
        with self._lock:
            return sum(1 for _, expires in self._sessions.values() if expires > now)

    def clear(self):
        with self._lock:
            self._sessions.clear()

    def cleanup_expired(self, batch_size=500, pause=0.1):
        removed = 0
        while True:
            now = self._clock()
            with self._lock:
                batch = [sid for sid, (_, expires) in self._sessions.items() if expires <= now][:batch_size]
                for sid in batch:
                    del self._sessions[sid]
            removed += len(batch)
            if len(batch) < batch_size:
                return removed
            self._sleep(pause)


RECONNECT_JOB_ID = "session-reconnect"


class ReconnectScheduler:
    """Runs each reconnect attempt as a one-off job on a background scheduler."""

    def __init__(self, scheduler: Optional[BackgroundScheduler] = None):
        self.scheduler = scheduler if scheduler is not None else BackgroundScheduler(daemon=True)

    def __call__(self, delay: float, callback: Callable[[], None]) -> None:
        self.scheduler.add_job(
            callback, 'date', run_date=datetime.now() + timedelta(seconds=delay),
            id=RECONNECT_JOB_ID, replace_existing=True, misfire_grace_time=None,
        )
        if not self.scheduler.running:
            self.scheduler.start()


class DatabaseSessionStore(SessionStore):
    kind = "database"

    def __init__(self, engine: Engine, reconnect_base: float = RECONNECT_BASE_SECONDS,
                 max_attempts: int = RECONNECT_MAX_ATTEMPTS,
                 scheduler: Optional[Callable[[float, Callable[[], None]], None]] = None,
                 clock: Callable[[], datetime] = utcnow, sleep: Callable[[float], None] = time.sleep):
        super().__init__(clock)
        self.engine = engine
        self.reconnect_base = reconnect_base
        self.max_attempts = max_attempts
        self._scheduler = scheduler if scheduler is not None else ReconnectScheduler()
        self._sleep = sleep
        self._lock = threading.Lock()
        self._connected = True
        self._reconnecting = False
        self.reconnect_attempts = 0

    @property
    def connected(self) -> bool:
        return self._connected

    def create_table(self) -> None:
        sessions_table.create(bind=self.engine, checkfirst=True)

    # --- connection handling ---
    def _execute(self, operation):
        if not self._connected:
            self._ensure_reconnecting()
            raise SessionStoreUnavailable(retry_after=self._next_delay())
        try:
            with self.engine.begin() as conn:
                return operation(conn)
        except PoolTimeoutError as e:
            # Pool exhausted; the database itself is still reachable.
            logger.warning("Session store connection pool timed out: %s", e)
            raise SessionStoreUnavailable(retry_after=self._next_delay()) from e
        except DBAPIError as e:
            if not (e.connection_invalidated or isinstance(e, OperationalError)):
                raise
            self._connection_lost(e)
            raise SessionStoreUnavailable(retry_after=self._next_delay()) from e

    def _next_delay(self) -> int:
        return max(1, int(self.reconnect_base * 2 ** max(self.reconnect_attempts - 1, 0)))

    def _connection_lost(self, error: BaseException) -> None:
        with self._lock:
            if not self._connected:
                return
            self._connected = False
        logger.error("Session store lost its database connection: %s", getattr(error, "orig", error))
        self._ensure_reconnecting()

    def _ensure_reconnecting(self) -> None:
        with self._lock:
            if self._reconnecting:
                return
            self._reconnecting = True
            self.reconnect_attempts = 0
        self._schedule_reconnect()

    def _schedule_reconnect(self) -> None:
        with self._lock:
            self.reconnect_attempts += 1
            attempt = self.reconnect_attempts
            if attempt > self.max_attempts:
                self._reconnecting = False
                logger.critical("Session store reconnect gave up after %d attempts; "
                                "the next session request starts a new reconnect cycle", self.max_attempts)
                return
        delay = self.reconnect_base * 2 ** (attempt - 1)
        logger.info("Session store reconnect attempt %d/%d in %.1fs", attempt, self.max_attempts, delay)
        self._scheduler(delay, self._try_reconnect)

    def _try_reconnect(self) -> None:
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
        except SQLAlchemyError as e:
            logger.warning("Session store reconnect attempt %d failed: %s",
                           self.reconnect_attempts, getattr(e, "orig", e))
            self._schedule_reconnect()
            return
        with self._lock:
            self._connected = True
            self._reconnecting = False
            self.reconnect_attempts = 0
        logger.info("Session store reconnected")

    # --- store operations ---
    def get(self, sid):
        def op(conn):
            return conn.execute(
                select(sessions_table.c.session, sessions_table.c.expires).where(sessions_table.c.sid == sid)
            ).first()
        row = self._execute(op)
        if row is None or row.expires <= self._clock():
            return None
        return json.loads(row.session)

    def set(self, sid, data, max_age):
        values = {"session": _dumps(data), "expires": self.expiry(max_age)}

        def op(conn):
            result = conn.execute(update(sessions_table).where(sessions_table.c.sid == sid).values(**values))
            if result.rowcount == 0:
                conn.execute(sessions_table.insert().values(sid=sid, **values))
        try:
            self._execute(op)
        except IntegrityError:
            # Lost an insert race with a concurrent request on the same sid.
            self._execute(lambda conn: conn.execute(
                update(sessions_table).where(sessions_table.c.sid == sid).values(**values)))

    def destroy(self, sid):
        self._execute(lambda conn: conn.execute(delete(sessions_table).where(sessions_table.c.sid == sid)))

    def touch(self, sid, max_age):
        expires = self.expiry(max_age)
        self._execute(lambda conn: conn.execute(
            update(sessions_table).where(sessions_table.c.sid == sid).values(expires=expires)))

    def length(self):
        now = self._clock()
        return self._execute(lambda conn: conn.scalar(
            select(func.count()).select_from(sessions_table).where(sessions_table.c.expires > now)))

    def clear(self):
        self._execute(lambda conn: conn.execute(delete(sessions_table)))

    def cleanup_expired(self, batch_size=500, pause=0.1):
        removed = 0
        while True:
            now = self._clock()

            def op(conn):
                sids = list(conn.scalars(
                    select(sessions_table.c.sid).where(sessions_table.c.expires <= now).limit(batch_size)))
                if sids:
                    conn.execute(delete(sessions_table).where(sessions_table.c.sid.in_(sids)))
                return len(sids)

            count = self._execute(op)
            removed += count
            if count < batch_size:
                return removed
            self._sleep(pause)

    def check_health(self):
        health = super().check_health()
        health["reconnectAttempts"] = self.reconnect_attempts
        if self._connected:
            try:
                health["activeSessions"] = self.length()
            except SessionStoreUnavailable:
                health["status"] = "disconnected"
        return health
