# timetracker/sessions/middleware.py
"""
Server-side session middleware.

The browser only holds a signed session id (``timetracker.sid``); the
payload lives in a ``SessionStore``. Handlers read and write
``request.session`` like a dict and may call ``regenerate()`` (new id,
same data) or ``destroy()``.
"""

import logging
import secrets
from typing import Optional

from fastapi import Request
from fastapi.responses import JSONResponse
from jose import JWTError, jwt
from starlette.concurrency import run_in_threadpool
from starlette.middleware.base import BaseHTTPMiddleware

from timetracker.core.config import Settings
from timetracker.core.exceptions import SessionStoreUnavailable
from timetracker.sessions.store import SessionStore

logger = logging.getLogger(__name__)

SIGNING_ALGORITHM = "HS256"
EXEMPT_PREFIXES = ("/api/health", "/health")


def new_session_id() -> str:
    return secrets.token_urlsafe(32)


def sign_session_id(sid: str, secret: str) -> str:
    return jwt.encode({"sid": sid}, secret, algorithm=SIGNING_ALGORITHM)


def unsign_session_id(token: str, secret: str) -> Optional[str]:
    try:
        payload = jwt.decode(token, secret, algorithms=[SIGNING_ALGORITHM])
    except JWTError:
        return None
    sid = payload.get("sid")
    return sid if isinstance(sid, str) else None


class ServerSession(dict):
    def __init__(self, sid: Optional[str] = None, data: Optional[dict] = None):
        super().__init__(data or {})
        self.sid = sid
        self.modified = False
        self.regenerated = False
        self.destroyed = False

    def __setitem__(self, key, value):
        self.modified = True
        super().__setitem__(key, value)

    def __delitem__(self, key):
        self.modified = True
        super().__delitem__(key)

    def update(self, *args, **kwargs):
        self.modified = True
        super().update(*args, **kwargs)

    def pop(self, *args):
        self.modified = True
        return super().pop(*args)

    def clear(self):
        self.modified = True
        super().clear()

    def regenerate(self) -> None:
        """Issue a fresh id at the next save; the old id stops resolving."""
        self.regenerated = True
        self.modified = True

    def destroy(self) -> None:
        self.clear()
        self.destroyed = True


def _unavailable_response(error: SessionStoreUnavailable) -> JSONResponse:
    return JSONResponse(
        status_code=503,
        content={"message": error.message},
        headers={"Retry-After": str(error.retry_after)},
    )


class SessionMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, store: SessionStore, settings: Settings):
        super().__init__(app)
        self.store = store
        self.secret = settings.SESSION_SECRET
        self.cookie_name = settings.SESSION_COOKIE_NAME
        self.max_age = settings.SESSION_TTL_SECONDS
        self.secure = settings.SESSION_COOKIE_SECURE or settings.is_production

    async def dispatch(self, request: Request, call_next):
        exempt = request.url.path.startswith(EXEMPT_PREFIXES)
        token = request.cookies.get(self.cookie_name)
        sid = unsign_session_id(token, self.secret) if token else None
        data = None
        if sid:
            try:
                data = await run_in_threadpool(self.store.get, sid)
            except SessionStoreUnavailable as e:
                if not exempt:
                    logger.warning("Session lookup failed for %s: %s", request.url.path, e.message)
                    return _unavailable_response(e)
                sid = None
        session = ServerSession(sid if data is not None else None, data)
        request.scope["session"] = session

        response = await call_next(request)

        try:
            await run_in_threadpool(self._commit, session, sid, response)
        except SessionStoreUnavailable as e:
            logger.error("Session save failed for %s: %s", request.url.path, e.message)
            return _unavailable_response(e)
        return response

    def _commit(self, session: ServerSession, original_sid: Optional[str], response) -> None:
        if session.destroyed:
            if original_sid:
                self.store.destroy(original_sid)
            response.delete_cookie(self.cookie_name, path="/")
            return

        if session.regenerated and original_sid:
            self.store.destroy(original_sid)
            session.sid = None

        if not session:
            if session.sid and session.modified:
                self.store.destroy(session.sid)
                response.delete_cookie(self.cookie_name, path="/")
            return

        if session.sid is None:
            session.sid = new_session_id()
            self.store.set(session.sid, dict(session), self.max_age)
        elif session.modified:
            self.store.set(session.sid, dict(session), self.max_age)
        else:
            self.store.touch(session.sid, self.max_age)
        response.set_cookie(
            self.cookie_name,
            sign_session_id(session.sid, self.secret),
            max_age=self.max_age,
            httponly=True,
            samesite="lax",
            secure=self.secure,
            path="/",
        )
