# timetracker/auth/providers.py
"""
Authentication strategies.

Exactly one provider is chosen at startup: ``SamlAuthProvider`` for
on-premises production, ``DevBypassProvider`` everywhere else. Route
handlers only see the ``AuthProvider`` interface.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from fastapi import Request

from timetracker.auth.saml import OneLoginSamlClient, SamlClient, SamlValidationError
from timetracker.core.config import Settings
from timetracker.core.exceptions import ConfigurationException, NotFoundException, StorageUnavailable
from timetracker.db.models import utcnow
from timetracker.storage.base import Record, Storage

logger = logging.getLogger(__name__)

TEST_USER = {
    "id": "test-admin-user",
    "email": "admin@test.com",
    "firstName": "Test",
    "lastName": "Admin",
    "role": "admin",
    "isActive": True,
}

LOGIN_ERROR_URL = "/login-error?reason={reason}"


def safe_redirect(target: Optional[str]) -> str:
    """Only same-site relative paths are followed after login."""
    if target and target.startswith("/") and not target.startswith("//"):
        return target
    return "/"


def saml_request_data(request: Request, form: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    url = request.url
    forwarded_proto = request.headers.get("x-forwarded-proto", url.scheme)
    return {
        "https": "on" if forwarded_proto == "https" else "off",
        "http_host": request.headers.get("x-forwarded-host", url.hostname or ""),
        "server_port": url.port or (443 if forwarded_proto == "https" else 80),
        "script_name": url.path,
        "get_data": dict(request.query_params),
        "post_data": dict(form or {}),
    }


def establish_session(session, user: Record, **extra) -> None:
    """Fresh session id, then the authenticated state."""
    session.regenerate()
    session.clear()
    session.update({
        "userId": user["id"],
        "email": user["email"],
        "isAuthenticated": True,
        "authenticatedAt": utcnow().isoformat(),
        **extra,
    })


class AuthProvider(ABC):
    name = "abstract"

    @abstractmethod
    def authenticate(self, request: Request, storage: Storage) -> Optional[Record]:
        """Returns the caller's user record, or ``None`` when unauthenticated."""

    @abstractmethod
    def login_redirect(self, request: Request, storage: Storage) -> str: ...

    @abstractmethod
    def consume_assertion(self, request: Request, form: Dict[str, Any], storage: Storage) -> str:
        """Handles the identity provider's POST and returns where to send the browser."""

    @abstractmethod
    def metadata(self) -> str: ...

    @abstractmethod
    def logout(self, request: Request) -> str: ...


def _session_user(request: Request, storage: Storage) -> Optional[Record]:
    session = request.session
    if not (session.get("isAuthenticated") and session.get("userId")):
        return None
    user = storage.get_user(session["userId"])
    if user is None or not user.get("isActive", True):
        return None
    return user


class DevBypassProvider(AuthProvider):
    """Grants a fixed test identity. Refuses to exist in on-premises production."""

    name = "dev-bypass"

    def __init__(self, settings: Settings):
        self.settings = settings
        self._guard()
        logger.warning("Development authentication bypass active: unauthenticated requests act as %s",
                       TEST_USER["email"])

    def _guard(self) -> None:
        if self.settings.is_onprem_production:
            raise ConfigurationException("Development authentication bypass cannot run in on-premises production")

    def _test_user(self, storage: Storage) -> Record:
        if not storage.writable:
            return dict(TEST_USER)
        user = storage.get_user_by_email(TEST_USER["email"])
        if user is None:
            user = storage.upsert_user({k: v for k, v in TEST_USER.items() if k != "id"})
        return user

    def authenticate(self, request, storage):
        self._guard()
        return _session_user(request, storage) or self._test_user(storage)

    def login_redirect(self, request, storage):
        self._guard()
        user = self._test_user(storage)
        establish_session(request.session, user)
        return safe_redirect(request.query_params.get("returnTo"))

    def consume_assertion(self, request, form, storage):
        self._guard()
        return "/"

    def metadata(self):
        raise NotFoundException("SAML metadata")

    def logout(self, request):
        request.session.destroy()
        return "/"


class SamlAuthProvider(AuthProvider):
    name = "saml"

    def __init__(self, settings: Settings, client: Optional[SamlClient] = None):
        self.settings = settings
        self.client = client or OneLoginSamlClient(settings)

    def authenticate(self, request, storage):
        return _session_user(request, storage)

    def login_redirect(self, request, storage):
        relay_state = safe_redirect(request.query_params.get("returnTo"))
        return self.client.login_url(saml_request_data(request), relay_state)

    def consume_assertion(self, request, form, storage):
        try:
            assertion = self.client.process_response(saml_request_data(request, form))
        except SamlValidationError as e:
            logger.warning("SAML authentication failed: %s", e)
            return LOGIN_ERROR_URL.format(reason="auth_error")

        email = (assertion.name_id or "").strip().lower()
        if not email:
            logger.warning("SAML assertion carried no name identifier")
            return LOGIN_ERROR_URL.format(reason="no_user")
        try:
            user = storage.upsert_user({
                "email": email,
                "firstName": assertion.first_name,
                "lastName": assertion.last_name,
                "lastLoginAt": utcnow(),
            })
        except StorageUnavailable as e:
            logger.error("Could not load or create user %s after SAML login: %s", email, e.message)
            return LOGIN_ERROR_URL.format(reason="no_user")
        if not user.get("isActive", True):
            logger.warning("Inactive user %s attempted SAML login", email)
            return LOGIN_ERROR_URL.format(reason="no_user")

        establish_session(request.session, user, nameId=assertion.name_id,
                          sessionIndex=assertion.session_index)
        logger.info("SAML login succeeded for %s", email)
        return safe_redirect(form.get("RelayState"))

    def metadata(self):
        return self.client.metadata()

    def logout(self, request):
        session = request.session
        name_id, session_index = session.get("nameId"), session.get("sessionIndex")
        session.destroy()
        return self.client.logout_url(saml_request_data(request), name_id, session_index) or "/"


def build_auth_provider(settings: Settings) -> AuthProvider:
    if settings.is_onprem_production:
        return SamlAuthProvider(settings)
    return DevBypassProvider(settings)
