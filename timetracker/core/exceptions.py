# timetracker/core/exceptions.py
"""
Application exceptions.

Route handlers and storage code raise these; the handlers registered in
``timetracker.main`` translate each one to an HTTP status so nothing reaches
the framework's default handler untranslated.
"""

from typing import Any, Dict, List, Optional


class ApplicationException(Exception):
    """Base exception for all application-specific exceptions."""

    status_code = 500

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class ConfigurationException(ApplicationException):
    """Required configuration is missing or invalid."""

    def __init__(self, message: str, missing: Optional[List[str]] = None):
        super().__init__(message, {"missing": missing or []})
        self.missing = missing or []


class ValidationException(ApplicationException):
    """Malformed or missing request fields."""

    status_code = 400

    def __init__(self, message: str, errors: Optional[List[Dict[str, str]]] = None):
        super().__init__(message, {"errors": errors or []})
        self.errors = errors or []

    @classmethod
    def for_field(cls, field: str, message: str) -> "ValidationException":
        return cls("Invalid request data", [{"field": field, "message": message}])


class AuthenticationRequired(ApplicationException):
    status_code = 401

    def __init__(self, message: str = "Unauthorized"):
        super().__init__(message)


class AuthorizationDenied(ApplicationException):
    status_code = 403

    def __init__(self, message: str = "Insufficient permissions"):
        super().__init__(message)


class NotFoundException(ApplicationException):
    """Raised when a requested resource does not resolve under the caller's scope."""

    status_code = 404

    def __init__(self, resource: str, identifier: Any = None):
        message = f"{resource} not found"
        super().__init__(message, {"resource": resource, "identifier": identifier})


class ConflictException(ApplicationException):
    """The request conflicts with the current state of a resource."""

    status_code = 409


class DuplicateException(ConflictException):
    """Exception raised when attempting to create a duplicate resource."""

    def __init__(self, resource: str, field: str, value: Any):
        message = f"{resource} already exists with {field}: {value}"
        super().__init__(message, {"resource": resource, "field": field, "value": value})


class StorageUnavailable(ApplicationException):
    """
    The database cannot serve the request.

    ``retryable`` marks transient conditions (pool exhausted, connection
    dropped mid-request) that the client may retry after a short delay.
    """

    def __init__(self, message: str = "Storage unavailable", retryable: bool = False,
                 details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details)
        self.retryable = retryable


class SessionStoreUnavailable(ApplicationException):
    """The session backend is disconnected; authentication is temporarily unavailable."""

    status_code = 503

    def __init__(self, message: str = "Authentication temporarily unavailable", retry_after: int = 5):
        super().__init__(message, {"retry_after": retry_after})
        self.retry_after = retry_after
