"""Error taxonomy shared by the store, auth and post layers.

Each error carries the HTTP status it maps to; the API installs a single
exception handler that renders `to_dict()` as the response body.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class SchedulerError(Exception):
    """Base class for application errors."""

    status_code: int = 500
    default_code: str = "error"

    def __init__(self, message: str, code: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"detail": self.message, "code": self.code}
        if self.details:
            out["details"] = self.details
        return out


class ConfigurationError(SchedulerError):
    """Missing or invalid runtime configuration. Raised at startup only."""

    default_code = "configuration_error"


class ValidationError(SchedulerError):
    status_code = 400
    default_code = "validation_error"


class Unauthenticated(SchedulerError):
    status_code = 401
    default_code = "unauthenticated"


class Forbidden(SchedulerError):
    status_code = 403
    default_code = "forbidden"


class NotFound(SchedulerError):
    status_code = 404
    default_code = "not_found"


class Conflict(SchedulerError):
    status_code = 409
    default_code = "conflict"


class Internal(SchedulerError):
    status_code = 500
    default_code = "internal_error"
