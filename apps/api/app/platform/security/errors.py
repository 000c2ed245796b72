from __future__ import annotations

from typing import Any


class PartsDeskError(Exception):
    """Base class for errors rendered as the JSON error envelope."""

    status_code = 500
    code = "internal_error"

    def __init__(self, message: str, details: Any = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details


class AuthenticationError(PartsDeskError):
    status_code = 401
    code = "unauthenticated"


class AuthorizationError(PartsDeskError):
    """Raised when a capability or data-filter check fails."""

    status_code = 403
    code = "forbidden"


class ValidationError(PartsDeskError):
    status_code = 422
    code = "validation_error"


class NotFoundError(PartsDeskError):
    status_code = 404
    code = "not_found"


class UnknownInternalError(PartsDeskError):
    status_code = 500
    code = "internal_error"
