"""
Error types raised by the service layer and rendered by the app.
"""

from __future__ import annotations


class ApiError(Exception):
    """Base error carrying an HTTP status and a short client-facing message."""

    status_code: int = 500
    default_message: str = "Internal server error"

    def __init__(self, message: str | None = None, **extra):
        self.message = message or self.default_message
        self.extra = extra
        super().__init__(self.message)

    def as_dict(self) -> dict:
        body = {"success": False, "message": self.message}
        body.update(self.extra)
        return body


class ValidationFailed(ApiError):
    status_code = 400
    default_message = "Invalid request data"


class Conflict(ApiError):
    status_code = 400
    default_message = "The item already exists"


class AuthenticationFailed(ApiError):
    status_code = 401
    default_message = "Access denied"


class PermissionDenied(ApiError):
    status_code = 403
    default_message = "Access denied"


class NotFound(ApiError):
    status_code = 404
    default_message = "Not found"


class PersistenceError(ApiError):
    status_code = 500
    default_message = "Database error"
