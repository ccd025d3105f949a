"""
Errors raised by the API client.

Every failure carries the HTTP ``status`` and the parsed response body as
``data`` ({} when the body is not JSON), so callers can branch on status.
"""

from typing import Any, Dict, Optional


class HttpError(Exception):
    """Any non-2xx response."""

    def __init__(self, message: str, status: int, data: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.status = status
        self.data = data if data is not None else {}


class AuthenticationRequired(HttpError):
    """401: missing, invalid or expired credentials."""


class AccessDenied(HttpError):
    """403: the caller's role is not allowed."""


class RateLimited(HttpError):
    """429: too many requests."""


STATUS_ERRORS = {
    401: (AuthenticationRequired, "Authentication required"),
    403: (AccessDenied, "Access denied. Insufficient permissions."),
    429: (RateLimited, "Too many requests. Please try again later."),
}


def error_for(status: int, data: Dict[str, Any]) -> HttpError:
    """
    Build the error matching an HTTP status, preferring the server's message.
    """
    cls, fallback = STATUS_ERRORS.get(status, (HttpError, f"HTTP error! status: {status}"))
    message = data.get("message") if isinstance(data.get("message"), str) else None
    return cls(message or fallback, status, data)
