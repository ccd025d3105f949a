"""
Error taxonomy shared by all services.

Each error knows its HTTP status and renders the standard failure body:
    { "success": false, "message": "...", "errors": [...]? }
"""

from typing import Any, Dict, List, Optional, Tuple

from flask import jsonify, Response


class ApiError(Exception):
    """Base class for errors that map directly to an HTTP response."""

    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: Optional[str] = None, errors: Optional[List[Dict[str, Any]]] = None):
        self.message = message or self.default_message
        self.errors = errors
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"success": False, "message": self.message}
        if self.errors:
            body["errors"] = self.errors
        return body

    def to_response(self) -> Tuple[Response, int]:
        return jsonify(self.to_dict()), self.status_code


class ValidationError(ApiError):
    status_code = 400
    default_message = "Validation failed"


class ConflictError(ApiError):
    # Duplicate unique keys are reported as a plain bad request
    status_code = 400
    default_message = "Resource already exists"


class AuthenticationError(ApiError):
    status_code = 401
    default_message = "Authentication required."


class AuthorizationError(ApiError):
    status_code = 403
    default_message = "Access denied. Insufficient permissions."


class NotFoundError(ApiError):
    status_code = 404
    default_message = "Resource not found"


class RateLimitError(ApiError):
    status_code = 429
    default_message = "Too many requests. Please try again later."


class ServerError(ApiError):
    status_code = 500
    default_message = "Internal server error"


def server_error(public_message: str, exc: Exception, development: bool) -> ServerError:
    """
    Build a ServerError whose message only carries the exception detail in development.
    """
    if development:
        return ServerError(f"{public_message}: {exc}")
    return ServerError(public_message)
