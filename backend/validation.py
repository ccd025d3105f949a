"""
Request body validation helpers.

Checks collect problems as ``{"field": ..., "message": ...}`` entries so a
single ValidationError can report all of them at once.
"""

import re
from typing import Any, Dict, List, Optional

from flask import request

from backend.errors import ValidationError

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[A-Za-z]{2,}$")
PHONE_RE = re.compile(r"^\+?[1-9]\d{0,15}$")

NAME_MIN_LENGTH = 1
NAME_MAX_LENGTH = 50
# RFC 5321 path limit; users.email is VARCHAR(255)
EMAIL_MAX_LENGTH = 254
PASSWORD_MIN_LENGTH = 1


class Checker:
    """Accumulates field errors for one request body."""

    def __init__(self, data: Optional[Dict[str, Any]]):
        self.data = data or {}
        self.errors: List[Dict[str, str]] = []

    def fail(self, field: str, message: str) -> None:
        self.errors.append({"field": field, "message": message})

    def text(self, field: str, required: bool = True, min_length: int = 0,
             max_length: Optional[int] = None, label: Optional[str] = None) -> Optional[str]:
        label = label or field
        value = self.data.get(field)
        if value is None or (isinstance(value, str) and not value.strip()):
            if required:
                self.fail(field, f"{label} is required")
            return None
        if not isinstance(value, str):
            self.fail(field, f"{label} must be a string")
            return None
        value = value.strip()
        if len(value) < min_length or (max_length is not None and len(value) > max_length):
            bounds = f"between {min_length} and {max_length}" if max_length else f"at least {min_length}"
            self.fail(field, f"{label} must be {bounds} characters")
            return None
        return value

    def email(self, field: str = "email", required: bool = True) -> Optional[str]:
        value = self.text(field, required=required, label="Email")
        if value is None:
            return None
        if len(value) > EMAIL_MAX_LENGTH:
            self.fail(field, f"Email must be at most {EMAIL_MAX_LENGTH} characters")
            return None
        if not EMAIL_RE.match(value):
            self.fail(field, "Please provide a valid email")
            return None
        return value.lower()

    def phone(self, field: str = "phone") -> Optional[str]:
        value = self.text(field, required=False, label="Phone")
        if value is not None and not PHONE_RE.match(value):
            self.fail(field, "Please provide a valid phone number")
            return None
        return value

    def password(self, field: str = "password", min_length: int = PASSWORD_MIN_LENGTH) -> Optional[str]:
        value = self.data.get(field)
        if not isinstance(value, str) or not value:
            self.fail(field, "Password is required")
            return None
        if len(value) < min_length:
            self.fail(field, f"Password must be at least {min_length} characters long")
            return None
        return value

    def raise_if_failed(self) -> None:
        if self.errors:
            raise ValidationError("Validation failed", errors=self.errors)


def normalize_email(value: Any) -> str:
    return value.strip().lower() if isinstance(value, str) else ""


def json_body() -> Dict[str, Any]:
    """
    The request's JSON object, or {} when there is no body.

    Raises:
        ValidationError: The body is JSON but not an object.
    """
    data = request.get_json()
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data
