"""
User model helpers for the authentication service.

Rows come back from psycopg2 as dictionaries keyed by column name; this module
defines the closed role set and the projection that makes a row safe to return
to clients.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, Mapping, Optional


class Role(str, Enum):
    COMMUNITY = "community"
    INDUSTRY = "industry"
    GOVERNMENT = "government"
    ADMIN = "admin"

    @classmethod
    def parse(cls, value: Any) -> Optional["Role"]:
        """Return the matching Role, or None for anything outside the enum."""
        try:
            return cls(value)
        except ValueError:
            return None


DEFAULT_ROLE = Role.COMMUNITY

# Columns selected whenever a user row is going to be projected
USER_COLUMNS = """
    user_id, first_name, last_name, email, role, organization, phone,
    is_verified, is_active, last_login, created_at, updated_at
"""


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def get_public_profile(user: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Project a user row onto the public, client-safe representation.

    Sensitive columns (password_hash, reset tokens) are never copied, and the
    display name is derived from first + last name.

    Args:
        user (Mapping): A row from the users table.

    Returns:
        dict: camelCase public profile.
    """
    first = user.get("first_name") or ""
    last = user.get("last_name") or ""

    return {
        "_id": user.get("user_id"),
        "firstName": first,
        "lastName": last,
        "fullName": f"{first} {last}".strip(),
        "email": user.get("email"),
        "role": user.get("role"),
        "organization": user.get("organization"),
        "phone": user.get("phone"),
        "isVerified": bool(user.get("is_verified")),
        "isActive": bool(user.get("is_active", True)),
        "lastLogin": _iso(user.get("last_login")),
        "createdAt": _iso(user.get("created_at")),
    }
