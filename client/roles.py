"""
Roles as the client sees them in the ``role`` field of a session.
"""

from enum import Enum
from typing import Any, Optional


class Role(str, Enum):
    COMMUNITY = "community"
    INDUSTRY = "industry"
    GOVERNMENT = "government"
    ADMIN = "admin"

    @classmethod
    def parse(cls, value: Any) -> Optional["Role"]:
        try:
            return cls(value)
        except ValueError:
            return None
