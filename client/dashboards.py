"""
Role-based dashboard dispatch.
"""

from typing import Dict, Union

from client.roles import Role

DASHBOARD_ROUTES: Dict[Role, str] = {
    Role.ADMIN: "/admin",
    Role.GOVERNMENT: "/government",
    Role.INDUSTRY: "/industry",
    Role.COMMUNITY: "/community",
}

COMMUNITY_SETUP_ROUTE = "/community/profile-setup"
LOGIN_ROUTE = "/login"

# Adding a Role without a landing page must fail at import, not at runtime
_unmapped = set(Role) - set(DASHBOARD_ROUTES)
if _unmapped:
    raise RuntimeError(f"Roles without a dashboard: {sorted(r.value for r in _unmapped)}")


def dashboard_for(role: Union[Role, str]) -> str:
    """
    Landing route for a role.

    Raises:
        ValueError: ``role`` is not one of the known roles.
    """
    return DASHBOARD_ROUTES[Role(role)]
