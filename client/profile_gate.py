"""
Community profile gating.

Before a community user sees the dashboard the client asks whether a profile
exists:

    unknown -> checking -> has-profile | no-profile | error

404 means "no profile yet" and routes to the setup form. What happens on any
other failure is an explicit policy rather than an accident of the caller.
"""

import logging
from enum import Enum
from typing import Any, Dict, Optional

import requests

from client.api import ApiClient
from client.dashboards import COMMUNITY_SETUP_ROUTE, DASHBOARD_ROUTES, LOGIN_ROUTE, dashboard_for
from client.errors import HttpError
from client.roles import Role

ERROR_ROUTE = "/error"


class ProfileState(str, Enum):
    UNKNOWN = "unknown"
    CHECKING = "checking"
    HAS_PROFILE = "has-profile"
    NO_PROFILE = "no-profile"
    ERROR = "error"


class ProfileErrorPolicy(str, Enum):
    # Render the dashboard anyway
    FAIL_OPEN = "fail-open"
    # Render an error view instead
    FAIL_CLOSED = "fail-closed"


class ProfileGate:
    """
    Runs the profile check and remembers its outcome.

    Args:
        api: Client used to query /community/my-profile.
        error_policy: What to show when the check fails for a reason other than 404.
    """

    def __init__(self, api: ApiClient, error_policy: ProfileErrorPolicy = ProfileErrorPolicy.FAIL_CLOSED):
        self.api = api
        self.error_policy = error_policy
        self.state = ProfileState.UNKNOWN
        self.profile: Optional[Dict[str, Any]] = None
        self.error: Optional[Exception] = None

    def check(self) -> ProfileState:
        self.state = ProfileState.CHECKING
        self.profile = None
        self.error = None
        try:
            response = self.api.get_my_community_profile()
        except HttpError as e:
            if e.status == 404:
                self.state = ProfileState.NO_PROFILE
            else:
                logging.warning(f"[ProfileGate] Profile check failed with status {e.status}: {e.message}")
                self.error = e
                self.state = ProfileState.ERROR
            return self.state
        except requests.RequestException as e:
            logging.warning(f"[ProfileGate] Profile check failed: {e}")
            self.error = e
            self.state = ProfileState.ERROR
            return self.state

        self.profile = response.get("data")
        self.state = ProfileState.HAS_PROFILE
        return self.state

    def destination(self) -> str:
        """
        Route to render for the current state, running the check if needed.
        """
        if self.state in (ProfileState.UNKNOWN, ProfileState.CHECKING):
            self.check()

        dashboard = DASHBOARD_ROUTES[Role.COMMUNITY]
        if self.state == ProfileState.HAS_PROFILE:
            return dashboard
        if self.state == ProfileState.NO_PROFILE:
            return COMMUNITY_SETUP_ROUTE
        if self.error_policy == ProfileErrorPolicy.FAIL_OPEN:
            return dashboard
        return ERROR_ROUTE


def landing_route(api: ApiClient, error_policy: ProfileErrorPolicy = ProfileErrorPolicy.FAIL_CLOSED) -> str:
    """
    Where to send the user after login: the login page without a live session,
    the profile gate for community users, otherwise their role's dashboard.
    """
    session = api.current_session()
    if session is None or not api.is_authenticated():
        return LOGIN_ROUTE

    role = Role.parse(session.role)
    if role is None:
        # Unknown role in the cached user: treat as a broken session
        api.store.clear()
        return LOGIN_ROUTE
    if role == Role.COMMUNITY:
        return ProfileGate(api, error_policy).destination()
    return dashboard_for(role)
