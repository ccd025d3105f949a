import pytest
import requests

from client.roles import Role
from client.dashboards import COMMUNITY_SETUP_ROUTE, DASHBOARD_ROUTES, LOGIN_ROUTE, dashboard_for
from client.profile_gate import ERROR_ROUTE, ProfileErrorPolicy, ProfileGate, ProfileState, landing_route


def test_every_role_has_a_dashboard():
    assert set(DASHBOARD_ROUTES) == set(Role)


@pytest.mark.parametrize("role, route", [
    ("admin", "/admin"),
    ("government", "/government"),
    ("industry", "/industry"),
    ("community", "/community"),
])
def test_dashboard_for(role, route):
    assert dashboard_for(role) == route


def test_dashboard_for_unknown_role():
    with pytest.raises(ValueError):
        dashboard_for("pirate")


def test_gate_starts_unknown(api):
    assert ProfileGate(api).state == ProfileState.UNKNOWN


def test_gate_has_profile(api, http, make_response, logged_in):
    logged_in()
    http.request.return_value = make_response(body={"success": True, "data": {"_id": 10}})

    gate = ProfileGate(api)

    assert gate.check() == ProfileState.HAS_PROFILE
    assert gate.profile == {"_id": 10}
    assert gate.destination() == "/community"


def test_gate_no_profile_routes_to_setup(api, http, make_response, logged_in):
    logged_in()
    http.request.return_value = make_response(status=404, body={"success": False, "message": "Community profile not found"})

    gate = ProfileGate(api)

    assert gate.destination() == COMMUNITY_SETUP_ROUTE
    assert gate.state == ProfileState.NO_PROFILE


@pytest.mark.parametrize("policy, expected", [
    (ProfileErrorPolicy.FAIL_CLOSED, ERROR_ROUTE),
    (ProfileErrorPolicy.FAIL_OPEN, "/community"),
])
def test_gate_server_error_follows_policy(api, http, make_response, logged_in, policy, expected):
    logged_in()
    http.request.return_value = make_response(status=500, body={"success": False, "message": "boom"})

    gate = ProfileGate(api, error_policy=policy)

    assert gate.destination() == expected
    assert gate.state == ProfileState.ERROR
    assert gate.error.status == 500


def test_gate_network_error_fails_closed_by_default(api, http, logged_in):
    logged_in()
    http.request.side_effect = requests.ConnectionError("refused")

    gate = ProfileGate(api)

    assert gate.destination() == ERROR_ROUTE
    assert isinstance(gate.error, requests.ConnectionError)


def test_gate_does_not_recheck_once_settled(api, http, make_response, logged_in):
    logged_in()
    http.request.return_value = make_response(status=404, body={})

    gate = ProfileGate(api)
    gate.destination()
    gate.destination()

    assert http.request.call_count == 1


def test_landing_without_session(api):
    assert landing_route(api) == LOGIN_ROUTE


def test_landing_with_expired_session(api, store, logged_in):
    logged_in(role="admin", expires_in=-5)

    assert landing_route(api) == LOGIN_ROUTE
    assert store.get() is None


@pytest.mark.parametrize("role", ["admin", "government", "industry"])
def test_landing_non_community_roles_skip_gate(api, http, logged_in, role):
    logged_in(role=role)

    assert landing_route(api) == f"/{role}"
    http.request.assert_not_called()


def test_landing_community_goes_through_gate(api, http, make_response, logged_in):
    logged_in(role="community")
    http.request.return_value = make_response(status=404, body={})

    assert landing_route(api) == COMMUNITY_SETUP_ROUTE


def test_landing_unknown_role_clears_session(api, store, make_token):
    store.set(make_token(role="pirate"), {"role": "pirate"})

    assert landing_route(api) == LOGIN_ROUTE
    assert store.get() is None


def test_client_package_does_not_import_server_code():
    import client.dashboards
    import client.profile_gate

    assert client.dashboards.Role.__module__ == "client.roles"
    assert client.profile_gate.Role.__module__ == "client.roles"
