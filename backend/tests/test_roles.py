from backend.auth_service.models import Role
from client.roles import Role as ClientRole


def test_client_roles_match_server_roles():
    assert {r.value for r in ClientRole} == {r.value for r in Role}


def test_parse_rejects_unknown_role():
    assert Role.parse("pirate") is None
    assert Role.parse("admin") is Role.ADMIN
