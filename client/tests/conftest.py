import time

import jwt
import pytest

from client.api import ApiClient
from client.session import SessionStore


@pytest.fixture
def store(tmp_path):
    return SessionStore(tmp_path / "session.json")


@pytest.fixture
def http(mocker):
    return mocker.Mock()


@pytest.fixture
def api(store, http):
    return ApiClient(base_url="http://api.test/api", store=store, http=http)


@pytest.fixture
def make_response(mocker):
    """
    Factory for objects shaped like requests.Response.
    """
    def make(status=200, body=None, json_error=False):
        response = mocker.Mock()
        response.status_code = status
        response.ok = 200 <= status < 400
        if json_error:
            response.json.side_effect = ValueError("No JSON object could be decoded")
        else:
            response.json.return_value = body if body is not None else {}
        return response

    return make


@pytest.fixture
def make_token():
    def make(role="community", expires_in=3600, user_id=1):
        now = int(time.time())
        payload = {"sub": str(user_id), "email": "t@example.com", "role": role,
                   "iat": now, "exp": now + expires_in}
        return jwt.encode(payload, "any-secret", algorithm="HS256")

    return make


@pytest.fixture
def logged_in(store, make_token):
    """
    Seed the store with a live session for the given role.
    """
    def make(role="community", expires_in=3600):
        token = make_token(role=role, expires_in=expires_in)
        store.set(token, {"_id": 1, "email": "t@example.com", "role": role})
        return token

    return make
