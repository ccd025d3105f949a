import os
from datetime import datetime, timezone

# Ensure JWT_SECRET is set before any auth module is imported
os.environ["JWT_SECRET"] = "test_secret"
os.environ.setdefault("APP_ENV", "development")

import pytest

from backend.gateway.server import create_app
from backend.auth_service.routes import login_limiter, password_reset_limiter, verification_limiter
from backend.auth_service.utils import create_token

DB_MODULES = [
    "backend.auth_service.service",
    "backend.users_service.routes",
    "backend.community_service.routes",
]


@pytest.fixture
def app():
    app = create_app()
    app.config["TESTING"] = True
    return app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture(autouse=True)
def reset_rate_limits():
    login_limiter.reset()
    password_reset_limiter.reset()
    verification_limiter.reset()
    yield


@pytest.fixture
def mock_db(mocker):
    """
    Mocks the database connection and cursor in every service module.
    """
    mock_conn = mocker.MagicMock()
    mock_cursor = mocker.MagicMock()

    # Setup the context managers for connection and cursor
    mock_conn.__enter__.return_value = mock_conn
    mock_conn.__exit__.return_value = None
    mock_cursor.__enter__.return_value = mock_cursor
    mock_cursor.__exit__.return_value = None

    mock_conn.cursor.return_value = mock_cursor

    for module in DB_MODULES:
        mocker.patch(f"{module}.get_db", return_value=mock_conn)

    return mock_conn, mock_cursor


@pytest.fixture
def user_row():
    """
    Factory for rows shaped like SELECT ... FROM users.
    """
    def make(**overrides):
        row = {
            "user_id": 1,
            "first_name": "Test",
            "last_name": "User",
            "email": "test@example.com",
            "role": "community",
            "organization": None,
            "phone": None,
            "is_verified": False,
            "is_active": True,
            "last_login": None,
            "created_at": datetime(2025, 1, 1, tzinfo=timezone.utc),
            "updated_at": datetime(2025, 1, 1, tzinfo=timezone.utc),
        }
        row.update(overrides)
        return row

    return make


@pytest.fixture
def auth_header():
    def make(user_id=1, role="community", email="test@example.com"):
        return {"Authorization": f"Bearer {create_token(user_id, email, role)}"}

    return make
