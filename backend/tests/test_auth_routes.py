import jwt
import psycopg2.errors
from argon2.exceptions import VerifyMismatchError

from backend.auth_service.service import ph

REGISTER_BODY = {
    "firstName": "A",
    "lastName": "B",
    "email": "a@b.com",
    "password": "x",
    "role": "community",
}


def _insert_args(mock_cursor):
    args, _ = mock_cursor.execute.call_args
    return args[1]


def test_register_success(client, mock_db, user_row):
    mock_conn, mock_cursor = mock_db
    mock_cursor.fetchone.return_value = user_row(first_name="A", last_name="B", email="a@b.com")

    response = client.post("/api/auth/register", json=REGISTER_BODY)

    assert response.status_code == 201
    body = response.get_json()
    assert body["success"] is True
    assert body["data"]["user"]["fullName"] == "A B"
    assert "token" in body["data"]

    params = _insert_args(mock_cursor)
    assert params[2] == "a@b.com"
    assert params[3] != "x"
    assert ph.verify(params[3], "x")


def test_register_never_returns_password(client, mock_db, user_row):
    mock_conn, mock_cursor = mock_db
    row = user_row()
    row["password_hash"] = "should-not-leak"
    mock_cursor.fetchone.return_value = row

    response = client.post("/api/auth/register", json=REGISTER_BODY)

    user = response.get_json()["data"]["user"]
    assert "password" not in user
    assert "password_hash" not in user
    assert "should-not-leak" not in response.get_data(as_text=True)


def test_register_normalizes_email(client, mock_db, user_row):
    mock_conn, mock_cursor = mock_db
    mock_cursor.fetchone.return_value = user_row()

    client.post("/api/auth/register", json={**REGISTER_BODY, "email": "  Mixed@Case.COM "})

    assert _insert_args(mock_cursor)[2] == "mixed@case.com"


def test_register_defaults_role_to_community(client, mock_db, user_row):
    mock_conn, mock_cursor = mock_db
    mock_cursor.fetchone.return_value = user_row()
    body = {k: v for k, v in REGISTER_BODY.items() if k != "role"}

    response = client.post("/api/auth/register", json=body)

    assert response.status_code == 201
    assert _insert_args(mock_cursor)[4] == "community"


def test_register_twice_conflicts(client, mock_db, user_row):
    mock_conn, mock_cursor = mock_db
    mock_cursor.fetchone.return_value = user_row()
    mock_cursor.execute.side_effect = [None, psycopg2.errors.UniqueViolation()]

    first = client.post("/api/auth/register", json=REGISTER_BODY)
    second = client.post("/api/auth/register", json={**REGISTER_BODY, "email": "A@B.com"})

    assert first.status_code == 201
    assert second.status_code == 400
    assert second.get_json()["success"] is False
    assert "already exists" in second.get_json()["message"]


def test_register_missing_fields(client):
    response = client.post("/api/auth/register", json={})

    assert response.status_code == 400
    body = response.get_json()
    assert body["message"] == "Validation failed"
    fields = {e["field"] for e in body["errors"]}
    assert {"firstName", "lastName", "email", "password"} <= fields


def test_register_invalid_role(client):
    response = client.post("/api/auth/register", json={**REGISTER_BODY, "role": "superuser"})

    assert response.status_code == 400
    assert any(e["field"] == "role" for e in response.get_json()["errors"])


def test_register_database_failure_detail_in_development(client, mock_db, mocker):
    mock_conn, mock_cursor = mock_db
    mock_cursor.execute.side_effect = psycopg2.OperationalError("connection reset")
    mocker.patch("backend.auth_service.service.is_development", return_value=True)

    response = client.post("/api/auth/register", json=REGISTER_BODY)

    assert response.status_code == 500
    assert "connection reset" in response.get_json()["message"]


def test_register_database_failure_hidden_in_production(client, mock_db, mocker):
    mock_conn, mock_cursor = mock_db
    mock_cursor.execute.side_effect = psycopg2.OperationalError("connection reset")
    mocker.patch("backend.auth_service.service.is_development", return_value=False)

    response = client.post("/api/auth/register", json=REGISTER_BODY)

    assert response.status_code == 500
    assert response.get_json()["message"] == "Server error during registration"


def test_login_success(client, mock_db, user_row, mocker):
    mock_conn, mock_cursor = mock_db
    row = user_row()
    row["password_hash"] = "hashed_secret"
    mock_cursor.fetchone.return_value = row

    mock_ph = mocker.patch("backend.auth_service.service.ph")
    mock_ph.verify.return_value = True

    response = client.post("/api/auth/login", json={"email": "test@example.com", "password": "password123"})

    assert response.status_code == 200
    data = response.get_json()["data"]
    assert data["user"]["_id"] == 1
    assert "token" in data
    mock_ph.verify.assert_called_once_with("hashed_secret", "password123")


def test_login_wrong_password_and_unknown_email_look_the_same(client, mock_db, user_row, mocker):
    mock_conn, mock_cursor = mock_db
    mock_ph = mocker.patch("backend.auth_service.service.ph")
    mock_ph.verify.side_effect = VerifyMismatchError()

    row = user_row()
    row["password_hash"] = "hashed_secret"
    mock_cursor.fetchone.return_value = row
    wrong_password = client.post("/api/auth/login", json={"email": "test@example.com", "password": "nope"})

    mock_cursor.fetchone.return_value = None
    unknown_email = client.post("/api/auth/login", json={"email": "ghost@example.com", "password": "nope"})

    assert wrong_password.status_code == unknown_email.status_code == 401
    assert wrong_password.get_json() == unknown_email.get_json()
    assert wrong_password.get_json()["message"] == "Invalid email or password"


def test_login_missing_credentials(client):
    response = client.post("/api/auth/login", json={"email": "test@example.com"})
    assert response.status_code == 400


def test_login_deactivated_account(client, mock_db, user_row, mocker):
    mock_conn, mock_cursor = mock_db
    row = user_row(is_active=False)
    row["password_hash"] = "hashed_secret"
    mock_cursor.fetchone.return_value = row
    mocker.patch("backend.auth_service.service.ph").verify.return_value = True

    response = client.post("/api/auth/login", json={"email": "test@example.com", "password": "pw"})

    assert response.status_code == 403


def test_login_rate_limited(client, mock_db, mocker):
    mock_conn, mock_cursor = mock_db
    mock_cursor.fetchone.return_value = None
    mocker.patch("backend.auth_service.service.ph").verify.side_effect = VerifyMismatchError()

    statuses = [
        client.post("/api/auth/login", json={"email": "a@b.com", "password": "bad"}).status_code
        for _ in range(6)
    ]

    assert statuses[:5] == [401] * 5
    assert statuses[5] == 429


def test_register_then_login_round_trip(client, mock_db, user_row):
    mock_conn, mock_cursor = mock_db
    mock_cursor.fetchone.return_value = user_row(user_id=42, email="a@b.com", role="industry")

    registered = client.post("/api/auth/register", json={**REGISTER_BODY, "role": "industry"})
    stored_hash = _insert_args(mock_cursor)[3]

    row = user_row(user_id=42, email="a@b.com", role="industry")
    row["password_hash"] = stored_hash
    mock_cursor.fetchone.return_value = row

    logged_in = client.post("/api/auth/login", json={"email": "a@b.com", "password": "x"})

    assert logged_in.status_code == 200
    first = jwt.decode(registered.get_json()["data"]["token"], "test_secret", algorithms=["HS256"])
    second = jwt.decode(logged_in.get_json()["data"]["token"], "test_secret", algorithms=["HS256"])
    assert first["sub"] == second["sub"] == "42"
    assert first["role"] == second["role"] == "industry"


def test_get_me_success(client, mock_db, user_row, auth_header):
    mock_conn, mock_cursor = mock_db
    mock_cursor.fetchone.return_value = user_row()

    response = client.get("/api/auth/me", headers=auth_header())

    assert response.status_code == 200
    user = response.get_json()["data"]["user"]
    assert user["email"] == "test@example.com"
    assert user["fullName"] == "Test User"


def test_get_me_unauthorized(client):
    response = client.get("/api/auth/me")
    assert response.status_code == 401


def test_get_me_user_gone(client, mock_db, auth_header):
    mock_conn, mock_cursor = mock_db
    mock_cursor.fetchone.return_value = None

    response = client.get("/api/auth/me", headers=auth_header())
    assert response.status_code == 404


def test_refresh_issues_new_token(client, mock_db, user_row, auth_header):
    mock_conn, mock_cursor = mock_db
    mock_cursor.fetchone.return_value = user_row(role="government")

    response = client.post("/api/auth/refresh", headers=auth_header(role="government"))

    assert response.status_code == 200
    token = response.get_json()["data"]["token"]
    assert jwt.decode(token, "test_secret", algorithms=["HS256"])["role"] == "government"


def test_refresh_inactive_user(client, mock_db, user_row, auth_header):
    mock_conn, mock_cursor = mock_db
    mock_cursor.fetchone.return_value = user_row(is_active=False)

    response = client.post("/api/auth/refresh", headers=auth_header())
    assert response.status_code == 401


def test_logout(client, auth_header):
    assert client.post("/api/auth/logout", headers=auth_header()).status_code == 200
    assert client.post("/api/auth/logout").status_code == 401


def test_forgot_password_does_not_reveal_accounts(client, mock_db, mocker):
    mocker.patch("backend.auth_service.routes.is_development", return_value=False)
    mock_conn, mock_cursor = mock_db

    mock_cursor.fetchone.return_value = {"user_id": 1}
    known = client.post("/api/auth/forgot-password", json={"email": "test@example.com"})
    mock_cursor.fetchone.return_value = None
    unknown = client.post("/api/auth/forgot-password", json={"email": "ghost@example.com"})

    assert known.status_code == unknown.status_code == 200
    assert known.get_json() == unknown.get_json()


def test_reset_password_invalid_token(client, mock_db):
    mock_conn, mock_cursor = mock_db
    mock_cursor.fetchone.return_value = None

    response = client.post("/api/auth/reset-password", json={"token": "abc", "password": "newpass"})

    assert response.status_code == 400
    assert response.get_json()["message"] == "Invalid or expired reset token"


def test_reset_password_success(client, mock_db):
    mock_conn, mock_cursor = mock_db
    mock_cursor.fetchone.return_value = {"user_id": 1}

    response = client.post("/api/auth/reset-password", json={"token": "abc", "password": "newpass"})

    assert response.status_code == 200
    params = _insert_args(mock_cursor)
    assert params[1] == "abc"
    assert ph.verify(params[0], "newpass")


def test_register_overlong_email_is_a_validation_error(client, mock_db):
    mock_conn, mock_cursor = mock_db

    response = client.post("/api/auth/register", json={**REGISTER_BODY, "email": "a" * 300 + "@b.com"})

    assert response.status_code == 400
    errors = response.get_json()["errors"]
    assert errors == [{"field": "email", "message": "Email must be at most 254 characters"}]
    mock_cursor.execute.assert_not_called()


def test_register_accepts_email_at_length_limit(client, mock_db, user_row):
    mock_conn, mock_cursor = mock_db
    mock_cursor.fetchone.return_value = user_row()
    email = "a" * 248 + "@b.com"

    response = client.post("/api/auth/register", json={**REGISTER_BODY, "email": email})

    assert len(email) == 254
    assert response.status_code == 201


def test_send_verification_echoes_token_in_development(client, mock_db, auth_header, mocker):
    mocker.patch("backend.auth_service.routes.is_development", return_value=True)
    mock_conn, mock_cursor = mock_db
    mock_cursor.fetchone.return_value = {"user_id": 1}

    response = client.post("/api/auth/send-verification", headers=auth_header())

    assert response.status_code == 200
    token = response.get_json()["data"]["verificationToken"]
    params = _insert_args(mock_cursor)
    assert params[0] == token
    assert len(token) == 64
    assert params[2] == 1


def test_send_verification_hides_token_in_production(client, mock_db, auth_header, mocker):
    mocker.patch("backend.auth_service.routes.is_development", return_value=False)
    mock_conn, mock_cursor = mock_db
    mock_cursor.fetchone.return_value = {"user_id": 1}

    response = client.post("/api/auth/send-verification", headers=auth_header())

    assert response.status_code == 200
    assert "data" not in response.get_json()


def test_send_verification_already_verified(client, mock_db, auth_header):
    mock_conn, mock_cursor = mock_db
    mock_cursor.fetchone.return_value = None

    response = client.post("/api/auth/send-verification", headers=auth_header())

    assert response.status_code == 200
    assert response.get_json()["message"] == "Email is already verified"


def test_send_verification_requires_token(client):
    assert client.post("/api/auth/send-verification").status_code == 401


def test_verify_email_success(client, mock_db):
    mock_conn, mock_cursor = mock_db
    mock_cursor.fetchone.return_value = {"user_id": 1}

    response = client.post("/api/auth/verify-email", json={"token": "abc"})

    assert response.status_code == 200
    assert response.get_json()["message"] == "Email verified successfully"
    sql, params = mock_cursor.execute.call_args[0]
    assert "is_verified = TRUE" in sql
    assert params == ("abc",)


def test_verify_email_invalid_token(client, mock_db):
    mock_conn, mock_cursor = mock_db
    mock_cursor.fetchone.return_value = None

    response = client.post("/api/auth/verify-email", json={"token": "stale"})

    assert response.status_code == 400
    assert response.get_json()["message"] == "Invalid or expired verification token"


def test_verify_email_missing_token(client):
    response = client.post("/api/auth/verify-email", json={})

    assert response.status_code == 400
    assert response.get_json()["errors"] == [{"field": "token", "message": "Verification token is required"}]
