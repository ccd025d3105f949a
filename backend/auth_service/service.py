"""
Authentication service logic.

Route handlers in ``auth_service.routes`` stay thin: they parse the request,
call into this module, and turn any ``ApiError`` raised here into a response.
"""

import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional, Tuple

import psycopg2
import psycopg2.errors
from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError
from psycopg2.extras import Json

from backend.auth_service.models import DEFAULT_ROLE, USER_COLUMNS, Role, get_public_profile
from backend.auth_service.utils import create_token
from backend.config import EMAIL_VERIFICATION_TOKEN_MINUTES, PASSWORD_RESET_TOKEN_MINUTES, is_development
from backend.database.db_connection import get_db
from backend.errors import (
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    NotFoundError,
    ValidationError,
    server_error,
)
from backend.validation import NAME_MAX_LENGTH, NAME_MIN_LENGTH, Checker, normalize_email

ph = PasswordHasher()

INVALID_CREDENTIALS = "Invalid email or password"
DUPLICATE_EMAIL = "User with this email already exists"

# Verified against on unknown emails so both failure paths cost one hash check
_DUMMY_HASH = ph.hash("not-a-real-password")


def _issue(user: Dict[str, Any]) -> Tuple[Dict[str, Any], str]:
    token = create_token(user["user_id"], user["email"], user["role"])
    return get_public_profile(user), token


def validate_registration(data: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """
    Validate and normalize a registration body.

    Raises:
        ValidationError: With one entry per offending field.
    """
    check = Checker(data)
    body = check.data

    first_name = check.text("firstName", min_length=NAME_MIN_LENGTH, max_length=NAME_MAX_LENGTH, label="First name")
    last_name = check.text("lastName", min_length=NAME_MIN_LENGTH, max_length=NAME_MAX_LENGTH, label="Last name")
    email = check.email()
    password = check.password()
    phone = check.phone()

    role = DEFAULT_ROLE
    if body.get("role") is not None:
        parsed = Role.parse(body.get("role"))
        if parsed is None:
            check.fail("role", "Invalid role selected")
        else:
            role = parsed

    organization = body.get("organization")
    if organization is not None and not isinstance(organization, dict):
        check.fail("organization", "Organization must be an object")
        organization = None

    check.raise_if_failed()

    return {
        "first_name": first_name,
        "last_name": last_name,
        "email": email,
        "password": password,
        "role": role.value,
        "organization": organization,
        "phone": phone,
    }


def register_user(data: Optional[Dict[str, Any]]) -> Tuple[Dict[str, Any], str]:
    """
    Create a credential record and issue its first session token.

    The INSERT relies on the unique index over LOWER(email); a concurrent or
    repeated registration surfaces as UniqueViolation rather than being
    pre-checked.

    Returns:
        tuple: (public user projection, token)

    Raises:
        ValidationError, ConflictError, ServerError
    """
    fields = validate_registration(data)

    try:
        pw_hash = ph.hash(fields["password"])
    except Exception as e:
        logging.error(f"[Auth] Password hashing failed: {e}")
        raise server_error("Server error during registration", e, is_development())

    sql = f"""
        INSERT INTO users (first_name, last_name, email, password_hash, role, organization, phone)
        VALUES (%s, %s, %s, %s, %s, %s, %s)
        RETURNING {USER_COLUMNS};
    """
    params = (
        fields["first_name"],
        fields["last_name"],
        fields["email"],
        pw_hash,
        fields["role"],
        Json(fields["organization"]) if fields["organization"] is not None else None,
        fields["phone"],
    )

    try:
        with get_db() as conn:
            with conn.cursor() as cur:
                cur.execute(sql, params)
                user = cur.fetchone()
    except psycopg2.errors.UniqueViolation:
        raise ConflictError(DUPLICATE_EMAIL)
    except psycopg2.Error as e:
        logging.error(f"[Auth] Registration failed: {e}")
        raise server_error("Server error during registration", e, is_development())

    logging.info(f"[Auth] Registered user {user['user_id']} as {user['role']}")
    return _issue(user)


def authenticate(email: Any, password: Any) -> Tuple[Dict[str, Any], str]:
    """
    Check credentials and issue a session token.

    Unknown email and wrong password raise the same AuthenticationError so the
    response does not reveal which accounts exist.

    Raises:
        ValidationError: Missing email or password.
        AuthenticationError: Bad credentials.
        AuthorizationError: Correct credentials for a deactivated account.
    """
    email = normalize_email(email)
    if not email or not isinstance(password, str) or not password:
        raise ValidationError("Email and password are required")

    sql = f"SELECT {USER_COLUMNS}, password_hash FROM users WHERE LOWER(email) = %s;"

    try:
        with get_db() as conn:
            with conn.cursor() as cur:
                cur.execute(sql, (email,))
                user = cur.fetchone()
    except psycopg2.Error as e:
        logging.error(f"[Auth] Login lookup failed: {e}")
        raise server_error("Server error during login", e, is_development())

    if not user:
        try:
            ph.verify(_DUMMY_HASH, password)
        except (VerificationError, InvalidHashError):
            pass
        raise AuthenticationError(INVALID_CREDENTIALS)

    try:
        ph.verify(user["password_hash"], password)
    except (VerificationError, InvalidHashError):
        raise AuthenticationError(INVALID_CREDENTIALS)

    if not user["is_active"]:
        raise AuthorizationError("Account is deactivated. Please contact support.")

    try:
        with get_db() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    "UPDATE users SET last_login = CURRENT_TIMESTAMP WHERE user_id = %s;",
                    (user["user_id"],),
                )
    except psycopg2.Error as e:
        logging.error(f"[Auth] Could not record last login: {e}")
        raise server_error("Server error during login", e, is_development())

    return _issue(user)


def get_user(user_id: int) -> Dict[str, Any]:
    """
    Fetch a user row by id.

    Raises:
        NotFoundError: No such user.
    """
    sql = f"SELECT {USER_COLUMNS} FROM users WHERE user_id = %s;"
    try:
        with get_db() as conn:
            with conn.cursor() as cur:
                cur.execute(sql, (user_id,))
                user = cur.fetchone()
    except psycopg2.Error as e:
        logging.error(f"[Auth] User lookup failed: {e}")
        raise server_error("Server error while fetching profile", e, is_development())

    if not user:
        raise NotFoundError("User not found")
    return user


def refresh_session(user_id: int) -> str:
    """
    Issue a new token for a user that still exists and is active.

    Raises:
        AuthenticationError: User gone or deactivated.
    """
    try:
        user = get_user(user_id)
    except NotFoundError:
        raise AuthenticationError("User not found or inactive")
    if not user["is_active"]:
        raise AuthenticationError("User not found or inactive")
    return create_token(user["user_id"], user["email"], user["role"])


def request_password_reset(email: Any) -> Optional[str]:
    """
    Store a one-hour reset token for the account, if it exists.

    Returns:
        str: The reset token, or None when no account matches. Callers must not
             let the difference leak into the response.
    """
    email = normalize_email(email)
    if not email:
        raise ValidationError("Please provide a valid email")

    token = secrets.token_hex(32)
    expires = datetime.now(timezone.utc) + timedelta(minutes=PASSWORD_RESET_TOKEN_MINUTES)

    sql = """
        UPDATE users
        SET password_reset_token = %s, password_reset_expires = %s, updated_at = CURRENT_TIMESTAMP
        WHERE LOWER(email) = %s
        RETURNING user_id;
    """
    try:
        with get_db() as conn:
            with conn.cursor() as cur:
                cur.execute(sql, (token, expires, email))
                row = cur.fetchone()
    except psycopg2.Error as e:
        logging.error(f"[Auth] Password reset request failed: {e}")
        raise server_error("Server error during password reset request", e, is_development())

    return token if row else None


def reset_password(data: Optional[Dict[str, Any]]) -> None:
    """
    Replace the password of the account holding a valid, unexpired reset token.

    Raises:
        ValidationError: Missing fields, or an invalid/expired token.
    """
    check = Checker(data)
    token = check.text("token", label="Reset token")
    password = check.password()
    check.raise_if_failed()

    try:
        pw_hash = ph.hash(password)
    except Exception as e:
        logging.error(f"[Auth] Password hashing failed: {e}")
        raise server_error("Server error during password reset", e, is_development())

    sql = """
        UPDATE users
        SET password_hash = %s,
            password_reset_token = NULL,
            password_reset_expires = NULL,
            updated_at = CURRENT_TIMESTAMP
        WHERE password_reset_token = %s AND password_reset_expires > CURRENT_TIMESTAMP
        RETURNING user_id;
    """
    try:
        with get_db() as conn:
            with conn.cursor() as cur:
                cur.execute(sql, (pw_hash, token))
                row = cur.fetchone()
    except psycopg2.Error as e:
        logging.error(f"[Auth] Password reset failed: {e}")
        raise server_error("Server error during password reset", e, is_development())

    if not row:
        raise ValidationError("Invalid or expired reset token")


def request_email_verification(user_id: int) -> Optional[str]:
    """
    Store a fresh verification token for an account that is not yet verified.

    Returns:
        str: The token, or None when the account is already verified or gone.
    """
    token = secrets.token_hex(32)
    expires = datetime.now(timezone.utc) + timedelta(minutes=EMAIL_VERIFICATION_TOKEN_MINUTES)

    sql = """
        UPDATE users
        SET email_verification_token = %s, email_verification_expires = %s, updated_at = CURRENT_TIMESTAMP
        WHERE user_id = %s AND is_verified = FALSE
        RETURNING user_id;
    """
    try:
        with get_db() as conn:
            with conn.cursor() as cur:
                cur.execute(sql, (token, expires, user_id))
                row = cur.fetchone()
    except psycopg2.Error as e:
        logging.error(f"[Auth] Verification request failed for {user_id}: {e}")
        raise server_error("Server error during email verification", e, is_development())

    return token if row else None


def verify_email(data: Optional[Dict[str, Any]]) -> None:
    """
    Mark the account holding a valid, unexpired verification token as verified.

    Raises:
        ValidationError: Missing token, or an invalid/expired one.
    """
    check = Checker(data)
    token = check.text("token", label="Verification token")
    check.raise_if_failed()

    sql = """
        UPDATE users
        SET is_verified = TRUE,
            email_verification_token = NULL,
            email_verification_expires = NULL,
            updated_at = CURRENT_TIMESTAMP
        WHERE email_verification_token = %s AND email_verification_expires > CURRENT_TIMESTAMP
        RETURNING user_id;
    """
    try:
        with get_db() as conn:
            with conn.cursor() as cur:
                cur.execute(sql, (token,))
                row = cur.fetchone()
    except psycopg2.Error as e:
        logging.error(f"[Auth] Email verification failed: {e}")
        raise server_error("Server error during email verification", e, is_development())

    if not row:
        raise ValidationError("Invalid or expired verification token")
    logging.info(f"[Auth] Verified email for user {row['user_id']}")
