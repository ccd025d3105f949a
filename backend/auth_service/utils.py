"""
Shared authentication helpers.
Provides token creation, verification, and role enforcement.
"""

import os
import jwt
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterable, Optional, Tuple
from flask import g, request, Response
from dotenv import load_dotenv

from backend.config import TOKEN_EXPIRATION_MINUTES
from backend.errors import ApiError, AuthenticationError, AuthorizationError

# Load .env only once here
load_dotenv()

JWT_SECRET = os.getenv("JWT_SECRET")
if not JWT_SECRET:
    raise RuntimeError("JWT_SECRET is missing. Set it in .env")

JWT_ALGORITHM = "HS256"


# --- JWT CREATION ---
def create_token(user_id: int, email: str, role: str, expires_in: Optional[timedelta] = None) -> str:
    """
    Generates a new JWT for a given user.

    Args:
        user_id (int): The unique ID of the user.
        email (str): The user's normalized email.
        role (str): community, industry, government or admin.
        expires_in (timedelta, optional): Override of the configured validity window.

    Returns:
        str: Encoded JWT string.
    """
    now = datetime.now(timezone.utc)
    lifetime = expires_in if expires_in is not None else timedelta(minutes=TOKEN_EXPIRATION_MINUTES)

    payload = {
        # PyJWT requires a string subject
        "sub": str(user_id),
        "email": email,
        "role": role,
        "exp": now + lifetime,
        "iat": now,
    }

    return jwt.encode(payload, JWT_SECRET, algorithm=JWT_ALGORITHM)


# --- JWT VALIDATION ---
def decode_token(token: str) -> Dict[str, Any]:
    """
    Verify signature and expiry, returning the identity carried by the token.

    Raises:
        AuthenticationError: Expired, tampered, or malformed token.
    """
    try:
        payload = jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise AuthenticationError("Token expired. Please login again.")
    except jwt.InvalidTokenError:
        raise AuthenticationError("Invalid token. Please login again.")

    try:
        user_id = int(payload.get("sub"))
    except (TypeError, ValueError):
        raise AuthenticationError("Invalid token. Please login again.")

    return {"user_id": user_id, "email": payload.get("email"), "role": payload.get("role")}


def bearer_token() -> Optional[str]:
    auth = request.headers.get("Authorization", "")
    if not auth.startswith("Bearer "):
        return None
    token = auth.split(" ", 1)[1].strip()
    return token or None


def verify_token_from_request(
    required_roles: Optional[Iterable[str]] = None,
) -> Tuple[Optional[int], Optional[str], Optional[Response], Optional[int]]:
    """
    Verify the JWT in the Authorization header.

    On success the decoded identity is stored on ``flask.g.current_user``.

    Args:
        required_roles (iterable, optional): Allowed roles for the route.

    Returns:
        tuple: (user_id, role, error_response, status_code)
               If successful, error_response and status_code are None.
               If failed, user_id and role are None.
    """
    token = bearer_token()
    if token is None:
        err: ApiError = AuthenticationError("Access denied. No token provided.")
        return (None, None) + err.to_response()

    try:
        identity = decode_token(token)
    except AuthenticationError as e:
        return (None, None) + e.to_response()

    role = identity["role"]
    if required_roles is not None:
        allowed = {str(r.value) if hasattr(r, "value") else str(r) for r in required_roles}
        if role not in allowed:
            return (None, None) + AuthorizationError().to_response()

    g.current_user = identity
    return identity["user_id"], role, None, None


def verify_token(token: str) -> Optional[int]:
    """
    Validate a JWT manually (optional usage).

    Args:
        token (str): JWT string.

    Returns:
        int: user_id if valid, None otherwise.
    """
    try:
        return decode_token(token)["user_id"]
    except AuthenticationError:
        return None
