"""
Authentication service route handlers.

Provides routes for:
- User registration
- User login
- Profile retrieval (/me)
- Token refresh and logout
- Password reset request / confirmation
- Email verification request / confirmation

Business rules live in `auth_service.service`; JWT logic in `auth_service.utils`.
"""

import logging
from typing import Tuple, Dict, Any

from flask import Blueprint, request, jsonify, Response

from backend.auth_service import service
from backend.auth_service.models import get_public_profile
from backend.auth_service.utils import verify_token_from_request
from backend.config import (
    LOGIN_RATE_LIMIT,
    LOGIN_RATE_WINDOW_SECONDS,
    PASSWORD_RESET_RATE_LIMIT,
    PASSWORD_RESET_RATE_WINDOW_SECONDS,
    is_development,
)
from backend.errors import ApiError
from backend.rate_limit import RateLimiter, rate_limit
from backend.validation import json_body

auth_bp = Blueprint("auth", __name__)

login_limiter = RateLimiter(LOGIN_RATE_LIMIT, LOGIN_RATE_WINDOW_SECONDS)
password_reset_limiter = RateLimiter(PASSWORD_RESET_RATE_LIMIT, PASSWORD_RESET_RATE_WINDOW_SECONDS)
verification_limiter = RateLimiter(PASSWORD_RESET_RATE_LIMIT, PASSWORD_RESET_RATE_WINDOW_SECONDS)


# --- REQUEST LOGGING ---
@auth_bp.before_request
def before_request() -> None:
    """
    Log every incoming request to the authentication service.
    The Authorization header is never written to the log.
    """
    logging.info(
        f"[Auth] Incoming {request.method} {request.path} "
        f"bearer={'yes' if request.headers.get('Authorization') else 'no'}"
    )


@auth_bp.after_request
def after_request(response: Response) -> Response:
    """
    Log the response status code for every request.

    Args:
        response (Response): The Flask response object.

    Returns:
        Response: The passed-through response object.
    """
    logging.info(f"[Auth] Response {response.status}")
    return response


# --- REGISTER ---
@auth_bp.route("/register", methods=["POST"])
def register() -> Tuple[Response, int]:
    """
    Register a new user in the system.

    Expects a JSON body with:
    - firstName, lastName (str)
    - email (str): Unique, compared case-insensitively.
    - password (str)
    - role (str): community | industry | government | admin (default community)
    - organization (object, optional), phone (str, optional)

    Returns:
        201: { success, message, data: { user, token } }
        400: Validation failure or email already exists.
        500: Server-side error (hashing or database).
    """
    data: Dict[str, Any] = json_body()

    try:
        user, token = service.register_user(data)
    except ApiError as e:
        return e.to_response()

    return jsonify({
        "success": True,
        "message": "User registered successfully",
        "data": {"user": user, "token": token},
    }), 201


# --- LOGIN ---
@auth_bp.route("/login", methods=["POST"])
@rate_limit("login", login_limiter)
def login() -> Tuple[Response, int]:
    """
    Authenticate a user and return a JWT.

    Expects a JSON body with:
    - email (str)
    - password (str)

    Returns:
        200: { success, message, data: { user, token } }
        400: Missing credentials.
        401: Invalid credentials (same response for unknown email and wrong password).
        403: Account deactivated.
        429: Too many attempts.
        500: Database error.
    """
    data: Dict[str, Any] = json_body()

    try:
        user, token = service.authenticate(data.get("email"), data.get("password"))
    except ApiError as e:
        return e.to_response()

    return jsonify({
        "success": True,
        "message": "Login successful",
        "data": {"user": user, "token": token},
    }), 200


# --- GET CURRENT USER ---
@auth_bp.route("/me", methods=["GET"])
def get_current_user() -> Tuple[Response, int]:
    """
    Retrieve the current user's public profile.

    Requires Authorization header: Bearer <token>

    Returns:
        200: { success, data: { user } }
        401: Authentication failure.
        404: User not found in DB (edge case).
        500: Database error.
    """
    user_id, _, err, code = verify_token_from_request()
    if err:
        return err, code

    try:
        user = service.get_user(user_id)
    except ApiError as e:
        return e.to_response()

    return jsonify({"success": True, "data": {"user": get_public_profile(user)}}), 200


# --- REFRESH TOKEN ---
@auth_bp.route("/refresh", methods=["POST"])
def refresh() -> Tuple[Response, int]:
    """
    Issue a fresh token for a still-active user.

    Returns:
        200: { success, message, data: { token } }
        401: Missing/invalid token, or user no longer active.
    """
    user_id, _, err, code = verify_token_from_request()
    if err:
        return err, code

    try:
        token = service.refresh_session(user_id)
    except ApiError as e:
        return e.to_response()

    return jsonify({
        "success": True,
        "message": "Token refreshed successfully",
        "data": {"token": token},
    }), 200


# --- LOGOUT ---
@auth_bp.route("/logout", methods=["POST"])
def logout() -> Tuple[Response, int]:
    """
    Acknowledge a logout. Tokens are stateless, so the client discards its own.
    """
    _, _, err, code = verify_token_from_request()
    if err:
        return err, code

    return jsonify({"success": True, "message": "Logged out successfully"}), 200


# --- FORGOT PASSWORD ---
@auth_bp.route("/forgot-password", methods=["POST"])
@rate_limit("password-reset", password_reset_limiter)
def forgot_password() -> Tuple[Response, int]:
    """
    Start a password reset.

    The response is identical whether or not the email is registered. In
    development the reset token is echoed back since no mailer is wired up.
    """
    data: Dict[str, Any] = json_body()

    try:
        token = service.request_password_reset(data.get("email"))
    except ApiError as e:
        return e.to_response()

    body: Dict[str, Any] = {
        "success": True,
        "message": "If an account with that email exists, a password reset link has been sent.",
    }
    if token and is_development():
        body["data"] = {"resetToken": token}
    return jsonify(body), 200


# --- RESET PASSWORD ---
@auth_bp.route("/reset-password", methods=["POST"])
def reset_password() -> Tuple[Response, int]:
    """
    Set a new password using a reset token.

    Expects JSON: { "token": str, "password": str }

    Returns:
        200: Password updated.
        400: Missing fields or invalid/expired token.
    """
    data: Dict[str, Any] = json_body()

    try:
        service.reset_password(data)
    except ApiError as e:
        return e.to_response()

    return jsonify({"success": True, "message": "Password reset successfully"}), 200


# --- SEND VERIFICATION EMAIL ---
@auth_bp.route("/send-verification", methods=["POST"])
@rate_limit("verification", verification_limiter)
def send_verification() -> Tuple[Response, int]:
    """
    Issue a 24 hour email verification token for the caller.

    As with forgot-password, the token is echoed back only in development.

    Returns:
        200: Token issued, or the account is already verified.
        401: Authentication failure.
        429: Too many attempts.
    """
    user_id, _, err, code = verify_token_from_request()
    if err:
        return err, code

    try:
        token = service.request_email_verification(user_id)
    except ApiError as e:
        return e.to_response()

    if token is None:
        return jsonify({"success": True, "message": "Email is already verified"}), 200

    body: Dict[str, Any] = {"success": True, "message": "Verification email sent"}
    if is_development():
        body["data"] = {"verificationToken": token}
    return jsonify(body), 200


# --- VERIFY EMAIL ---
@auth_bp.route("/verify-email", methods=["POST"])
def verify_email() -> Tuple[Response, int]:
    """
    Confirm an email address with a verification token.

    Expects JSON: { "token": str }

    Returns:
        200: Account marked verified.
        400: Missing, invalid or expired token.
    """
    data: Dict[str, Any] = json_body()

    try:
        service.verify_email(data)
    except ApiError as e:
        return e.to_response()

    return jsonify({"success": True, "message": "Email verified successfully"}), 200
