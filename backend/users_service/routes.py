"""
User management route handlers.

Admins can list users, see account statistics, change roles,
activate/deactivate accounts and mark them verified. Any authenticated user
may read or edit their own record.
Accounts are never hard-deleted here; is_active is the off switch.
"""

import logging
from typing import Any, Dict, List, Tuple

import psycopg2
from flask import Blueprint, g, request, jsonify, Response
from psycopg2.extras import Json

from backend.auth_service.models import USER_COLUMNS, Role, get_public_profile
from backend.auth_service.utils import verify_token_from_request
from backend.config import is_development
from backend.database.db_connection import get_db
from backend.errors import AuthorizationError, NotFoundError, ValidationError, server_error
from backend.validation import NAME_MAX_LENGTH, NAME_MIN_LENGTH, Checker, json_body

users_bp = Blueprint("users", __name__)

DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100


def _positive_int(value: Any, default: int) -> int:
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        return default
    return parsed if parsed > 0 else default


def _update_user(user_id: int, fields: Dict[str, Any], action: str) -> Tuple[Response, int]:
    """
    Apply a column update and return the refreshed public projection.
    """
    set_clause = ", ".join(f"{k} = %s" for k in fields)
    set_clause += ", updated_at = CURRENT_TIMESTAMP"
    values = list(fields.values()) + [user_id]

    sql = f"UPDATE users SET {set_clause} WHERE user_id = %s RETURNING {USER_COLUMNS};"

    try:
        with get_db() as conn:
            with conn.cursor() as cur:
                cur.execute(sql, values)
                user = cur.fetchone()
    except psycopg2.Error as e:
        logging.error(f"[Users] {action} failed for {user_id}: {e}")
        return server_error("Internal server error", e, is_development()).to_response()

    if not user:
        return NotFoundError("User not found").to_response()

    return jsonify({
        "success": True,
        "message": f"{action} successfully",
        "data": {"user": get_public_profile(user)},
    }), 200


# --- LIST USERS (ADMIN ONLY) ---
@users_bp.route("", methods=["GET"])
@users_bp.route("/", methods=["GET"])
def list_users() -> Tuple[Response, int]:
    """
    Admin-only endpoint to list users.

    Query params:
    - page, limit: pagination (limit capped at 100)
    - role: filter by role
    - search: matches first name, last name or email

    Returns:
        200: { success, data: { users, pagination } }
        400: Unknown role filter.
        401/403: Unauthorized (not an admin).
        500: Database error.
    """
    _, _, err, code = verify_token_from_request(required_roles=[Role.ADMIN])
    if err:
        return err, code

    page = _positive_int(request.args.get("page"), 1)
    limit = min(_positive_int(request.args.get("limit"), DEFAULT_PAGE_SIZE), MAX_PAGE_SIZE)

    where: List[str] = []
    params: List[Any] = []

    role_filter = request.args.get("role")
    if role_filter:
        role = Role.parse(role_filter)
        if role is None:
            return ValidationError("Invalid role filter").to_response()
        where.append("role = %s")
        params.append(role.value)

    search = (request.args.get("search") or "").strip()
    if search:
        where.append("(first_name ILIKE %s OR last_name ILIKE %s OR email ILIKE %s)")
        pattern = f"%{search}%"
        params.extend([pattern, pattern, pattern])

    where_sql = f"WHERE {' AND '.join(where)}" if where else ""

    try:
        with get_db() as conn:
            with conn.cursor() as cur:
                cur.execute(f"SELECT COUNT(*) AS total FROM users {where_sql};", params)
                total = cur.fetchone()["total"]
                cur.execute(
                    f"SELECT {USER_COLUMNS} FROM users {where_sql} "
                    f"ORDER BY created_at DESC LIMIT %s OFFSET %s;",
                    params + [limit, (page - 1) * limit],
                )
                users = [get_public_profile(row) for row in cur.fetchall()]
    except psycopg2.Error as e:
        logging.error(f"[Users] Listing failed: {e}")
        return server_error("Failed to retrieve users", e, is_development()).to_response()

    total_pages = (total + limit - 1) // limit
    return jsonify({
        "success": True,
        "data": {
            "users": users,
            "pagination": {
                "currentPage": page,
                "totalPages": total_pages,
                "totalUsers": total,
                "hasNext": page < total_pages,
                "hasPrev": page > 1,
            },
        },
    }), 200


# --- STATS (ADMIN ONLY) ---
@users_bp.route("/stats/overview", methods=["GET"])
def user_stats() -> Tuple[Response, int]:
    """
    Admin-only account counts, per-role totals and the five newest users.

    Returns:
        200: { success, data: { overview, roleStats, recentUsers } }
        401/403: Unauthorized (not an admin).
        500: Database error.
    """
    _, _, err, code = verify_token_from_request(required_roles=[Role.ADMIN])
    if err:
        return err, code

    try:
        with get_db() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    SELECT COUNT(*) AS total,
                           COUNT(*) FILTER (WHERE is_active) AS active,
                           COUNT(*) FILTER (WHERE is_verified) AS verified
                    FROM users;
                    """
                )
                counts = cur.fetchone()
                cur.execute("SELECT role, COUNT(*) AS count FROM users GROUP BY role ORDER BY count DESC;")
                role_stats = [{"role": r["role"], "count": r["count"]} for r in cur.fetchall()]
                cur.execute(f"SELECT {USER_COLUMNS} FROM users ORDER BY created_at DESC LIMIT 5;")
                recent = [get_public_profile(row) for row in cur.fetchall()]
    except psycopg2.Error as e:
        logging.error(f"[Users] Stats failed: {e}")
        return server_error("Internal server error", e, is_development()).to_response()

    return jsonify({
        "success": True,
        "data": {
            "overview": {
                "totalUsers": counts["total"],
                "activeUsers": counts["active"],
                "verifiedUsers": counts["verified"],
                "inactiveUsers": counts["total"] - counts["active"],
            },
            "roleStats": role_stats,
            "recentUsers": recent,
        },
    }), 200


# --- GET ONE USER ---
@users_bp.route("/<int:user_id>", methods=["GET"])
def get_user(user_id: int) -> Tuple[Response, int]:
    """
    Fetch a user's public profile. Admins may read anyone; others only themselves.
    """
    caller_id, role, err, code = verify_token_from_request()
    if err:
        return err, code

    if role != Role.ADMIN.value and caller_id != user_id:
        return AuthorizationError("Access denied").to_response()

    sql = f"SELECT {USER_COLUMNS} FROM users WHERE user_id = %s;"
    try:
        with get_db() as conn:
            with conn.cursor() as cur:
                cur.execute(sql, (user_id,))
                user = cur.fetchone()
    except psycopg2.Error as e:
        logging.error(f"[Users] Lookup failed for {user_id}: {e}")
        return server_error("Internal server error", e, is_development()).to_response()

    if not user:
        return NotFoundError("User not found").to_response()

    return jsonify({"success": True, "data": {"user": get_public_profile(user)}}), 200


# --- UPDATE PROFILE ---
@users_bp.route("/<int:user_id>", methods=["PUT"])
def update_user(user_id: int) -> Tuple[Response, int]:
    """
    Update profile fields: firstName, lastName, phone, organization.

    Admins may edit anyone; others only themselves. Role, status and email
    are not editable here.
    """
    caller_id, role, err, code = verify_token_from_request()
    if err:
        return err, code

    if role != Role.ADMIN.value and caller_id != user_id:
        return AuthorizationError("Access denied").to_response()

    data = json_body()
    check = Checker(data)
    fields: Dict[str, Any] = {}

    if "firstName" in data:
        fields["first_name"] = check.text("firstName", min_length=NAME_MIN_LENGTH,
                                          max_length=NAME_MAX_LENGTH, label="First name")
    if "lastName" in data:
        fields["last_name"] = check.text("lastName", min_length=NAME_MIN_LENGTH,
                                         max_length=NAME_MAX_LENGTH, label="Last name")
    if "phone" in data:
        fields["phone"] = check.phone()
    if "organization" in data:
        organization = data.get("organization")
        if organization is not None and not isinstance(organization, dict):
            check.fail("organization", "Organization must be an object")
        else:
            fields["organization"] = Json(organization) if organization is not None else None

    try:
        check.raise_if_failed()
    except ValidationError as e:
        return e.to_response()

    if not fields:
        return ValidationError("No valid fields provided").to_response()

    return _update_user(user_id, fields, "Profile updated")


# --- SET ROLE (ADMIN ONLY) ---
@users_bp.route("/<int:user_id>/role", methods=["PUT"])
def update_role(user_id: int) -> Tuple[Response, int]:
    """
    Admin-only endpoint to change a user's role.

    Expects JSON: { "role": "community" | "industry" | "government" | "admin" }
    """
    _, _, err, code = verify_token_from_request(required_roles=[Role.ADMIN])
    if err:
        return err, code

    new_role = Role.parse(json_body().get("role"))
    if new_role is None:
        return ValidationError("Invalid role").to_response()

    logging.info(f"[Users] Admin {g.current_user['user_id']} set role of {user_id} to {new_role.value}")
    return _update_user(user_id, {"role": new_role.value}, "User role updated")


# --- SET STATUS (ADMIN ONLY) ---
@users_bp.route("/<int:user_id>/status", methods=["PUT"])
def update_status(user_id: int) -> Tuple[Response, int]:
    """
    Admin-only endpoint to activate or deactivate an account.

    Expects JSON: { "isActive": bool }
    """
    _, _, err, code = verify_token_from_request(required_roles=[Role.ADMIN])
    if err:
        return err, code

    is_active = json_body().get("isActive")
    if not isinstance(is_active, bool):
        return ValidationError("Status must be true or false").to_response()

    action = "User activated" if is_active else "User deactivated"
    return _update_user(user_id, {"is_active": is_active}, action)


# --- VERIFY (ADMIN ONLY) ---
@users_bp.route("/<int:user_id>/verify", methods=["PUT"])
def verify_user(user_id: int) -> Tuple[Response, int]:
    """
    Admin-only endpoint to mark an account verified.
    """
    _, _, err, code = verify_token_from_request(required_roles=[Role.ADMIN])
    if err:
        return err, code

    return _update_user(user_id, {"is_verified": True}, "User verified")
