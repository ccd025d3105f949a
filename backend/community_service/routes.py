"""
Community service routes: the authenticated user's community profile
(create, read, update, submit, delete), public profile browsing and
aggregate statistics.

A missing profile is reported as 404 so clients can route the user to the
setup form.
"""

import logging
from typing import Any, Dict, List, Tuple

import psycopg2
import psycopg2.errors
from flask import Blueprint, request, jsonify, Response
from psycopg2.extras import Json

from backend.auth_service.models import Role
from backend.auth_service.utils import verify_token_from_request
from backend.community_service import models
from backend.config import is_development
from backend.database.db_connection import get_db
from backend.errors import ApiError, AuthorizationError, ConflictError, NotFoundError, ValidationError, server_error
from backend.validation import json_body

community_bp = Blueprint("community", __name__)

PROFILE_COLUMNS = """
    profile_id, user_id, community_name, community_type, description, location,
    demographics, contact_info, profile_status, submitted_at, is_public,
    created_at, updated_at
"""

DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100


def _db_value(column: str, value: Any) -> Any:
    return Json(value) if column in models.JSON_COLUMNS else value


def _fetch_own_profile(cur, user_id: int):
    cur.execute(f"SELECT {PROFILE_COLUMNS} FROM community_profiles WHERE user_id = %s;", (user_id,))
    return cur.fetchone()


# --- MY PROFILE ---
@community_bp.route("/my-profile", methods=["GET"])
def get_my_profile() -> Tuple[Response, int]:
    """
    Return the caller's community profile with its completion percentage.

    Returns:
        200: { success, data: profile }
        401: Authentication failure.
        404: The user has not created a profile yet.
    """
    user_id, _, err, code = verify_token_from_request()
    if err:
        return err, code

    try:
        with get_db() as conn:
            with conn.cursor() as cur:
                profile = _fetch_own_profile(cur, user_id)
    except psycopg2.Error as e:
        logging.error(f"[Community] Error fetching profile for {user_id}: {e}")
        return server_error("Server error while fetching community profile", e, is_development()).to_response()

    if not profile:
        return NotFoundError("Community profile not found").to_response()

    return jsonify({"success": True, "data": models.serialize(profile)}), 200


# --- CREATE PROFILE ---
@community_bp.route("/profile", methods=["POST"])
def create_profile() -> Tuple[Response, int]:
    """
    Create the caller's community profile. Only community users may do this,
    and only once; the unique user_id constraint enforces the latter.

    Returns:
        201: Created profile.
        400: Validation error or profile already exists.
        403: Caller is not a community user.
    """
    user_id, _, err, code = verify_token_from_request(required_roles=[Role.COMMUNITY])
    if err:
        if code == 403:
            return AuthorizationError("Only community users can create community profiles").to_response()
        return err, code

    try:
        fields = models.validate_profile(json_body())
    except ApiError as e:
        return e.to_response()

    columns = ["user_id"] + list(fields)
    values = [user_id] + [_db_value(c, v) for c, v in fields.items()]
    placeholders = ", ".join(["%s"] * len(columns))

    sql = f"""
        INSERT INTO community_profiles ({', '.join(columns)})
        VALUES ({placeholders})
        RETURNING {PROFILE_COLUMNS};
    """

    try:
        with get_db() as conn:
            with conn.cursor() as cur:
                cur.execute(sql, values)
                profile = cur.fetchone()
    except psycopg2.errors.UniqueViolation:
        return ConflictError("Community profile already exists for this user").to_response()
    except psycopg2.Error as e:
        logging.error(f"[Community] Error creating profile for {user_id}: {e}")
        return server_error("Server error while creating community profile", e, is_development()).to_response()

    logging.info(f"[Community] Created profile {profile['profile_id']} for user {user_id}")
    return jsonify({
        "success": True,
        "message": "Community profile created successfully",
        "data": models.serialize(profile),
    }), 201


# --- UPDATE PROFILE ---
@community_bp.route("/profile", methods=["PUT"])
def update_profile() -> Tuple[Response, int]:
    """
    Update the caller's profile.

    A profile under review is locked; editing a verified profile sends it
    back to Draft. Nested objects (location, demographics, contactInfo) are
    merged into the stored ones, and the result must still be a complete
    profile.
    """
    user_id, _, err, code = verify_token_from_request()
    if err:
        return err, code

    try:
        fields = models.validate_profile(json_body(), partial=True)
    except ApiError as e:
        return e.to_response()

    if not fields:
        return ValidationError("No valid fields provided").to_response()

    try:
        with get_db() as conn:
            with conn.cursor() as cur:
                existing = _fetch_own_profile(cur, user_id)
                if not existing:
                    return NotFoundError("Community profile not found").to_response()
                if existing["profile_status"] == models.UNDER_REVIEW:
                    return ValidationError("Cannot update profile while under review").to_response()

                try:
                    fields = models.apply_update(existing, fields)
                except ApiError as e:
                    return e.to_response()

                if existing["profile_status"] == models.VERIFIED:
                    fields["profile_status"] = models.DRAFT

                set_clause = ", ".join(f"{c} = %s" for c in fields)
                set_clause += ", updated_at = CURRENT_TIMESTAMP"
                values = [_db_value(c, v) for c, v in fields.items()] + [user_id]

                cur.execute(
                    f"UPDATE community_profiles SET {set_clause} WHERE user_id = %s RETURNING {PROFILE_COLUMNS};",
                    values,
                )
                profile = cur.fetchone()
    except psycopg2.Error as e:
        logging.error(f"[Community] Error updating profile for {user_id}: {e}")
        return server_error("Server error while updating community profile", e, is_development()).to_response()

    return jsonify({
        "success": True,
        "message": "Community profile updated successfully",
        "data": models.serialize(profile),
    }), 200


# --- SUBMIT FOR REVIEW ---
@community_bp.route("/profile/submit", methods=["POST"])
def submit_profile() -> Tuple[Response, int]:
    """
    Move a Draft profile to Submitted once it is at least 70% complete.
    """
    user_id, _, err, code = verify_token_from_request()
    if err:
        return err, code

    try:
        with get_db() as conn:
            with conn.cursor() as cur:
                existing = _fetch_own_profile(cur, user_id)
                if not existing:
                    return NotFoundError("Community profile not found").to_response()
                if existing["profile_status"] != models.DRAFT:
                    return ValidationError("Only draft profiles can be submitted for review").to_response()

                completion = models.serialize(existing)["completionPercentage"]
                if completion < models.SUBMIT_THRESHOLD:
                    return ValidationError(
                        f"Profile is only {completion}% complete. "
                        f"Please complete at least {models.SUBMIT_THRESHOLD}% before submitting."
                    ).to_response()

                cur.execute(
                    """
                    UPDATE community_profiles
                    SET profile_status = %s, submitted_at = CURRENT_TIMESTAMP, updated_at = CURRENT_TIMESTAMP
                    WHERE user_id = %s
                    RETURNING profile_status, submitted_at;
                    """,
                    (models.SUBMITTED, user_id),
                )
                row = cur.fetchone()
    except psycopg2.Error as e:
        logging.error(f"[Community] Error submitting profile for {user_id}: {e}")
        return server_error("Server error while submitting community profile", e, is_development()).to_response()

    return jsonify({
        "success": True,
        "message": "Community profile submitted for review successfully",
        "data": {
            "profileStatus": row["profile_status"],
            "submittedAt": row["submitted_at"].isoformat() if row["submitted_at"] else None,
        },
    }), 200


# --- DELETE PROFILE ---
@community_bp.route("/profile", methods=["DELETE"])
def delete_profile() -> Tuple[Response, int]:
    """
    Delete the caller's profile.
    """
    user_id, _, err, code = verify_token_from_request()
    if err:
        return err, code

    try:
        with get_db() as conn:
            with conn.cursor() as cur:
                cur.execute("DELETE FROM community_profiles WHERE user_id = %s;", (user_id,))
                deleted = cur.rowcount
    except psycopg2.Error as e:
        logging.error(f"[Community] Error deleting profile for {user_id}: {e}")
        return server_error("Server error while deleting community profile", e, is_development()).to_response()

    if not deleted:
        return NotFoundError("Community profile not found").to_response()

    return jsonify({"success": True, "message": "Community profile deleted successfully"}), 200


# --- PUBLIC PROFILE BY ID ---
@community_bp.route("/profile/<int:profile_id>", methods=["GET"])
def get_profile(profile_id: int) -> Tuple[Response, int]:
    """
    Public read of a single profile. Hidden unless public or verified.
    """
    try:
        with get_db() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    f"SELECT {PROFILE_COLUMNS} FROM community_profiles WHERE profile_id = %s;",
                    (profile_id,),
                )
                profile = cur.fetchone()
    except psycopg2.Error as e:
        logging.error(f"[Community] Error fetching profile {profile_id}: {e}")
        return server_error("Server error while fetching community profile", e, is_development()).to_response()

    if not profile:
        return NotFoundError("Community profile not found").to_response()

    if not profile["is_public"] and profile["profile_status"] != models.VERIFIED:
        return AuthorizationError("This community profile is not public").to_response()

    return jsonify({"success": True, "data": models.public_view(profile)}), 200


# --- PUBLIC STATS ---
@community_bp.route("/stats", methods=["GET"])
def community_stats() -> Tuple[Response, int]:
    """
    Totals and state / community-type distributions over verified public profiles.

    Returns:
        200: { success, data: { overview, stateDistribution, communityTypeDistribution } }
        500: Database error.
    """
    visible = "profile_status = %s AND is_public = TRUE"

    try:
        with get_db() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    f"""
                    SELECT COUNT(*) AS communities,
                           COALESCE(SUM((demographics ->> 'totalPopulation')::int), 0)::bigint AS population,
                           COALESCE(SUM((demographics ->> 'totalHouseholds')::int), 0)::bigint AS households
                    FROM community_profiles WHERE {visible};
                    """,
                    (models.VERIFIED,),
                )
                totals = cur.fetchone()
                cur.execute(
                    f"SELECT location ->> 'state' AS state, COUNT(*) AS count FROM community_profiles "
                    f"WHERE {visible} GROUP BY 1 ORDER BY count DESC;",
                    (models.VERIFIED,),
                )
                states = [{"state": r["state"], "count": r["count"]} for r in cur.fetchall()]
                cur.execute(
                    f"SELECT community_type, COUNT(*) AS count FROM community_profiles "
                    f"WHERE {visible} GROUP BY community_type ORDER BY count DESC;",
                    (models.VERIFIED,),
                )
                types = [{"communityType": r["community_type"], "count": r["count"]} for r in cur.fetchall()]
    except psycopg2.Error as e:
        logging.error(f"[Community] Error computing stats: {e}")
        return server_error("Server error while fetching community statistics", e, is_development()).to_response()

    return jsonify({
        "success": True,
        "data": {
            "overview": {
                "totalCommunities": totals["communities"],
                "totalPopulation": totals["population"],
                "totalHouseholds": totals["households"],
            },
            "stateDistribution": states,
            "communityTypeDistribution": types,
        },
    }), 200


# --- PUBLIC LISTING ---
@community_bp.route("/profiles", methods=["GET"])
def list_profiles() -> Tuple[Response, int]:
    """
    List verified, public profiles.

    Query params: page, limit, state, district, communityType, search.
    """
    try:
        page = max(int(request.args.get("page", 1)), 1)
        limit = min(max(int(request.args.get("limit", DEFAULT_PAGE_SIZE)), 1), MAX_PAGE_SIZE)
    except ValueError:
        return ValidationError("page and limit must be integers").to_response()

    where: List[str] = ["profile_status = %s", "is_public = TRUE"]
    params: List[Any] = [models.VERIFIED]

    state = request.args.get("state")
    if state:
        where.append("location ->> 'state' ILIKE %s")
        params.append(f"%{state}%")
    district = request.args.get("district")
    if district:
        where.append("location ->> 'district' ILIKE %s")
        params.append(f"%{district}%")
    community_type = request.args.get("communityType")
    if community_type:
        where.append("community_type = %s")
        params.append(community_type)
    search = (request.args.get("search") or "").strip()
    if search:
        where.append(
            "(community_name ILIKE %s OR description ILIKE %s "
            "OR location ->> 'district' ILIKE %s OR location ->> 'state' ILIKE %s)"
        )
        params.extend([f"%{search}%"] * 4)

    where_sql = " AND ".join(where)

    try:
        with get_db() as conn:
            with conn.cursor() as cur:
                cur.execute(f"SELECT COUNT(*) AS total FROM community_profiles WHERE {where_sql};", params)
                total = cur.fetchone()["total"]
                cur.execute(
                    f"SELECT {PROFILE_COLUMNS} FROM community_profiles WHERE {where_sql} "
                    f"ORDER BY created_at DESC LIMIT %s OFFSET %s;",
                    params + [limit, (page - 1) * limit],
                )
                rows = cur.fetchall()
    except psycopg2.Error as e:
        logging.error(f"[Community] Error listing profiles: {e}")
        return server_error("Server error while fetching community profiles", e, is_development()).to_response()

    total_pages = (total + limit - 1) // limit
    communities: List[Dict[str, Any]] = [models.public_view(r) for r in rows]
    return jsonify({
        "success": True,
        "data": {
            "communities": communities,
            "pagination": {
                "currentPage": page,
                "totalPages": total_pages,
                "totalCommunities": total,
                "hasNext": page < total_pages,
                "hasPrev": page > 1,
            },
        },
    }), 200
