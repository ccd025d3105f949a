"""
Database bootstrap script.

Applies schema.sql, confirms the critical tables exist, and optionally seeds
an admin account from ADMIN_EMAIL / ADMIN_PASSWORD so the user-management
routes can be exercised on a fresh database.
"""

import os
import sys
from pathlib import Path

# Ensure the backend module can be found
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..', '..')))

from backend.database.db_connection import connect

SCHEMA_PATH = Path(__file__).with_name("schema.sql")
CRITICAL_TABLES = ["users", "community_profiles"]


def apply_schema(conn) -> None:
    with conn.cursor() as cur:
        cur.execute(SCHEMA_PATH.read_text())
    conn.commit()


def missing_tables(conn) -> list:
    missing = []
    with conn.cursor() as cur:
        for t in CRITICAL_TABLES:
            cur.execute("SELECT to_regclass(%s) AS oid;", (t,))
            if not cur.fetchone()["oid"]:
                missing.append(t)
    return missing


def seed_admin(conn, email: str, password: str) -> bool:
    """
    Insert an admin user unless the email is already registered.

    Returns:
        bool: True if a new row was created.
    """
    from backend.auth_service.service import ph

    sql = """
        INSERT INTO users (first_name, last_name, email, password_hash, role, is_verified)
        VALUES (%s, %s, %s, %s, 'admin', TRUE)
        ON CONFLICT ((LOWER(email))) DO NOTHING
        RETURNING user_id;
    """
    with conn.cursor() as cur:
        cur.execute(sql, ("System", "Admin", email.strip().lower(), ph.hash(password)))
        created = cur.fetchone() is not None
    conn.commit()
    return created


def main() -> int:
    print("--- Initializing registry database ---")
    conn = connect()
    try:
        apply_schema(conn)
        missing = missing_tables(conn)
        if missing:
            print(f"Tables missing after applying schema: {', '.join(missing)}")
            return 1
        print("Schema applied; all critical tables found.")

        admin_email = os.getenv("ADMIN_EMAIL")
        admin_password = os.getenv("ADMIN_PASSWORD")
        if admin_email and admin_password:
            if seed_admin(conn, admin_email, admin_password):
                print(f"Created admin account {admin_email}")
            else:
                print(f"Admin account {admin_email} already exists")
    finally:
        conn.close()
        print("Database connection closed.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
