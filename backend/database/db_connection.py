"""
PostgreSQL connection helper.
Provides get_db() for use by services.
"""

import logging
import os
from contextlib import contextmanager

import psycopg2
from psycopg2.extras import RealDictCursor
from dotenv import load_dotenv

load_dotenv()


def get_database_url() -> str:
    """
    Read DATABASE_URL at call time so tests and scripts can set it late.

    Raises:
        RuntimeError: If DATABASE_URL is not configured.
    """
    url = os.getenv("DATABASE_URL")
    if not url:
        raise RuntimeError("DATABASE_URL is not set. Please set the environment variable.")
    return url


def connect():
    """
    Open a new psycopg2 connection whose cursors yield rows as dictionaries
    (e.g., {"user_id": 1, "email": "..."}).

    Raises:
        psycopg2.Error: If connection fails.
    """
    try:
        conn = psycopg2.connect(get_database_url())
        conn.cursor_factory = RealDictCursor
        return conn
    except Exception as e:
        logging.error(f"Error connecting to database: {e}")
        raise


@contextmanager
def get_db():
    """
    Connection scope for one unit of work.

    Commits when the block exits cleanly, rolls back on error, and always
    closes the connection.

    Usage:
        with get_db() as conn:
            with conn.cursor() as cur:
                cur.execute(...)
    """
    conn = connect()
    try:
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()
