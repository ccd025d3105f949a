"""
Shared configuration for the registry backend.
Values come from the environment (or a local .env file).
"""

import os
from typing import List

from dotenv import load_dotenv

load_dotenv()

APP_ENV = os.getenv("APP_ENV", "development")

# Default 7 days
TOKEN_EXPIRATION_MINUTES = int(os.getenv("TOKEN_EXPIRATION_MINUTES", 7 * 24 * 60))

GATEWAY_PORT = int(os.getenv("GATEWAY_PORT", 5000))

LOGIN_RATE_LIMIT = int(os.getenv("LOGIN_RATE_LIMIT", 5))
LOGIN_RATE_WINDOW_SECONDS = int(os.getenv("LOGIN_RATE_WINDOW_SECONDS", 15 * 60))

PASSWORD_RESET_RATE_LIMIT = int(os.getenv("PASSWORD_RESET_RATE_LIMIT", 3))
PASSWORD_RESET_RATE_WINDOW_SECONDS = int(os.getenv("PASSWORD_RESET_RATE_WINDOW_SECONDS", 60 * 60))
PASSWORD_RESET_TOKEN_MINUTES = 60
EMAIL_VERIFICATION_TOKEN_MINUTES = 24 * 60

DEFAULT_CORS_ORIGINS = [
    "http://localhost:5173",  # Vite dev server
    "http://localhost:5174",
    "http://127.0.0.1:5173",
    "http://127.0.0.1:5174",
]


def cors_origins() -> List[str]:
    """
    Allowed browser origins, from CORS_ORIGINS (comma separated) or the dev defaults.
    """
    raw = os.getenv("CORS_ORIGINS", "")
    origins = [o.strip() for o in raw.split(",") if o.strip()]
    return origins or DEFAULT_CORS_ORIGINS


def is_development() -> bool:
    return APP_ENV == "development"
