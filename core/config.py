# ABOUTME: Shared app configuration and constants used across API, agent and UI (core package).
# ABOUTME: Keeps cycle, auth and client-timing defaults in one place so API and clients stay in sync.

import os

from dotenv import load_dotenv

load_dotenv()


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name, str(default))
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name, str(default))
    try:
        return float(raw)
    except ValueError:
        return default


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


# Cycle shape
CYCLE_WEEKS = 12
DAYS_PER_WEEK = 7
# Calendar weeks are computed in this zone; start dates are Monday 00:00 here.
CYCLE_TIMEZONE = os.environ.get("CYCLE_TIMEZONE", "UTC")

# Auth: SECRET_KEY must be set (e.g. in .env); no default to avoid JWT forgery in production.
_SECRET_KEY = os.environ.get("SECRET_KEY")
if not _SECRET_KEY:
    raise ValueError(
        "SECRET_KEY environment variable must be set. For local dev, add SECRET_KEY=your-secret to .env."
    )
SECRET_KEY = _SECRET_KEY
ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = _env_int("ACCESS_TOKEN_EXPIRE_MINUTES", 60 * 24)
CONFIRMATION_TOKEN_EXPIRE_HOURS = _env_int("CONFIRMATION_TOKEN_EXPIRE_HOURS", 48)
REQUIRE_EMAIL_CONFIRMATION = _env_bool("REQUIRE_EMAIL_CONFIRMATION", True)
MIN_PASSWORD_LENGTH = 6
MAX_EMAIL_LENGTH = 254
MAX_NAME_LENGTH = 128

# Where the confirmation link sends the browser back to (the Streamlit client).
APP_URL = os.environ.get("APP_URL", "http://localhost:8501").rstrip("/")
API_URL = os.environ.get("API_URL", "http://localhost:8000").rstrip("/")

# CORS: comma-separated origins; default allows local Streamlit UI. Set in production.
_raw_cors = os.environ.get("CORS_ORIGINS", "http://localhost:8501")
CORS_ORIGINS = [o.strip() for o in _raw_cors.split(",") if o.strip()] or [
    "http://localhost:8501"
]

# Storage
TRACKER_DB_PATH = os.environ.get("TRACKER_DB_PATH", "tracker.db")
CLIENT_STATE_PATH = os.environ.get("CLIENT_STATE_PATH", ".tracker_client_state.json")

# AI briefing
BRIEFING_MODEL = os.environ.get("BRIEFING_MODEL", "gemini-2.5-flash")
MAX_BRIEFING_WORDS = 150

# Client write coalescing and save-status timing (seconds)
REORDER_DEBOUNCE_SECONDS = _env_float("REORDER_DEBOUNCE_SECONDS", 0.4)
FIELD_DEBOUNCE_SECONDS = _env_float("FIELD_DEBOUNCE_SECONDS", 0.8)
SAVED_STATUS_CLEAR_SECONDS = 3.0
ERROR_STATUS_CLEAR_SECONDS = 5.0
