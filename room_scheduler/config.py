"""Service configuration.

Values come from the process environment, optionally seeded from a ``.env``
file next to the package. Provider credentials are allowed to be empty here;
the calendar and email clients check them when they are first used.
"""

import os
from datetime import date
from pathlib import Path
from typing import List

from dotenv import load_dotenv

ROOT_DIR = Path(__file__).parent.parent.resolve()

load_dotenv(ROOT_DIR / ".env")

# --- Databases ---

ACADEMIC_DATABASE_URL: str = os.getenv(
    "ACADEMIC_DATABASE_URL", f"sqlite:///{ROOT_DIR / 'academic.db'}"
)
ROOMS_DATABASE_URL: str = os.getenv(
    "ROOMS_DATABASE_URL", f"sqlite:///{ROOT_DIR / 'rooms.db'}"
)

# --- Rooms ---

PUBLIC_URL: str = os.getenv("PUBLIC_URL", "http://localhost:5000").rstrip("/")

# --- Calendar provider ---

CALENDAR_API_BASE: str = os.getenv(
    "CALENDAR_API_BASE", "https://www.googleapis.com/calendar/v3"
)
CALENDAR_ID: str = os.getenv("CALENDAR_ID", "primary")
CALENDAR_TIMEZONE: str = os.getenv("CALENDAR_TIMEZONE", "America/Santiago")

GOOGLE_TOKEN_URL: str = os.getenv("GOOGLE_TOKEN_URL", "https://oauth2.googleapis.com/token")
GOOGLE_CLIENT_ID = os.getenv("GOOGLE_CLIENT_ID")
GOOGLE_CLIENT_SECRET = os.getenv("GOOGLE_CLIENT_SECRET")
GOOGLE_REFRESH_TOKEN = os.getenv("GOOGLE_REFRESH_TOKEN")

# --- Email ---

SMTP_HOST = os.getenv("SMTP_HOST")
SMTP_PORT: int = int(os.getenv("SMTP_PORT", "587"))
SMTP_USER = os.getenv("SMTP_USER")
SMTP_PASS = os.getenv("SMTP_PASS")
EMAIL_FROM = os.getenv("EMAIL_FROM")

# --- API server ---

_CORS_ALLOWED_ORIGINS_STR: str = os.getenv("CORS_ALLOWED_ORIGINS", "http://localhost:3000")
CORS_ALLOWED_ORIGINS: List[str] = [
    origin.strip() for origin in _CORS_ALLOWED_ORIGINS_STR.split(",") if origin.strip()
]

LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

# Minutes between reconciliation passes; 0 turns the job off.
SYNC_INTERVAL_MINUTES: int = int(os.getenv("SYNC_INTERVAL_MINUTES", "360"))

# --- Academic rules ---

# Enrollment record types that do not count as live students (withdrawn, frozen, ...)
EXCLUDED_RECORD_TYPES: List[int] = [
    int(value) for value in os.getenv("EXCLUDED_RECORD_TYPES", "2,3,4,17").split(",") if value.strip()
]

NON_CLASS_DAYS: List[date] = [
    date.fromisoformat(value.strip())
    for value in os.getenv("NON_CLASS_DAYS", "").split(",")
    if value.strip()
]
