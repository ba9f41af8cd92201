from pathlib import Path
import os
from zoneinfo import ZoneInfo


BASE_DIR = Path(__file__).resolve().parent.parent
APP_ENV = os.getenv("APP_ENV", "development").strip().lower()
IS_PRODUCTION = APP_ENV in {"prod", "production"}


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return int(raw)


SUPABASE_URL = os.getenv("SUPABASE_URL", "")
SUPABASE_SERVICE_ROLE_KEY = os.getenv("SUPABASE_SERVICE_ROLE_KEY", "")
SUPABASE_TABLE_PREFIX = os.getenv("SUPABASE_TABLE_PREFIX", "").strip()

DEFAULT_SECRET_KEY = "dev-secret-change-me"
SECRET_KEY = os.getenv("APP_SECRET_KEY", DEFAULT_SECRET_KEY)
SESSION_COOKIE_NAME = "session"
SESSION_HTTPS_ONLY = _env_bool("SESSION_HTTPS_ONLY", IS_PRODUCTION)
SESSION_SAME_SITE = os.getenv("SESSION_SAME_SITE", "lax").strip().lower() or "lax"
SESSION_MAX_AGE = _env_int("SESSION_MAX_AGE", 60 * 60 * 24 * 14)

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").strip().upper() or "INFO"

APP_TIMEZONE = ZoneInfo(os.getenv("APP_TIMEZONE", "Asia/Jakarta"))

TEMPLATES_DIR = BASE_DIR / "templates"
STATIC_DIR = BASE_DIR / "static"

MIN_PASSWORD_LENGTH = 8
STORE_ID_PATTERN = r"^[a-z0-9_-]+$"

# Lifetime points required for each member tier, highest first.
TIER_THRESHOLDS = (
    ("Platinum", 50000),
    ("Gold", 10000),
    ("Silver", 0),
)

TRANSACTION_LIST_LIMIT = 200
DASHBOARD_RECENT_LIMIT = 5
