import os
import secrets
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parents[1]

DB_PATH = Path(os.getenv("TIMETRACK_DB_PATH", BASE_DIR / "database" / "timetrack.db"))
ADMIN_USERNAME = os.getenv("TIMETRACK_ADMIN_USERNAME", "admin").strip() or "admin"
ADMIN_PASSWORD = os.getenv("TIMETRACK_ADMIN_PASSWORD", "admin123").strip() or "admin123"
_CONFIGURED_SIGNING_KEY = os.getenv("TIMETRACK_SIGNING_KEY", "").strip()
# A generated key lives only as long as this process.
SIGNING_KEY = _CONFIGURED_SIGNING_KEY or secrets.token_urlsafe(32)
SIGNING_KEY_GENERATED = not _CONFIGURED_SIGNING_KEY
AUTH_TOKEN_TTL_SECONDS = int(os.getenv("TIMETRACK_AUTH_TOKEN_TTL_SECONDS", "43200"))
LOG_LEVEL = os.getenv("TIMETRACK_LOG_LEVEL", "INFO").strip().upper() or "INFO"


def _parse_bool(value: str | None, fallback: bool) -> bool:
    if value is None:
        return fallback
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    return fallback


def _parse_csv(value: str | None, fallback: list[str]) -> list[str]:
    if not value:
        return fallback
    parsed = [item.strip() for item in value.split(",") if item.strip()]
    return parsed or fallback


def _parse_int(value: str | None, fallback: int, *, minimum: int, maximum: int | None = None) -> int:
    if not value:
        return fallback
    try:
        parsed = int(value.strip())
    except ValueError:
        return fallback
    if parsed < minimum:
        return minimum
    if maximum is not None and parsed > maximum:
        return maximum
    return parsed


CORS_ALLOW_ORIGINS = _parse_csv(
    os.getenv("TIMETRACK_CORS_ALLOW_ORIGINS"),
    ["http://localhost:4321", "http://127.0.0.1:4321"],
)
CORS_ALLOW_METHODS = _parse_csv(
    os.getenv("TIMETRACK_CORS_ALLOW_METHODS"),
    ["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
)
CORS_ALLOW_HEADERS = _parse_csv(
    os.getenv("TIMETRACK_CORS_ALLOW_HEADERS"),
    ["Authorization", "Content-Type", "Accept"],
)
CORS_ALLOW_CREDENTIALS = _parse_bool(os.getenv("TIMETRACK_CORS_ALLOW_CREDENTIALS"), True)

# bcrypt accepts cost factors 4..31
PIN_HASH_ROUNDS = _parse_int(os.getenv("TIMETRACK_PIN_HASH_ROUNDS"), 10, minimum=4, maximum=31)

PAGE_DEFAULT = 1
PAGE_LIMIT_DEFAULT = _parse_int(os.getenv("TIMETRACK_PAGE_LIMIT_DEFAULT"), 20, minimum=1)
PAGE_LIMIT_MAX = _parse_int(os.getenv("TIMETRACK_PAGE_LIMIT_MAX"), 100, minimum=1)
RECENT_ENTRIES_LIMIT_DEFAULT = 10
RECENT_ENTRIES_LIMIT_MAX = 50
DASHBOARD_DEFAULT_DAYS = _parse_int(os.getenv("TIMETRACK_DASHBOARD_DEFAULT_DAYS"), 30, minimum=1)
