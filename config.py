import os
import re
from datetime import timedelta

from dotenv import load_dotenv

load_dotenv()

_DURATION_UNITS = {"s": "seconds", "m": "minutes", "h": "hours", "d": "days", "w": "weeks"}


def parse_duration(value: str) -> timedelta:
    """Parse lifetimes like "7d", "12h", "30m", "45s" or a bare number of seconds."""
    text = (value or "").strip().lower()
    match = re.fullmatch(r"(\d+)\s*([smhdw]?)", text)
    if not match:
        raise ValueError(f"Invalid duration: {value!r}")
    amount, unit = match.groups()
    return timedelta(**{_DURATION_UNITS.get(unit or "s"): int(amount)})


def env_flag(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


JWT_SECRET = os.getenv("JWT_SECRET")
if not JWT_SECRET:
    raise RuntimeError("Missing JWT_SECRET in environment. Set JWT_SECRET and restart the server.")

JWT_EXPIRE = parse_duration(os.getenv("JWT_EXPIRE", "7d"))

CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGIN", "http://localhost:3000").split(",") if o.strip()]

ADMIN_EMAIL = os.getenv("ADMIN_EMAIL", "admin@boutique.com")
ADMIN_PASSWORD = os.getenv("ADMIN_PASSWORD", "AdminPassword123")
ADMIN_NAME = os.getenv("ADMIN_NAME", "Admin User")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# 500 responses echo the exception text unless this is switched off
EXPOSE_ERROR_DETAILS = env_flag("EXPOSE_ERROR_DETAILS", True)
