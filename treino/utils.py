# treino/utils.py
from datetime import datetime, timezone
from typing import Any, Optional

from flask_jwt_extended import get_jwt_identity

from .models.user import User


def safe_int(v: Any, default: int = 0) -> int:
    try:
        return int(v)
    except Exception:
        return default


def clean_str(v: Any) -> str:
    """Stripped text for a JSON field; numbers become their text, anything else is empty."""
    if isinstance(v, str):
        return v.strip()
    if isinstance(v, (int, float)) and not isinstance(v, bool):
        return str(v)
    return ""


def safe_int_or_none(v: Any) -> Optional[int]:
    if v is None or v == "":
        return None
    try:
        return int(v)
    except Exception:
        return None


def safe_float_or_none(v: Any) -> Optional[float]:
    if v is None or v == "":
        return None
    try:
        return float(v)
    except Exception:
        return None


def parse_datetime(value: Any) -> Optional[datetime]:
    """ISO date or datetime -> naive UTC datetime. Raises ValueError on garbage."""
    if not value:
        return None
    text = str(value).strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    dt = datetime.fromisoformat(text)
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt


def current_user_id() -> int:
    return int(get_jwt_identity())


def current_user() -> Optional[User]:
    return User.query.get(current_user_id())
