"""Shape coercion helpers for JSON values written by older clients."""

from datetime import datetime
from typing import Any, List, Optional


def as_list(value: Any) -> List[Any]:
    """Return value if it is a list, otherwise an empty list."""
    return list(value) if isinstance(value, (list, tuple)) else []


def as_str(value: Any, default: str = "") -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return default


def as_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in ("true", "yes", "1")
    return False


def as_optional_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str) and value.strip().lstrip("-").isdigit():
        return int(value.strip())
    return None


def as_optional_datetime(value: Any) -> Optional[datetime]:
    """Parse ISO-8601 strings (including a trailing Z) or pass datetimes through."""
    if isinstance(value, datetime):
        return value
    if isinstance(value, str) and value:
        try:
            return datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
    return None
