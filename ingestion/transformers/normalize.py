"""
Shared helpers for normalizing XML-derived JSON payloads
"""

from typing import Any, List, Optional
from datetime import date, datetime

_MISSING = object()


def to_list(value: Any) -> List[Any]:
    """
    Normalize a field that may hold one element or many.

    Returns ``[]`` for None, the value itself for a list and ``[value]`` for
    anything else.
    """
    if value is None:
        return []
    if isinstance(value, list):
        return value
    return [value]


def get_nested(data: Any, *keys: str, default: Any = None) -> Any:
    """Walk nested dicts, returning ``default`` as soon as a key is missing."""
    current = data
    for key in keys:
        if not isinstance(current, dict):
            return default
        current = current.get(key, _MISSING)
        if current is _MISSING or current is None:
            return default
    return current


def clean_str(value: Any) -> str:
    """Stripped string, or "" for None"""
    if value is None:
        return ""
    return str(value).strip()


def parse_int(value: Any) -> Optional[int]:
    """Safely parse int value"""
    if value is None or value == "":
        return None
    try:
        return int(float(value))  # Handle "10.0" strings
    except (ValueError, TypeError):
        return None


def parse_float(value: Any) -> Optional[float]:
    """Safely parse float value"""
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (ValueError, TypeError):
        return None


def parse_date(value: Any) -> Optional[str]:
    """
    Parse a date into ISO format (YYYY-MM-DD).

    Accepts ISO dates, ISO datetimes and the compact YYYYMMDD form.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()

    text = str(value).strip()
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00")).date().isoformat()
    except ValueError:
        pass
    for fmt in ("%Y%m%d", "%d/%m/%Y"):
        try:
            return datetime.strptime(text, fmt).date().isoformat()
        except ValueError:
            continue
    return None
