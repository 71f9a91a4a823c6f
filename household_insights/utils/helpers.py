"""
Helper utilities
"""
from datetime import datetime, timezone
from typing import Any, Dict, Optional
import json
import math


def parse_json_object(raw: Any) -> Optional[Dict[str, Any]]:
    """Return a mapping from a dict or JSON text, or None when it isn't one"""
    if raw is None or raw == "":
        return {}
    if isinstance(raw, dict):
        return raw
    if isinstance(raw, (str, bytes)):
        try:
            parsed = json.loads(raw)
        except (TypeError, ValueError):
            return None
        return parsed if isinstance(parsed, dict) else None
    return None


def parse_number(value: Any) -> Optional[float]:
    """Parse a numeric value; booleans, NaN and infinities are not numbers here"""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def parse_datetime(value: Any) -> Optional[datetime]:
    """Parse a datetime or ISO-8601 string into a naive UTC datetime"""
    if value is None:
        return None
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, str):
        try:
            dt = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            return None
    else:
        return None
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt


def to_utc_datetime(timestamp: float) -> datetime:
    """Convert an epoch timestamp to a naive UTC datetime (DB column format)"""
    return datetime.fromtimestamp(timestamp, tz=timezone.utc).replace(tzinfo=None)


def to_timestamp(dt: datetime) -> float:
    """Convert a naive UTC datetime back to an epoch timestamp"""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.timestamp()


def time_of_day(dt: datetime) -> str:
    """Bucket an hour into morning / afternoon / evening"""
    if 12 <= dt.hour < 17:
        return "afternoon"
    if dt.hour >= 17:
        return "evening"
    return "morning"
