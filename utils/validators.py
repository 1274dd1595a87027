# utils/validators.py
from datetime import datetime

from utils.errors import ValidationError

_MISSING = object()


def require_field(data: dict, key: str):
    value = data.get(key)
    if value is None or (isinstance(value, str) and not value.strip()):
        raise ValidationError(f"{key} is required")
    return value


def parse_amount(value, field: str, allow_zero: bool = False) -> float:
    """Parse a monetary input; rejects negatives (and zero unless allowed)."""
    if isinstance(value, bool):
        raise ValidationError(f"Invalid {field}")
    try:
        amount = float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid {field}")
    if amount != amount or amount in (float("inf"), float("-inf")):
        raise ValidationError(f"Invalid {field}")
    if amount < 0 or (amount == 0 and not allow_zero):
        raise ValidationError(f"{field} must be {'non-negative' if allow_zero else 'positive'}")
    return amount


def parse_int(value, field: str, minimum: int = None) -> int:
    if isinstance(value, bool):
        raise ValidationError(f"Invalid {field}")
    if isinstance(value, float) and not value.is_integer():
        raise ValidationError(f"{field} must be an integer")
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be an integer")
    if minimum is not None and number < minimum:
        raise ValidationError(f"{field} must be >= {minimum}")
    return number


def parse_optional_int(data: dict, key: str, minimum: int = None):
    """Return None when the key is absent or null, so callers can tell 'not supplied' from 0."""
    value = data.get(key, _MISSING)
    if value is _MISSING or value is None:
        return None
    return parse_int(value, key, minimum=minimum)


def parse_datetime(value, field: str, default=None) -> datetime:
    if value is None or value == "":
        if default is not None:
            return default
        raise ValidationError(f"{field} is required")
    if isinstance(value, datetime):
        return value
    try:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        raise ValidationError(f"Invalid {field}, expected ISO-8601 date")
    # stored timestamps are naive UTC
    if parsed.tzinfo is not None:
        parsed = parsed.replace(tzinfo=None) - parsed.utcoffset()
    return parsed


def parse_bool(value, field: str, default: bool = False) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    raise ValidationError(f"{field} must be a boolean")


def pick(data: dict, *keys, default=None):
    """First present, non-null value among alternative spellings (snake_case / camelCase)."""
    for key in keys:
        if data.get(key) is not None:
            return data[key]
    return default
