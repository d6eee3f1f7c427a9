"""Payload parsing helpers shared by every workflow service.

Every helper reads one field from a JSON-like dict and either returns the
coerced value or records a field-level error on a ``PayloadErrors``
collector. ``PayloadErrors.raise_if_any()`` turns the collected errors into a
single ``ValidationError`` whose ``details`` maps field name to message.

    errors = PayloadErrors()
    title = require_str(data, "title", errors, min_length=3)
    start = optional_datetime(data, "scheduled_start", errors)
    errors.raise_if_any()
"""
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from urllib.parse import urlparse

from email_validator import EmailNotValidError, validate_email

from app.core.exceptions import ValidationError

_MISSING = object()


class PayloadErrors:
    """Collect field-level errors for one payload."""

    def __init__(self):
        self.details: dict[str, str] = {}

    def add(self, field: str, message: str) -> None:
        self.details.setdefault(field, message)

    def raise_if_any(self, message: str = "Validation error") -> None:
        if self.details:
            raise ValidationError(message, details=dict(self.details))


def parse_datetime(value):
    """Parse an ISO-8601 string (or datetime) into an aware UTC datetime.

    Returns None for empty input; raises ValueError on unparseable input.
    A trailing ``Z`` is accepted. Naive values are taken as UTC.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, str):
        raw = value.strip()
        if raw.endswith("Z"):
            raw = raw[:-1] + "+00:00"
        dt = datetime.fromisoformat(raw)
    else:
        raise ValueError(f"not a datetime: {value!r}")
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def require_str(data: dict, field: str, errors: PayloadErrors, *, min_length: int = 1):
    value = data.get(field, _MISSING)
    if value is _MISSING or value is None:
        errors.add(field, "required")
        return None
    if not isinstance(value, str):
        errors.add(field, "must be a string")
        return None
    value = value.strip()
    if len(value) < min_length:
        errors.add(field, "required" if not value else f"must be at least {min_length} characters")
        return None
    return value


def optional_str(data: dict, field: str, errors: PayloadErrors, *, min_length: int = 0):
    value = data.get(field)
    if value is None:
        return None
    if not isinstance(value, str):
        errors.add(field, "must be a string")
        return None
    value = value.strip()
    if len(value) < min_length:
        errors.add(field, f"must be at least {min_length} characters")
        return None
    return value or None


def require_choice(data: dict, field: str, choices, errors: PayloadErrors, *, default=_MISSING):
    value = data.get(field)
    if value is None:
        if default is not _MISSING:
            return default
        errors.add(field, "required")
        return None
    if value not in choices:
        errors.add(field, f"must be one of {', '.join(choices)}")
        return None
    return value


def optional_choice(data: dict, field: str, choices, errors: PayloadErrors):
    if data.get(field) is None:
        return None
    return require_choice(data, field, choices, errors)


def optional_datetime(data: dict, field: str, errors: PayloadErrors):
    try:
        return parse_datetime(data.get(field))
    except (TypeError, ValueError):
        errors.add(field, "must be an ISO-8601 datetime")
        return None


def optional_number(data: dict, field: str, errors: PayloadErrors, *, minimum=None):
    value = data.get(field)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float, str)):
        errors.add(field, "must be a number")
        return None
    try:
        number = Decimal(str(value))
    except InvalidOperation:
        errors.add(field, "must be a number")
        return None
    if not number.is_finite():
        errors.add(field, "must be a number")
        return None
    if minimum is not None and number < minimum:
        errors.add(field, f"must be >= {minimum}")
        return None
    return number


def optional_float(data: dict, field: str, errors: PayloadErrors):
    number = optional_number(data, field, errors)
    return float(number) if number is not None else None


def optional_int(data: dict, field: str, errors: PayloadErrors):
    value = data.get(field)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        errors.add(field, "must be an integer")
        return None
    return value


def optional_url(data: dict, field: str, errors: PayloadErrors):
    value = optional_str(data, field, errors)
    if value is None:
        return None
    if not is_url(value):
        errors.add(field, "must be an absolute http(s) URL")
        return None
    return value


def require_url(data: dict, field: str, errors: PayloadErrors):
    if data.get(field) is None:
        errors.add(field, "required")
        return None
    return optional_url(data, field, errors)


def optional_email(data: dict, field: str, errors: PayloadErrors):
    value = optional_str(data, field, errors)
    if value is None:
        return None
    try:
        return validate_email(value, check_deliverability=False).normalized
    except EmailNotValidError as e:
        errors.add(field, f"invalid email: {e}")
        return None


def is_url(value: str) -> bool:
    parsed = urlparse(value)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)
