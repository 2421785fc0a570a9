from __future__ import annotations

import re
from datetime import date, datetime
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from enum import Enum
from typing import Any, Callable, Optional, Type, TypeVar

from ..core.exceptions import ValidationError
from .datetime_utils import parse_iso_date, parse_iso_datetime, to_naive_utc

E = TypeVar("E", bound=Enum)
T = TypeVar("T")

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
# "8:00a", "8:00 AM", "7p", "19:00"
_TIME_OF_DAY_RE = re.compile(r"^(\d{1,2})(?::([0-5]\d))?\s*([aApP][mM]?)?$")
_HEX_COLOR_RE = re.compile(r"^#[0-9a-fA-F]{6}$")

CENTS = Decimal("0.01")


def _fail(field_name: str, message: str) -> ValidationError:
    return ValidationError(f"{field_name}: {message}", {field_name: message})


def require_non_empty(value: Any, field_name: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise _fail(field_name, "is required")
    return value.strip()


def optional_str(value: Any, field_name: str) -> Optional[str]:
    if value is None:
        return None
    if not isinstance(value, str):
        raise _fail(field_name, "must be a string")
    return value.strip() or None


def require_min_length(value: Any, field_name: str, min_len: int) -> str:
    if not isinstance(value, str) or len(value) < min_len:
        raise _fail(field_name, f"must be at least {min_len} characters")
    return value


def require_email(value: Any, field_name: str = "email") -> str:
    v = require_non_empty(value, field_name)
    if not _EMAIL_RE.match(v):
        raise _fail(field_name, "is not a valid email address")
    return v.lower()


def parse_decimal(value: Any, field_name: str, *, min_value: Optional[Decimal] = Decimal("0")) -> Decimal:
    if isinstance(value, bool) or value is None or value == "":
        raise _fail(field_name, "must be a number")
    try:
        d = Decimal(str(value))
    except InvalidOperation:
        raise _fail(field_name, "must be a number")
    if not d.is_finite():
        raise _fail(field_name, "must be a number")
    if min_value is not None and d < min_value:
        raise _fail(field_name, f"must be >= {min_value}")
    return d.quantize(CENTS, rounding=ROUND_HALF_UP)


def parse_int(value: Any, field_name: str, *, min_value: Optional[int] = None) -> int:
    if isinstance(value, bool):
        raise _fail(field_name, "must be an integer")
    try:
        i = int(value)
    except (TypeError, ValueError):
        raise _fail(field_name, "must be an integer")
    if isinstance(value, float) and value != i:
        raise _fail(field_name, "must be an integer")
    if min_value is not None and i < min_value:
        raise _fail(field_name, f"must be >= {min_value}")
    return i


def parse_datetime(value: Any, field_name: str) -> datetime:
    if isinstance(value, datetime):
        return to_naive_utc(value)
    if isinstance(value, date):
        return datetime.combine(value, datetime.min.time())
    if not isinstance(value, str) or not value.strip():
        raise _fail(field_name, "is required")
    try:
        return parse_iso_datetime(value)
    except ValueError:
        raise _fail(field_name, "must be an ISO 8601 timestamp")


def parse_date(value: Any, field_name: str) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not value.strip():
        raise _fail(field_name, "is required")
    try:
        return parse_iso_date(value.strip()[:10])
    except ValueError:
        raise _fail(field_name, "must be a date (YYYY-MM-DD)")


def optional_datetime(value: Any, field_name: str) -> Optional[datetime]:
    if value is None or value == "":
        return None
    return parse_datetime(value, field_name)


def require_enum(value: Any, enum_cls: Type[E], field_name: str) -> E:
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(e.value for e in enum_cls)
        raise _fail(field_name, f"must be one of: {allowed}")


def parse_string_list(value: Any, field_name: str) -> list[str]:
    if value is None:
        return []
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise _fail(field_name, "must be a list of strings")
    return [v.strip() for v in value if v.strip()]


def parse_time_of_day(value: Any, field_name: str) -> str:
    """Validate a time-of-day label such as '8:00a', '7 PM' or '19:00'.

    The label is stored as written (trimmed); templates are display helpers.
    """

    v = require_non_empty(value, field_name)
    m = _TIME_OF_DAY_RE.match(v)
    if not m:
        raise _fail(field_name, "must look like 8:00a, 7 PM or 19:00")
    hour = int(m.group(1))
    if m.group(3):
        ok = 1 <= hour <= 12
    else:
        ok = 0 <= hour <= 23
    if not ok:
        raise _fail(field_name, "hour out of range")
    return v


def parse_color(value: Any, field_name: str = "color") -> str:
    v = require_non_empty(value, field_name)
    if not _HEX_COLOR_RE.match(v):
        raise _fail(field_name, "must be a hex color like #64748B")
    return v


def parse_job_rates(value: Any, field_name: str = "jobRates") -> dict[str, Decimal]:
    """Job name -> hourly rate. Job names are free text (trimmed, non-empty)."""

    if value is None:
        return {}
    if not isinstance(value, dict):
        raise _fail(field_name, "must be an object of job name to rate")
    out: dict[str, Decimal] = {}
    for job, rate in value.items():
        name = job.strip() if isinstance(job, str) else ""
        if not name:
            raise _fail(field_name, "job names must be non-empty")
        out[name] = parse_decimal(rate, f"{field_name}.{name}")
    return out


class FieldErrors:
    """Collects field errors so one 400 response can report all of them."""

    def __init__(self):
        self._errors: dict[str, str] = {}

    def check(self, fn: Callable[..., T], *args, **kwargs) -> Optional[T]:
        try:
            return fn(*args, **kwargs)
        except ValidationError as e:
            self._errors.update(e.fields)
            return None

    def add(self, field_name: str, message: str) -> None:
        self._errors[field_name] = message

    def raise_if_any(self, message: str = "Invalid input") -> None:
        if self._errors:
            raise ValidationError(message, self._errors)
