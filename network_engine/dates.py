"""
Date helpers.

All timestamps inside the engine are naive UTC datetimes. Aware inputs are
converted to UTC; date-only strings become midnight.
"""

from datetime import date, datetime, timedelta, timezone

from dateutil import parser as date_parser
from dateutil.relativedelta import relativedelta

from .errors import ValidationError

EPOCH = datetime(1970, 1, 1)

# Two defaults that differ in year, month and day; a free-form string that
# parses to different dates under them is missing part of its date
_FILL_DEFAULTS = (datetime(2000, 1, 1), datetime(2001, 2, 2))


def utcnow() -> datetime:
    """Current time as a naive UTC datetime."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _parse_text(text: str) -> datetime:
    try:
        return date_parser.isoparse(text)
    except (ValueError, OverflowError):
        pass
    first, second = (date_parser.parse(text, default=default) for default in _FILL_DEFAULTS)
    if first.date() != second.date():
        raise ValueError(f"Incomplete date: {text!r}")
    return first


def parse_timestamp(value, strict: bool = False) -> datetime | None:
    """
    Parse an ISO-8601 string (or date/datetime) into a naive UTC datetime.

    Non-ISO strings are accepted only when they name a full calendar date
    ("Mon, 01 Jan 2024 10:00:00 GMT"); fragments such as "June" or "5" are
    rejected rather than completed from today's date.

    Empty values return None. Unparseable values return None, or raise
    ValidationError when strict=True.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    elif isinstance(value, str):
        try:
            parsed = _parse_text(value.strip())
        except (ValueError, OverflowError) as e:
            if strict:
                raise ValidationError(f"Invalid date: {value!r}") from e
            return None
    else:
        if strict:
            raise ValidationError(f"Invalid date: {value!r}")
        return None

    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def add_working_days(start: datetime, days: int) -> datetime:
    """
    Step forward one calendar day at a time, counting only Monday-Friday.

    The time of day of `start` is preserved.
    """
    current = start
    remaining = days
    while remaining > 0:
        current = current + timedelta(days=1)
        if current.weekday() < 5:
            remaining -= 1
    return current


def add_months(start: datetime, months: int) -> datetime:
    """Add calendar months; the day is clamped to the end of short months."""
    return start + relativedelta(months=int(months or 0))


def to_iso(value: datetime | None) -> str | None:
    if value is None:
        return None
    return value.isoformat()


def to_iso_date(value: datetime | None) -> str | None:
    if value is None:
        return None
    return value.date().isoformat()
