"""Timestamp helpers shared by the event store, API and Google adapter."""

from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone, tzinfo

from .errors import InvalidArgument


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Return ``value`` converted to UTC; naive values are taken as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_timestamp(value: str | datetime, field: str = "time") -> datetime:
    """Parse an RFC3339 timestamp (or pass through an aware datetime).

    Raises :class:`InvalidArgument` for unparseable input and for values
    without an explicit UTC offset.
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        raw = value.strip()
        if raw.endswith(("Z", "z")):
            raw = raw[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(raw)
        except ValueError as exc:
            raise InvalidArgument(f"invalid {field}: {value!r}", field=field) from exc
    else:
        raise InvalidArgument(f"invalid {field}: {value!r}", field=field)
    if parsed.tzinfo is None or parsed.utcoffset() is None:
        raise InvalidArgument(f"{field} must include a timezone offset", field=field)
    return parsed.astimezone(timezone.utc)


def parse_date(value: str, field: str = "date") -> date:
    try:
        return date.fromisoformat(value)
    except (TypeError, ValueError) as exc:
        raise InvalidArgument(f"invalid {field}: {value!r} (expected YYYY-MM-DD)", field=field) from exc


def day_bounds(day: date, tz: tzinfo) -> tuple[datetime, datetime]:
    """Half-open UTC bounds of ``day`` as observed in ``tz``."""
    start = datetime.combine(day, time.min, tzinfo=tz)
    end = datetime.combine(day + timedelta(days=1), time.min, tzinfo=tz)
    return start.astimezone(timezone.utc), end.astimezone(timezone.utc)


def to_rfc3339(value: datetime) -> str:
    return as_utc(value).strftime("%Y-%m-%dT%H:%M:%SZ")
