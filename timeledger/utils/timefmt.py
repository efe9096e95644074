import math
from datetime import date, datetime, timedelta, timezone
from typing import Optional


ONE_MS = timedelta(milliseconds=1)


def utcnow() -> datetime:
    """Current UTC time truncated to milliseconds (BSON date precision)."""
    now = datetime.now(timezone.utc)
    return now.replace(microsecond=now.microsecond // 1000 * 1000)


def as_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def to_iso_z(dt: Optional[datetime]) -> str:
    """ISO-8601 at second precision with a Z suffix, "" for None."""
    if dt is None:
        return ""
    return as_utc(dt).strftime("%Y-%m-%dT%H:%M:%SZ")


def minutes_between(start: datetime, end: datetime) -> int:
    # round half up, same as Math.round on the client side
    seconds = (as_utc(end) - as_utc(start)).total_seconds()
    return max(0, math.floor(seconds / 60 + 0.5))


def parse_datetime(value: str) -> datetime:
    """Parse an ISO-8601 date or datetime; naive values are taken as UTC.

    Raises ValueError on anything else.
    """
    text = value.strip()
    if not text:
        raise ValueError("empty date")
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        d = date.fromisoformat(text)
        return datetime(d.year, d.month, d.day, tzinfo=timezone.utc)
    try:
        return as_utc(parsed)
    except OverflowError as exc:
        # offset pushes the instant outside the datetime range
        raise ValueError(f"date out of range: {value}") from exc

