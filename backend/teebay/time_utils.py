"""
Timestamps are stored as naive datetimes that are implicitly UTC.

Everything coming in (ISO strings, aware datetimes) is folded to that form at
the boundary, and everything going out is rendered with a trailing "Z".
"""

from __future__ import annotations

from datetime import datetime, timezone


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(dt: datetime) -> datetime:
    """Aware values are converted to UTC; naive values are assumed UTC already."""
    return dt if dt.tzinfo is None else dt.astimezone(timezone.utc).replace(tzinfo=None)


def parse_iso_datetime(value: str | None) -> datetime | None:
    """
    "2030-03-01", "2030-03-01T09:30", "...Z" and "...+02:00" are all accepted.

    Blank input gives None; anything else unparseable raises ValueError.
    """
    text = (value or "").strip()
    if not text:
        return None
    if text[-1] in "zZ":
        text = f"{text[:-1]}+00:00"
    return to_naive_utc(datetime.fromisoformat(text))


def to_utc_z(dt: datetime | None) -> str | None:
    if dt is None:
        return None
    stamp = to_naive_utc(dt).replace(microsecond=0)
    return f"{stamp.isoformat()}Z"
