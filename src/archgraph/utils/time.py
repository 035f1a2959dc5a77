from __future__ import annotations

from datetime import datetime, timezone


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def iso_timestamp(dt: datetime | None = None) -> str:
    """
    ISO-8601 string for `dt` (now when omitted).
    """
    if dt is None:
        dt = utc_now()
    return dt.isoformat()


def age_seconds(dt: datetime, now: datetime | None = None) -> float:
    return ((now or utc_now()) - dt).total_seconds()
