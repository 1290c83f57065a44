"""
Timestamp helpers: time-taken derivation, histogram buckets, contest status.
"""
from datetime import datetime, timezone
from typing import Any, Optional

from app.core.scoring.rules import round_half_up

TIME_BUCKETS = ("0-30 min", "31-60 min", "61-90 min", "90+ min")


def coerce_timestamp(value: Any) -> Optional[datetime]:
    """
    Parse a stored timestamp into an aware UTC datetime.

    Naive datetimes (SQLite drops the offset) are taken as UTC. Anything
    unparseable yields ``None``.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            return None
    else:
        return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def minutes_between(start: datetime, end: datetime) -> int:
    """Whole minutes from ``start`` to ``end``, rounded half up."""
    elapsed_ms = (end - start).total_seconds() * 1000
    return round_half_up(elapsed_ms / 60000)


def compute_time_taken(
    participation_start: Any = None,
    participation_end: Any = None,
    submitted_at: Any = None,
    contest_start: Any = None,
    contest_end: Any = None,
) -> int:
    """
    Minutes a participant spent, from the first usable pair of timestamps.

    Fallback order: participation start/end, participation start/submitted,
    contest start/submitted, contest start/end, otherwise 0.
    """
    candidates = (
        (participation_start, participation_end),
        (participation_start, submitted_at),
        (contest_start, submitted_at),
        (contest_start, contest_end),
    )
    for raw_start, raw_end in candidates:
        start = coerce_timestamp(raw_start)
        end = coerce_timestamp(raw_end)
        if start is not None and end is not None:
            return minutes_between(start, end)
    return 0


def time_bucket(minutes: int) -> str:
    if minutes <= 30:
        return TIME_BUCKETS[0]
    if minutes <= 60:
        return TIME_BUCKETS[1]
    if minutes <= 90:
        return TIME_BUCKETS[2]
    return TIME_BUCKETS[3]


def contest_status(start_time: Any, end_time: Any, now: Optional[datetime] = None) -> str:
    """``upcoming`` before start, ``completed`` after end, ``live`` otherwise."""
    now = coerce_timestamp(now) or datetime.now(timezone.utc)
    start = coerce_timestamp(start_time)
    end = coerce_timestamp(end_time)
    if start is not None and now < start:
        return "upcoming"
    if end is not None and now > end:
        return "completed"
    return "live"
