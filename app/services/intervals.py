"""Half-open interval arithmetic and business-timezone conversion.

Every range in the engine is ``[start, end)``. Business-local values are naive
datetimes (civil time with no offset) that only mean something next to the
business's zone; instants are aware UTC datetimes.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from typing import Iterable
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from app.core.config import settings

logger = logging.getLogger(__name__)


def overlaps(a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime) -> bool:
    """True when [a_start, a_end) and [b_start, b_end) share any instant.

    Touching ranges (a_end == b_start) do not overlap.
    """
    return a_start < b_end and a_end > b_start


@dataclass(frozen=True)
class Interval:
    start: datetime
    end: datetime

    def overlaps(self, other: "Interval") -> bool:
        return overlaps(self.start, self.end, other.start, other.end)

    def padded(self, before_minutes: int = 0, after_minutes: int = 0) -> "Interval":
        return Interval(
            self.start - timedelta(minutes=before_minutes),
            self.end + timedelta(minutes=after_minutes),
        )

    def clamp(self, lower: datetime, upper: datetime) -> "Interval":
        return Interval(max(self.start, lower), min(self.end, upper))

    @property
    def is_empty(self) -> bool:
        return self.end <= self.start


def merge_intervals(intervals: Iterable[Interval]) -> list[Interval]:
    """Union of possibly-overlapping intervals, sorted by start."""
    merged: list[Interval] = []
    for current in sorted((i for i in intervals if not i.is_empty), key=lambda i: i.start):
        if merged and current.start <= merged[-1].end:
            last = merged[-1]
            merged[-1] = Interval(last.start, max(last.end, current.end))
        else:
            merged.append(current)
    return merged


def resolve_timezone(tz_id: str | None) -> ZoneInfo:
    """Zone for a business, falling back to DEFAULT_TIMEZONE.

    The fallback keeps the request alive but every local value computed with
    it may be wrong for that business, so it is logged loudly.
    """
    if tz_id:
        try:
            return ZoneInfo(tz_id)
        except (ZoneInfoNotFoundError, ValueError):
            logger.warning(
                "Unknown timezone %r; falling back to %s. Local times for this business may be wrong.",
                tz_id,
                settings.DEFAULT_TIMEZONE,
            )
    else:
        logger.warning("Business has no timezone; falling back to %s", settings.DEFAULT_TIMEZONE)
    return ZoneInfo(settings.DEFAULT_TIMEZONE)


def is_valid_timezone(tz_id: str) -> bool:
    try:
        ZoneInfo(tz_id)
        return True
    except (ZoneInfoNotFoundError, ValueError):
        return False


def to_local(instant_utc: datetime, tz: ZoneInfo) -> datetime:
    """Absolute instant -> naive business-local wall clock."""
    if instant_utc.tzinfo is None:
        instant_utc = instant_utc.replace(tzinfo=timezone.utc)
    return instant_utc.astimezone(tz).replace(tzinfo=None)


def to_utc(local: datetime, tz: ZoneInfo) -> datetime:
    """Naive business-local wall clock -> aware UTC instant.

    Ambiguous wall-clock values (the repeated hour when clocks go back) resolve
    to their first occurrence. Callers that must refuse wall-clock values
    skipped by a spring-forward transition check ``is_nonexistent_local`` first.
    """
    return local.replace(tzinfo=tz, fold=0).astimezone(timezone.utc)


def is_nonexistent_local(local: datetime, tz: ZoneInfo) -> bool:
    """True for wall-clock values inside a DST gap (they never happen)."""
    round_trip = to_local(to_utc(local, tz), tz)
    return round_trip != local.replace(fold=0)


def combine(day: date, at: time) -> datetime:
    """Naive local datetime for a calendar date and time of day."""
    return datetime.combine(day, at)


def local_day_bounds_utc(day: date, tz: ZoneInfo) -> tuple[datetime, datetime]:
    """UTC instants bracketing a whole local calendar day."""
    start = to_utc(datetime.combine(day, time.min), tz)
    end = to_utc(datetime.combine(day + timedelta(days=1), time.min), tz)
    return start, end


def format_hhmm(value: datetime | time) -> str:
    return value.strftime("%H:%M")
