"""
Pickup/return window arithmetic.

All windows in a run derive from one `now` captured at run start, so they
stay mutually consistent while wall-clock time moves on during the run.
"""

from datetime import datetime, timedelta, timezone
from typing import Tuple


def floor_to_granularity(moment: datetime, granularity_minutes: int) -> datetime:
    """
    Round a moment down to the previous multiple of `granularity_minutes`
    counted from midnight.

    Examples (granularity 30):
        14:47:12 -> 14:30:00
        14:30:00 -> 14:30:00
    """
    if granularity_minutes <= 0:
        raise ValueError("granularity_minutes must be positive")
    minute_of_day = moment.hour * 60 + moment.minute
    floored = minute_of_day - minute_of_day % granularity_minutes
    return moment.replace(
        hour=floored // 60,
        minute=floored % 60,
        second=0,
        microsecond=0,
    )


def normalize_local(moment: datetime) -> datetime:
    """
    Re-resolve an aware local time through UTC.

    Wall-clock arithmetic can land in a DST gap (02:30 on a spring-forward
    day); this maps it to the real time it denotes (03:30). Naive values
    pass through.
    """
    if moment.tzinfo is None:
        return moment
    return moment.astimezone(timezone.utc).astimezone(moment.tzinfo)


def hours_to_minutes(hours: float) -> int:
    """Whole minutes in an hour count (1.5 -> 90)."""
    return int(round(hours * 60))


def compute_window(
    now: datetime,
    min_lead_minutes: int,
    granularity_minutes: int,
    offset_hours: float,
    duration_hours: float,
) -> Tuple[datetime, datetime]:
    """
    Compute a concrete [start, end) window.

    base  = floor(now + min_lead_minutes, granularity_minutes)
    start = base + offset_hours
    end   = start + duration_hours

    Pure: the only notion of time is the `now` passed in. With
    min_lead_minutes >= granularity_minutes, start is never before now.

    Args:
        now: Run-wide snapshot of the current time (time zone aware or naive)
        min_lead_minutes: Minimum lead before pickup
        granularity_minutes: Rounding step for the pickup time
        offset_hours: Hours after the base pickup
        duration_hours: Rental length

    Returns:
        Tuple of (start, end)
    """
    # Every intermediate is normalized so no step names a nonexistent local time
    lead = normalize_local(now + timedelta(minutes=min_lead_minutes))
    base = normalize_local(floor_to_granularity(lead, granularity_minutes))
    start = normalize_local(base + timedelta(minutes=hours_to_minutes(offset_hours)))
    end = normalize_local(start + timedelta(minutes=hours_to_minutes(duration_hours)))
    return start, end
