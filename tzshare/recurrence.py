"""
tzshare/recurrence.py

Next-occurrence calculation for recurring events.

An event repeats from its base date in its creator's time zone:
- Daily, every other day, or weekly: fixed day steps
- Monthly: same day of month, clamped to the month's last day
- Yearly: same month and day, Feb 29 clamped to Feb 28 in common years

Month and year steps are anchored on the base date, so an event on Jan 31
occurs on Feb 28 and then Mar 31 again. Every calculation takes "now" as an
explicit argument.
"""

import calendar
import logging
from datetime import date, datetime, time, timedelta
from typing import Optional

from .event import EventDescriptor, Frequency, ResolvedOccurrence
from .timezones import get_zone, to_instant

logger = logging.getLogger(__name__)


# Fixed-length steps in days
DAY_STEPS = {
    Frequency.DAILY: 1,
    Frequency.ALTERNATE_DAYS: 2,
    Frequency.WEEKLY: 7,
}

# Calendar steps in months
MONTH_STEPS = {
    Frequency.MONTHLY: 1,
    Frequency.YEARLY: 12,
}

# Candidates this many days before now's local date are always in the past,
# whatever the zone's offset changes
SAFE_SKIP_DAYS = 2


def add_months(base: date, months: int) -> date:
    """
    Move a date by whole calendar months.

    The day of month is clamped to the last day of the target month
    (Jan 31 + 1 month -> Feb 28 or Feb 29).

    Args:
        base: Starting date.
        months: Number of months to add (may be negative).

    Returns:
        The shifted date.
    """
    index = base.year * 12 + (base.month - 1) + months
    year, month = divmod(index, 12)
    month += 1
    max_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(base.day, max_day))


def step(base: date, frequency: Frequency, n: int) -> date:
    """
    Get the n-th candidate date of a recurrence.

    Args:
        base: Base date (n=0).
        frequency: Recurrence frequency.
        n: Number of steps from the base.

    Returns:
        The candidate date.
    """
    if frequency in DAY_STEPS:
        return base + timedelta(days=DAY_STEPS[frequency] * n)
    if frequency in MONTH_STEPS:
        return add_months(base, MONTH_STEPS[frequency] * n)
    raise ValueError(f"Unknown recurring frequency: {frequency}")


def resolve(
    base_date: date,
    base_time: time,
    frequency: Optional[Frequency],
    creator_timezone: str,
    now: datetime,
) -> date:
    """
    Find the date of the next occurrence at or after now.

    Starting from base_date, candidates whose instant (candidate + base_time
    in creator_timezone) is before now are stepped over. The first candidate
    at or after now is returned.

    Args:
        base_date: First date of the event, creator-local.
        base_time: Time of day, creator-local.
        frequency: Recurrence frequency, or None for one-time events.
        creator_timezone: IANA zone id of the creator.
        now: Evaluation instant (timezone-aware).

    Returns:
        The effective date. One-time events return base_date unchanged.

    Raises:
        InvalidTimezoneError: If creator_timezone is unknown.
        ValueError: If now is naive.
    """
    if now.tzinfo is None or now.utcoffset() is None:
        raise ValueError("now must be timezone-aware")

    zone = get_zone(creator_timezone)
    if frequency is None:
        return base_date

    n = _skip_ahead(base_date, frequency, now.astimezone(zone).date())
    candidate = step(base_date, frequency, n)
    while to_instant(candidate, base_time, creator_timezone) < now:
        n += 1
        candidate = step(base_date, frequency, n)

    if n:
        logger.debug(
            f"Advanced {base_date} by {n} x {frequency.name} to {candidate} "
            f"(now={now.isoformat()})"
        )
    return candidate


def resolve_occurrence(descriptor: EventDescriptor, now: datetime) -> ResolvedOccurrence:
    """
    Resolve the next occurrence of an event.

    Args:
        descriptor: The event.
        now: Evaluation instant (timezone-aware).

    Returns:
        ResolvedOccurrence with the effective date and its UTC instant.
    """
    effective_date = resolve(
        descriptor.base_date,
        descriptor.base_time,
        descriptor.frequency,
        descriptor.creator_timezone,
        now,
    )
    return ResolvedOccurrence(
        effective_date=effective_date,
        creator_instant=to_instant(
            effective_date, descriptor.base_time, descriptor.creator_timezone
        ),
    )


def describe(frequency: Optional[Frequency], base_date: date, base_time: time) -> str:
    """
    Human-readable description of a recurrence.

    Returns:
        Description like "Every Sunday at 09:00".
    """
    time_str = base_time.strftime("%H:%M")

    if frequency is None:
        return f"Once on {base_date.isoformat()} at {time_str}"
    elif frequency == Frequency.DAILY:
        return f"Every day at {time_str}"
    elif frequency == Frequency.ALTERNATE_DAYS:
        return f"Every other day at {time_str}"
    elif frequency == Frequency.WEEKLY:
        return f"Every {calendar.day_name[base_date.weekday()]} at {time_str}"
    elif frequency == Frequency.MONTHLY:
        day = base_date.day
        return f"Every {day}{_ordinal_suffix(day)} at {time_str}"
    else:
        month = calendar.month_name[base_date.month]
        return f"Every year on {month} {base_date.day} at {time_str}"


def _skip_ahead(base_date: date, frequency: Frequency, local_today: date) -> int:
    """Number of day-based steps that are certainly before now."""
    if frequency not in DAY_STEPS:
        return 0
    days = (local_today - base_date).days - SAFE_SKIP_DAYS
    if days <= 0:
        return 0
    return days // DAY_STEPS[frequency]


def _ordinal_suffix(n: int) -> str:
    """Get ordinal suffix for a number (st, nd, rd, th)."""
    if 11 <= n % 100 <= 13:
        return "th"
    return {1: "st", 2: "nd", 3: "rd"}.get(n % 10, "th")
