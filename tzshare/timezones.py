"""
tzshare/timezones.py

Conversions between civil date/time values and absolute instants.

All zone rules come from the IANA database via zoneinfo (with the tzdata
package as the source on systems without a zoneinfo directory). Offsets are
always looked up for the instant being converted, so historical and future
DST rules apply rather than today's offset.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from typing import Iterable, List, Optional, Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from .errors import InvalidTimezoneError

logger = logging.getLogger(__name__)

# Upper bound for a single forward transition; real gaps are at most a day
MAX_GAP = timedelta(days=1)


@dataclass(frozen=True)
class ZoneRendering:
    """
    One row of a multi-zone listing.

    Exactly one of local/error is set.
    """

    zone_id: str
    local: Optional[datetime] = None
    error: Optional[InvalidTimezoneError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


# =============================================================================
# Zone lookup
# =============================================================================

def get_zone(zone_id: str) -> ZoneInfo:
    """
    Look up an IANA time zone.

    Args:
        zone_id: Zone id such as "Asia/Kolkata".

    Returns:
        ZoneInfo for the id.

    Raises:
        InvalidTimezoneError: If the id is empty, malformed or unknown.
    """
    if not isinstance(zone_id, str) or not zone_id.strip():
        raise InvalidTimezoneError(str(zone_id), "Time zone id must be a non-empty string")
    try:
        return ZoneInfo(zone_id)
    except (ZoneInfoNotFoundError, ValueError, OSError) as e:
        raise InvalidTimezoneError(zone_id) from e


def is_valid_zone(zone_id: str) -> bool:
    """Check whether zone_id names a known IANA zone."""
    try:
        get_zone(zone_id)
    except InvalidTimezoneError:
        return False
    return True


# =============================================================================
# Civil time <-> instant
# =============================================================================

def to_instant(day: date, at: time, zone_id: str) -> datetime:
    """
    Interpret a civil date and time in a zone as an absolute instant.

    Civil times inside a spring-forward gap resolve to the first valid
    instant after the gap (the transition itself). Ambiguous civil times in
    a fall-back overlap resolve to the earlier instant.

    Args:
        day: Civil date.
        at: Civil time of day (naive).
        zone_id: IANA zone id.

    Returns:
        Aware datetime in UTC.

    Raises:
        InvalidTimezoneError: If zone_id is unknown.
    """
    zone = get_zone(zone_id)
    naive = datetime.combine(day, at.replace(tzinfo=None))

    fold0 = naive.replace(tzinfo=zone, fold=0).astimezone(timezone.utc)
    if _civil_in(fold0, zone) == naive:
        return fold0

    # Gap: fold=0 applies the pre-transition offset and lands after the
    # transition, fold=1 applies the post-transition offset and lands before.
    fold1 = naive.replace(tzinfo=zone, fold=1).astimezone(timezone.utc)
    if fold1 >= fold0 or fold0 - fold1 > MAX_GAP:
        fold1 = fold0 - MAX_GAP
    transition = _find_transition(fold1, fold0, zone)
    logger.debug(
        f"{naive.isoformat()} does not exist in {zone_id}; "
        f"using transition at {transition.isoformat()}"
    )
    return transition


def to_civil(instant: datetime, zone_id: str) -> Tuple[date, time]:
    """
    Express an instant as civil date and time in a zone.

    Args:
        instant: Aware datetime.
        zone_id: IANA zone id.

    Returns:
        (date, naive time) in the zone.

    Raises:
        InvalidTimezoneError: If zone_id is unknown.
        ValueError: If instant is naive.
    """
    local = localize(instant, zone_id)
    return local.date(), local.time()


def localize(instant: datetime, zone_id: str) -> datetime:
    """Return instant as an aware datetime in zone_id."""
    if instant.tzinfo is None or instant.utcoffset() is None:
        raise ValueError("Instant must be timezone-aware")
    return instant.astimezone(get_zone(zone_id))


def convert(day: date, at: time, from_zone: str, to_zone: str) -> Tuple[date, time]:
    """
    Convert a civil date and time from one zone to another.

    Equivalent to to_civil(to_instant(day, at, from_zone), to_zone).
    """
    return to_civil(to_instant(day, at, from_zone), to_zone)


def render_across(instant: datetime, zone_ids: Iterable[str]) -> List[ZoneRendering]:
    """
    Render one instant in each of several zones.

    Order is preserved. An unknown zone produces a row carrying its
    InvalidTimezoneError; the remaining zones are still rendered.

    Args:
        instant: Aware datetime.
        zone_ids: Target zones in display order.

    Returns:
        One ZoneRendering per zone id.
    """
    if instant.tzinfo is None or instant.utcoffset() is None:
        raise ValueError("Instant must be timezone-aware")

    rows = []
    for zone_id in zone_ids:
        try:
            rows.append(ZoneRendering(zone_id, local=localize(instant, zone_id)))
        except InvalidTimezoneError as e:
            logger.debug(f"Skipping unknown zone in listing: {zone_id!r}")
            rows.append(ZoneRendering(zone_id, error=e))
    return rows


def _civil_in(instant: datetime, zone: ZoneInfo) -> datetime:
    """Naive civil datetime of instant in zone."""
    return instant.astimezone(zone).replace(tzinfo=None)


def _find_transition(before: datetime, after: datetime, zone: ZoneInfo) -> datetime:
    """
    Find the first instant in (before, after] using the post-gap offset.

    Offsets change on whole seconds, so bisect down to one second.
    """
    target = after.astimezone(zone).utcoffset()
    lo, hi = before, after
    while hi - lo > timedelta(seconds=1):
        mid = lo + (hi - lo) / 2
        mid = mid.replace(microsecond=0)
        if mid <= lo:
            mid = lo + timedelta(seconds=1)
        if mid.astimezone(zone).utcoffset() == target:
            hi = mid
        else:
            lo = mid
    return hi
