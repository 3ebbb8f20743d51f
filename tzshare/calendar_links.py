"""
tzshare/calendar_links.py

"Save to calendar" exports for a resolved occurrence.

Provides:
- google_calendar_url: pre-filled Google Calendar event link
- to_ics: single-event iCalendar document (RFC 5545), built with icalendar
"""

import hashlib
from datetime import datetime, timedelta, timezone
from typing import Optional
from urllib.parse import urlencode

from icalendar import Calendar
from icalendar import Event as ICalEvent
from icalendar import vRecur

from .event import EventDescriptor, Frequency, ResolvedOccurrence

GOOGLE_CALENDAR_URL = "https://calendar.google.com/calendar/render"
DEFAULT_DURATION = timedelta(hours=1)
PRODID = "-//tzshare//Event Share//EN"

RRULES = {
    Frequency.DAILY: {"freq": "DAILY"},
    Frequency.ALTERNATE_DAYS: {"freq": "DAILY", "interval": 2},
    Frequency.WEEKLY: {"freq": "WEEKLY"},
    Frequency.MONTHLY: {"freq": "MONTHLY"},
    Frequency.YEARLY: {"freq": "YEARLY"},
}


def _utc_stamp(instant: datetime) -> str:
    return instant.astimezone(timezone.utc).strftime("%Y%m%dT%H%M%SZ")


def google_calendar_url(
    descriptor: EventDescriptor,
    occurrence: ResolvedOccurrence,
    duration: timedelta = DEFAULT_DURATION,
) -> str:
    """
    Build a Google Calendar link for an occurrence.

    Args:
        descriptor: The event.
        occurrence: Occurrence to add.
        duration: Event length.

    Returns:
        URL opening a pre-filled event form.
    """
    start = occurrence.creator_instant
    params = {
        "action": "TEMPLATE",
        "text": descriptor.title,
        "details": descriptor.description,
        "dates": f"{_utc_stamp(start)}/{_utc_stamp(start + duration)}",
        "ctz": descriptor.creator_timezone,
    }
    rule = RRULES.get(descriptor.frequency)
    if rule:
        params["recur"] = f"RRULE:{vRecur(rule).to_ical().decode('ascii')}"
    return f"{GOOGLE_CALENDAR_URL}?{urlencode(params)}"


def to_ics(
    descriptor: EventDescriptor,
    occurrence: ResolvedOccurrence,
    duration: timedelta = DEFAULT_DURATION,
    now: Optional[datetime] = None,
) -> str:
    """
    Render an occurrence as an iCalendar document.

    Recurring events carry an RRULE starting at the occurrence.

    Args:
        descriptor: The event.
        occurrence: Occurrence to export.
        duration: Event length.
        now: DTSTAMP value (default: UTC now).

    Returns:
        iCalendar text with CRLF line endings.
    """
    start = occurrence.creator_instant.astimezone(timezone.utc)
    stamp = now or datetime.now(timezone.utc)

    cal = Calendar()
    cal.add("prodid", PRODID)
    cal.add("version", "2.0")
    cal.add("calscale", "GREGORIAN")

    event = ICalEvent()
    event.add("uid", _uid(descriptor, occurrence))
    event.add("dtstamp", stamp.astimezone(timezone.utc))
    event.add("dtstart", start)
    event.add("dtend", start + duration)
    event.add("summary", descriptor.title)
    if descriptor.description:
        event.add("description", descriptor.description)
    rule = RRULES.get(descriptor.frequency)
    if rule:
        event.add("rrule", dict(rule))
    cal.add_component(event)

    return cal.to_ical().decode("utf-8")


def _uid(descriptor: EventDescriptor, occurrence: ResolvedOccurrence) -> str:
    digest = hashlib.sha1(
        f"{descriptor.title}|{descriptor.creator_timezone}|"
        f"{occurrence.creator_instant.isoformat()}".encode("utf-8")
    ).hexdigest()
    return f"{digest[:16]}@tzshare"

