"""
tzshare

Share an event defined in the creator's time zone and count down to its
next occurrence in any viewer's time zone.

Provides:
- Share token encoding/decoding (codec)
- Civil time <-> instant conversion across IANA zones (timezones)
- Next-occurrence resolution for recurring events (recurrence)
- Asyncio countdown engine with elapse callbacks (countdown)
- Occurrence tracking and the share page model (tracker)
- Share links with best-effort shortening (share)
"""

from .codec import decode, encode
from .countdown import CountdownEngine, CountdownState, format_remaining
from .errors import (
    ConfigError,
    DecodeError,
    InvalidTimezoneError,
    TzShareError,
    ValidationError,
)
from .event import EventDescriptor, Frequency, ResolvedOccurrence
from .recurrence import resolve, resolve_occurrence
from .share import LinkShortener, build_share_url, create_share_link
from .timezones import convert, render_across, to_civil, to_instant
from .tracker import OccurrenceTracker, ShareView, build_share_view, load_share_view

__version__ = "1.0.0"

__all__ = [
    "encode",
    "decode",
    "CountdownEngine",
    "CountdownState",
    "format_remaining",
    "TzShareError",
    "DecodeError",
    "InvalidTimezoneError",
    "ValidationError",
    "ConfigError",
    "EventDescriptor",
    "Frequency",
    "ResolvedOccurrence",
    "resolve",
    "resolve_occurrence",
    "LinkShortener",
    "build_share_url",
    "create_share_link",
    "convert",
    "render_across",
    "to_civil",
    "to_instant",
    "OccurrenceTracker",
    "ShareView",
    "build_share_view",
    "load_share_view",
]
