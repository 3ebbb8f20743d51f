"""
tzshare/tracker.py

Viewer side of a shared event.

Provides:
- OccurrenceTracker: keeps a countdown pointed at the event's next
  occurrence, re-resolving it each time the countdown elapses
- ShareView / build_share_view: everything the share page shows for one
  viewer at one instant
"""

import inspect
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Awaitable, Callable, List, Optional, Union

from . import codec
from .countdown import (
    DEFAULT_TICK_INTERVAL,
    Clock,
    CountdownEngine,
    CountdownState,
    TickCallback,
    utc_now,
)
from .event import EventDescriptor, ResolvedOccurrence
from .recurrence import resolve_occurrence
from .timezones import ZoneRendering, get_zone, localize, render_across

OccurrenceCallback = Callable[[ResolvedOccurrence], Union[None, Awaitable[None]]]

# Smallest step past an elapsed occurrence when re-resolving
EVALUATION_EPSILON = timedelta(microseconds=1)


class OccurrenceTracker:
    """
    Drives a CountdownEngine through an event's occurrences.

    The cycle is explicit: the engine elapses, the next occurrence is
    resolved with an evaluation instant strictly after the elapsed one, and
    the engine is started on the new target. One-time events stop in the
    ELAPSED state after their only occurrence.

    Args:
        descriptor: The event being watched.
        clock: Returns the current aware datetime (default: UTC now).
        on_tick: Render callback, receives the remaining timedelta.
        on_occurrence: Called with every newly resolved occurrence.
        tick_interval: Seconds between countdown ticks.
    """

    def __init__(
        self,
        descriptor: EventDescriptor,
        clock: Optional[Clock] = None,
        on_tick: Optional[TickCallback] = None,
        on_occurrence: Optional[OccurrenceCallback] = None,
        tick_interval: float = DEFAULT_TICK_INTERVAL,
    ):
        self.descriptor = descriptor
        self.clock = clock or utc_now
        self.on_occurrence = on_occurrence
        self.occurrence: Optional[ResolvedOccurrence] = None
        self.engine = CountdownEngine(
            tick_interval=tick_interval, on_tick=on_tick, clock=self.clock
        )
        self.logger = logging.getLogger(f"{__name__}.OccurrenceTracker")

    @property
    def state(self) -> CountdownState:
        return self.engine.state

    async def start(self) -> ResolvedOccurrence:
        """
        Resolve the current occurrence and start counting down to it.

        Returns:
            The resolved occurrence.

        Raises:
            InvalidTimezoneError: If the creator zone is unknown.
        """
        return await self._advance(self.clock())

    def cancel(self) -> None:
        """Stop tracking. Idempotent."""
        self.engine.cancel()

    async def _advance(self, now: datetime) -> ResolvedOccurrence:
        occurrence = resolve_occurrence(self.descriptor, now)
        self.occurrence = occurrence
        self.logger.info(
            f"Next occurrence of {self.descriptor.title!r}: "
            f"{occurrence.creator_instant.isoformat()}"
        )
        if self.on_occurrence is not None:
            result = self.on_occurrence(occurrence)
            if inspect.isawaitable(result):
                await result
        self.engine.start(occurrence.creator_instant, self._on_elapse)
        return occurrence

    async def _on_elapse(self) -> None:
        if self.descriptor.frequency is None:
            self.logger.info(f"One-time event {self.descriptor.title!r} has started")
            return

        previous = self.occurrence.creator_instant
        now = max(self.clock(), previous + EVALUATION_EPSILON)
        await self._advance(now)


# =============================================================================
# Share page model
# =============================================================================

@dataclass(frozen=True)
class ShareView:
    """
    What the share page shows one viewer.

    Attributes:
        descriptor: The decoded event.
        occurrence: Next (or only) occurrence at the evaluation instant.
        viewer_timezone: Zone the viewer sees local times in.
        viewer_start: Occurrence start in the viewer's zone.
        is_past: True when a one-time event has already started.
        listing: Occurrence start in each of the event's display zones.
    """

    descriptor: EventDescriptor
    occurrence: ResolvedOccurrence
    viewer_timezone: str
    viewer_start: datetime
    is_past: bool
    listing: List[ZoneRendering]

    def remaining(self, now: datetime) -> timedelta:
        """Time left until the occurrence, never negative."""
        return max(timedelta(0), self.occurrence.creator_instant - now)


def build_share_view(
    descriptor: EventDescriptor, viewer_timezone: str, now: datetime
) -> ShareView:
    """
    Build the share page model for one viewer.

    Args:
        descriptor: The event.
        viewer_timezone: The viewer's IANA zone id.
        now: Evaluation instant (timezone-aware).

    Returns:
        ShareView.

    Raises:
        InvalidTimezoneError: If the creator or viewer zone is unknown.
            Unknown display zones are reported per row in the listing.
    """
    get_zone(viewer_timezone)
    occurrence = resolve_occurrence(descriptor, now)
    instant = occurrence.creator_instant
    return ShareView(
        descriptor=descriptor,
        occurrence=occurrence,
        viewer_timezone=viewer_timezone,
        viewer_start=localize(instant, viewer_timezone),
        is_past=instant < now,
        listing=render_across(instant, descriptor.timezones),
    )


def load_share_view(token: str, viewer_timezone: str, now: datetime) -> ShareView:
    """
    Decode a share token and build its page model.

    Raises:
        DecodeError: If the token is invalid. Nothing is rendered.
        InvalidTimezoneError: If the creator or viewer zone is unknown.
    """
    return build_share_view(codec.decode(token), viewer_timezone, now)
