"""
tzshare/event.py

Event model shared by the codec, the resolver and the viewer.

Provides:
- Frequency enum for recurring events
- EventDescriptor, the immutable record a share token carries
- ResolvedOccurrence, the derived next occurrence of an event
"""

from dataclasses import dataclass, field
from datetime import date, datetime, time
from enum import Enum
from typing import Optional, Tuple


DEFAULT_COLOR = "blue"


class Frequency(Enum):
    """How often a recurring event repeats."""
    DAILY = "Every Day"
    ALTERNATE_DAYS = "Alternate Days"
    WEEKLY = "Every Week"
    MONTHLY = "Every Month"
    YEARLY = "Every Year"

    @classmethod
    def from_label(cls, label: str) -> "Frequency":
        """
        Look up a frequency by its wire label.

        Accepts the current labels, the older "Every Weak" spelling and the
        enum member names (case-insensitive).

        Raises:
            ValueError: If the label is not a known frequency.
        """
        if label in FREQUENCY_ALIASES:
            return FREQUENCY_ALIASES[label]
        try:
            return cls(label)
        except ValueError:
            pass
        key = label.strip().upper().replace("-", "_").replace(" ", "_")
        if key in cls.__members__:
            return cls[key]
        raise ValueError(f"Unknown recurring frequency: {label!r}")

    @property
    def label(self) -> str:
        return self.value


FREQUENCY_ALIASES = {
    "Every Weak": Frequency.WEEKLY,
}


@dataclass(frozen=True)
class EventDescriptor:
    """
    An event as defined by its creator.

    Attributes:
        title: Event name.
        description: Free text shown on the share page.
        base_date: First (or only) date of the event, creator-local.
        base_time: Time of day, creator-local.
        creator_timezone: IANA zone id the date and time are expressed in.
        is_recurring: Whether the event repeats.
        recurring_frequency: Repeat step; required when is_recurring.
        timezones: Zones to list on the share page, in display order.
        primary_color: Cosmetic theme color.
    """

    title: str
    base_date: date
    base_time: time
    creator_timezone: str
    description: str = ""
    is_recurring: bool = False
    recurring_frequency: Optional[Frequency] = None
    timezones: Tuple[str, ...] = field(default_factory=tuple)
    primary_color: str = DEFAULT_COLOR

    def __post_init__(self):
        if self.is_recurring and self.recurring_frequency is None:
            raise ValueError("Recurring events need a recurring_frequency")
        if isinstance(self.base_date, datetime):
            raise ValueError("base_date must be a date, not a datetime")
        if self.base_time.tzinfo is not None or self.base_time.microsecond:
            raise ValueError("base_time must be a naive civil time in whole seconds")
        if not self.creator_timezone or not self.creator_timezone.strip():
            raise ValueError("creator_timezone must not be empty")
        # Ordered set: keep first occurrence of each zone
        object.__setattr__(
            self, "timezones", tuple(dict.fromkeys(self.timezones))
        )

    @property
    def frequency(self) -> Optional[Frequency]:
        """Effective repeat step (None for one-time events)."""
        return self.recurring_frequency if self.is_recurring else None


@dataclass(frozen=True)
class ResolvedOccurrence:
    """
    The next occurrence of an event at some evaluation instant.

    Attributes:
        effective_date: Creator-local date of the occurrence.
        creator_instant: Absolute start of the occurrence (UTC).
    """

    effective_date: date
    creator_instant: datetime
