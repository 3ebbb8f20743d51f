"""
Global pytest configuration and fixtures for tzshare tests

Provides:
- Sample events (one-time and recurring)
- Controllable clock for countdown tests
- Mock HTTP responses for the link shortener
"""

import sys
from datetime import date, datetime, time, timedelta, timezone
from pathlib import Path
from unittest.mock import MagicMock

import pytest

# Add project root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from tzshare.event import EventDescriptor, Frequency


# ============================================================================
# Pytest Configuration
# ============================================================================

def pytest_configure(config):
    """Configure pytest with custom settings"""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests")


# ============================================================================
# Events
# ============================================================================

@pytest.fixture
def one_time_event():
    """One-time event created in India."""
    return EventDescriptor(
        title="Robert Birthday 🎉",
        description="Cake at the office, bring a friend.",
        base_date=date(2022, 6, 30),
        base_time=time(18, 30),
        creator_timezone="Asia/Kolkata",
        timezones=("Asia/Kolkata", "Asia/Bangkok", "America/New_York", "Europe/London"),
        primary_color="grape",
    )


@pytest.fixture
def weekly_event():
    """Weekly event starting on a Sunday."""
    return EventDescriptor(
        title="Weekly sync",
        description="",
        base_date=date(2022, 6, 19),
        base_time=time(9, 0),
        creator_timezone="Asia/Kolkata",
        is_recurring=True,
        recurring_frequency=Frequency.WEEKLY,
        timezones=("Europe/London", "America/Los_Angeles"),
    )


@pytest.fixture
def legacy_payload():
    """Payload as produced by the legacy web form, date pickers serialized as UTC timestamps."""
    return {
        "title": "Robert Birthday 🎉",
        "description": "Duis exercitation cupidatat aliquip.",
        "isRecurring": True,
        "recurringFrequency": "Every Weak",
        "date": "2022-06-29T18:30:00.000Z",
        "time": "2022-06-19T03:30:00.000Z",
        "timezones": ["Asia/Kolkata", "Asia/Bangkok", "America/New_York", "Europe/London"],
        "primaryColor": "blue",
        "creatorTimezone": "Asia/Kolkata",
    }


# ============================================================================
# Clock
# ============================================================================

class FakeClock:
    """Manually advanced clock returning aware UTC datetimes."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float = 0, **kwargs) -> datetime:
        self.now += timedelta(seconds=seconds, **kwargs)
        return self.now


@pytest.fixture
def fake_clock():
    """Clock starting at 2022-07-05 00:00 UTC."""
    return FakeClock(datetime(2022, 7, 5, tzinfo=timezone.utc))


# ============================================================================
# HTTP
# ============================================================================

@pytest.fixture
def mock_response():
    """Factory for mock httpx responses."""
    def _make_response(status_code: int = 200, text: str = ""):
        response = MagicMock()
        response.status_code = status_code
        response.text = text
        return response
    return _make_response


@pytest.fixture
def clock_at():
    """Factory for clocks starting at a given instant."""
    return FakeClock
