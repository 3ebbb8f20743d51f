"""
tests/unit/test_countdown.py

Unit tests for the countdown engine and remaining-time formatting.

Tests cover:
- format_remaining / split_remaining
- Engine state machine (IDLE -> RUNNING -> ELAPSED)
- Exactly-once elapse, non-negative remaining
- cancel()/start() from inside callbacks
- Callback errors do not stop the engine
"""

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from tzshare.countdown import (
    CountdownEngine,
    CountdownState,
    format_remaining,
    split_remaining,
)

UTC = timezone.utc
FAST_TICK = 0.01


def _ticking_clock(fake_clock, ticks):
    """on_tick that records remaining and advances the fake clock 1s."""
    def on_tick(remaining):
        ticks.append(remaining)
        fake_clock.advance(1)
    return on_tick


# =============================================================================
# Formatting Tests
# =============================================================================

class TestSplitRemaining:
    """Tests for split_remaining()."""

    def test_split(self):
        """Durations split into d/h/m/s."""
        assert split_remaining(timedelta(days=6, hours=4, minutes=30, seconds=5)) == (6, 4, 30, 5)

    def test_negative_is_zero(self):
        """Negative durations clamp to zero."""
        assert split_remaining(timedelta(seconds=-90)) == (0, 0, 0, 0)


class TestFormatRemaining:
    """Tests for format_remaining()."""

    def test_long_format(self):
        """Long format spells out units."""
        delta = timedelta(days=1, hours=2, minutes=3, seconds=4)
        assert format_remaining(delta) == "1 day, 2 hours, 3 minutes, 4 seconds"

    def test_long_format_skips_zero_units(self):
        """Zero units are omitted."""
        assert format_remaining(timedelta(days=2, seconds=1)) == "2 days, 1 second"

    def test_short_format(self):
        """Short format uses unit letters."""
        delta = timedelta(days=6, hours=4, minutes=30, seconds=5)
        assert format_remaining(delta, short=True) == "6d 4h 30m 5s"

    def test_short_format_minutes_only(self):
        """Whole minutes drop the seconds."""
        assert format_remaining(timedelta(minutes=5), short=True) == "5m"

    def test_sub_second(self):
        """Fractions of a second are still in the future."""
        assert format_remaining(timedelta(milliseconds=300)) == "less than a second"
        assert format_remaining(timedelta(milliseconds=300), short=True) == "0s"

    @pytest.mark.parametrize("delta", [timedelta(0), timedelta(seconds=-5)])
    def test_elapsed(self, delta):
        """Zero or negative means the event has started."""
        assert format_remaining(delta) == "time's up!"
        assert format_remaining(delta, short=True) == "now"


# =============================================================================
# Engine State Tests
# =============================================================================

class TestEngineState:
    """Tests for the engine's state machine."""

    def test_initial_state(self):
        """A new engine is idle with no remaining time."""
        engine = CountdownEngine()
        assert engine.state == CountdownState.IDLE
        assert engine.remaining is None
        assert engine.running is False

    def test_invalid_tick_interval(self):
        """Tick interval must be positive."""
        with pytest.raises(ValueError):
            CountdownEngine(tick_interval=0)

    def test_naive_target_rejected(self):
        """Targets must be timezone-aware."""
        engine = CountdownEngine()
        with pytest.raises(ValueError):
            engine.start(datetime(2030, 1, 1))

    def test_cancel_when_idle(self):
        """Cancelling an idle engine is a no-op."""
        engine = CountdownEngine()
        engine.cancel()
        engine.cancel()
        assert engine.state == CountdownState.IDLE

    @pytest.mark.asyncio
    async def test_start_sets_running(self, fake_clock):
        """start() moves to RUNNING and reports remaining time."""
        engine = CountdownEngine(tick_interval=FAST_TICK, clock=fake_clock)
        engine.start(fake_clock() + timedelta(minutes=10))

        assert engine.state == CountdownState.RUNNING
        assert engine.running is True
        assert engine.remaining == timedelta(minutes=10)

        engine.cancel()
        await asyncio.sleep(0)

    @pytest.mark.asyncio
    async def test_cancel_returns_to_idle(self, fake_clock):
        """cancel() stops the countdown and is idempotent."""
        engine = CountdownEngine(tick_interval=FAST_TICK, clock=fake_clock)
        on_elapse = MagicMock()
        engine.start(fake_clock() + timedelta(seconds=1), on_elapse)

        engine.cancel()
        engine.cancel()
        await asyncio.sleep(0.05)

        assert engine.state == CountdownState.IDLE
        assert engine.remaining is None
        assert engine.target is None
        on_elapse.assert_not_called()


# =============================================================================
# Elapse Tests
# =============================================================================

class TestElapse:
    """Tests for elapse behavior."""

    @pytest.mark.asyncio
    async def test_five_second_countdown(self, fake_clock):
        """Elapse fires exactly once and remaining never goes negative."""
        ticks = []
        on_elapse = MagicMock()
        engine = CountdownEngine(
            tick_interval=FAST_TICK,
            on_tick=_ticking_clock(fake_clock, ticks),
            clock=fake_clock,
        )

        engine.start(fake_clock() + timedelta(seconds=5), on_elapse)
        await asyncio.wait_for(engine.wait(), timeout=5)

        on_elapse.assert_called_once_with()
        assert engine.state == CountdownState.ELAPSED
        assert engine.remaining == timedelta(0)
        assert ticks == [timedelta(seconds=s) for s in (5, 4, 3, 2, 1, 0)]
        assert all(t >= timedelta(0) for t in ticks)

        # Time keeps moving; the engine stays elapsed
        fake_clock.advance(60)
        await asyncio.sleep(0.05)
        on_elapse.assert_called_once_with()
        assert engine.remaining == timedelta(0)

    @pytest.mark.asyncio
    async def test_past_target_elapses_immediately(self, fake_clock):
        """A target already passed elapses on the first tick."""
        ticks = []
        on_elapse = MagicMock()
        engine = CountdownEngine(tick_interval=FAST_TICK, on_tick=ticks.append, clock=fake_clock)

        engine.start(fake_clock() - timedelta(hours=1), on_elapse)
        await asyncio.wait_for(engine.wait(), timeout=5)

        assert ticks == [timedelta(0)]
        on_elapse.assert_called_once_with()

    @pytest.mark.asyncio
    async def test_async_callbacks(self, fake_clock):
        """Coroutine callbacks are awaited."""
        on_tick = AsyncMock(side_effect=lambda remaining: fake_clock.advance(1))
        on_elapse = AsyncMock()
        engine = CountdownEngine(tick_interval=FAST_TICK, on_tick=on_tick, clock=fake_clock)

        engine.start(fake_clock() + timedelta(seconds=2), on_elapse)
        await asyncio.wait_for(engine.wait(), timeout=5)

        assert on_tick.await_count == 3
        on_elapse.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_real_clock(self):
        """The default clock counts down in real time."""
        on_elapse = MagicMock()
        engine = CountdownEngine(tick_interval=FAST_TICK)

        engine.start(datetime.now(UTC) + timedelta(milliseconds=50), on_elapse)
        await asyncio.wait_for(engine.wait(), timeout=5)

        on_elapse.assert_called_once_with()
        assert engine.state == CountdownState.ELAPSED


# =============================================================================
# Re-entrancy Tests
# =============================================================================

class TestReentrancy:
    """Tests for start()/cancel() during callbacks and overlapping cycles."""

    @pytest.mark.asyncio
    async def test_cancel_inside_elapse(self, fake_clock):
        """Cancelling from the elapse callback leaves the engine idle."""
        engine = CountdownEngine(tick_interval=FAST_TICK, clock=fake_clock)
        engine.start(fake_clock(), lambda: engine.cancel())
        await asyncio.wait_for(engine.wait(), timeout=5)

        assert engine.state == CountdownState.IDLE
        assert engine.remaining is None

    @pytest.mark.asyncio
    async def test_cancel_inside_tick(self, fake_clock):
        """Cancelling from a tick stops the cycle before it elapses."""
        on_elapse = MagicMock()
        engine = CountdownEngine(tick_interval=FAST_TICK, clock=fake_clock)
        engine.on_tick = lambda remaining: engine.cancel()

        engine.start(fake_clock(), on_elapse)
        await asyncio.wait_for(engine.wait(), timeout=5)

        on_elapse.assert_not_called()
        assert engine.state == CountdownState.IDLE

    @pytest.mark.asyncio
    async def test_restart_inside_elapse(self, fake_clock):
        """Starting a new cycle from the elapse callback runs it."""
        second_elapse = MagicMock()
        engine = CountdownEngine(tick_interval=FAST_TICK, clock=fake_clock)

        def first_elapse():
            engine.start(fake_clock() + timedelta(seconds=3), second_elapse)

        engine.on_tick = lambda remaining: fake_clock.advance(1)
        engine.start(fake_clock() + timedelta(seconds=1), first_elapse)

        await asyncio.wait_for(engine.wait(), timeout=5)
        assert engine.state == CountdownState.RUNNING
        await asyncio.wait_for(engine.wait(), timeout=5)

        second_elapse.assert_called_once_with()
        assert engine.state == CountdownState.ELAPSED

    @pytest.mark.asyncio
    async def test_restart_abandons_previous_cycle(self, fake_clock):
        """Ticks of a superseded cycle never fire."""
        ticks = []
        first_elapse = MagicMock()
        engine = CountdownEngine(tick_interval=FAST_TICK, on_tick=ticks.append, clock=fake_clock)

        engine.start(fake_clock() + timedelta(hours=1), first_elapse)
        engine.start(fake_clock() + timedelta(minutes=1))
        await asyncio.sleep(0.05)

        assert ticks
        assert all(t == timedelta(minutes=1) for t in ticks)
        first_elapse.assert_not_called()
        engine.cancel()
        await asyncio.sleep(0)

    @pytest.mark.asyncio
    async def test_callbacks_never_overlap(self, fake_clock):
        """Slow async callbacks are never run concurrently."""
        active = 0
        peak = 0

        async def slow_tick(remaining):
            nonlocal active, peak
            active += 1
            peak = max(peak, active)
            await asyncio.sleep(FAST_TICK * 3)
            fake_clock.advance(1)
            active -= 1

        engine = CountdownEngine(tick_interval=FAST_TICK, on_tick=slow_tick, clock=fake_clock)
        engine.start(fake_clock() + timedelta(seconds=3))
        await asyncio.wait_for(engine.wait(), timeout=5)

        assert peak == 1
        assert engine.state == CountdownState.ELAPSED


# =============================================================================
# Error Handling Tests
# =============================================================================

class TestCallbackErrors:
    """Callback exceptions are logged, not propagated."""

    @pytest.mark.asyncio
    async def test_tick_error_logged(self, fake_clock, caplog):
        """A failing on_tick does not stop the countdown."""
        on_elapse = MagicMock()

        def bad_tick(remaining):
            fake_clock.advance(1)
            raise RuntimeError("render failed")

        engine = CountdownEngine(tick_interval=FAST_TICK, on_tick=bad_tick, clock=fake_clock)
        with caplog.at_level(logging.ERROR, logger="tzshare.countdown"):
            engine.start(fake_clock() + timedelta(seconds=2), on_elapse)
            await asyncio.wait_for(engine.wait(), timeout=5)

        on_elapse.assert_called_once_with()
        assert "render failed" in caplog.text

    @pytest.mark.asyncio
    async def test_elapse_error_logged(self, fake_clock, caplog):
        """A failing on_elapse still leaves the engine elapsed."""
        on_elapse = MagicMock(side_effect=RuntimeError("boom"))
        engine = CountdownEngine(tick_interval=FAST_TICK, clock=fake_clock)

        with caplog.at_level(logging.ERROR, logger="tzshare.countdown"):
            engine.start(fake_clock(), on_elapse)
            await asyncio.wait_for(engine.wait(), timeout=5)

        assert engine.state == CountdownState.ELAPSED
        assert "boom" in caplog.text
