"""
tzshare/countdown.py

Asyncio-driven countdown to a target instant.

The engine moves through three states:

    IDLE --start()--> RUNNING --remaining hits 0--> ELAPSED
      ^                  |                              |
      +----cancel()------+-------------cancel()---------+

start() may also be called from RUNNING or ELAPSED to begin a new cycle
with a new target. Each cycle runs in a single task that ticks, sleeps,
and ticks again; ticks and the elapse callback of one engine never overlap.
"""

import asyncio
import inspect
import logging
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, Tuple, Union

ElapseCallback = Callable[[], Union[None, Awaitable[None]]]
TickCallback = Callable[[timedelta], Union[None, Awaitable[None]]]
Clock = Callable[[], datetime]

DEFAULT_TICK_INTERVAL = 1.0


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# Formatting
# =============================================================================

def split_remaining(delta: timedelta) -> Tuple[int, int, int, int]:
    """
    Split a duration into whole days, hours, minutes and seconds.

    Negative durations count as zero.
    """
    total_seconds = max(0, int(delta.total_seconds()))

    days = total_seconds // 86400
    hours = (total_seconds % 86400) // 3600
    minutes = (total_seconds % 3600) // 60
    seconds = total_seconds % 60
    return days, hours, minutes, seconds


def format_remaining(delta: timedelta, short: bool = False) -> str:
    """
    Format a timedelta as a human-readable string.

    Args:
        delta: The time difference to format.
        short: If True, use abbreviated format (e.g., "6d 4h 30m 5s").

    Returns:
        Human-readable time string.
    """
    if delta.total_seconds() <= 0:
        return "now" if short else "time's up!"

    days, hours, minutes, seconds = split_remaining(delta)

    if short:
        parts = []
        if days > 0:
            parts.append(f"{days}d")
        if hours > 0:
            parts.append(f"{hours}h")
        if minutes > 0:
            parts.append(f"{minutes}m")
        if seconds > 0 or not parts:
            parts.append(f"{seconds}s")
        return " ".join(parts)
    else:
        parts = []
        if days > 0:
            parts.append(f"{days} day{'s' if days != 1 else ''}")
        if hours > 0:
            parts.append(f"{hours} hour{'s' if hours != 1 else ''}")
        if minutes > 0:
            parts.append(f"{minutes} minute{'s' if minutes != 1 else ''}")
        if seconds > 0:
            parts.append(f"{seconds} second{'s' if seconds != 1 else ''}")
        if not parts:
            parts.append("less than a second")
        return ", ".join(parts)


# =============================================================================
# Countdown Engine
# =============================================================================

class CountdownState(Enum):
    """Lifecycle states of a CountdownEngine."""
    IDLE = "idle"
    RUNNING = "running"
    ELAPSED = "elapsed"


class CountdownEngine:
    """
    Live countdown to a single target instant.

    Ticks every tick_interval seconds (never sleeping past the target),
    reporting max(0, target - now) to on_tick. When the remaining time
    reaches zero the engine becomes ELAPSED, calls on_elapse exactly once
    and stops ticking.

    Callbacks may be plain functions or coroutine functions. cancel() is
    safe to call at any time, including from inside a callback.

    Args:
        tick_interval: Seconds between ticks.
        on_tick: Callback receiving the remaining timedelta on every tick.
        clock: Returns the current aware datetime (default: UTC now).
    """

    def __init__(
        self,
        tick_interval: float = DEFAULT_TICK_INTERVAL,
        on_tick: Optional[TickCallback] = None,
        clock: Optional[Clock] = None,
    ):
        if tick_interval <= 0:
            raise ValueError("tick_interval must be positive")

        self.tick_interval = tick_interval
        self.on_tick = on_tick
        self.clock = clock or utc_now
        self.state = CountdownState.IDLE
        self.target: Optional[datetime] = None
        self._on_elapse: Optional[ElapseCallback] = None
        self._task: Optional[asyncio.Task] = None
        self._generation = 0
        self._lock = asyncio.Lock()
        self.logger = logging.getLogger(f"{__name__}.CountdownEngine")

    @property
    def running(self) -> bool:
        return self.state == CountdownState.RUNNING

    @property
    def remaining(self) -> Optional[timedelta]:
        """
        Time left until the target.

        Returns:
            None when idle, zero once elapsed, otherwise max(0, target - now).
        """
        if self.state == CountdownState.IDLE or self.target is None:
            return None
        if self.state == CountdownState.ELAPSED:
            return timedelta(0)
        return max(timedelta(0), self.target - self.clock())

    def start(self, target: datetime, on_elapse: Optional[ElapseCallback] = None) -> None:
        """
        Start counting down to target.

        Any cycle already in progress is abandoned first; its pending ticks
        never fire.

        Args:
            target: Aware datetime to count down to.
            on_elapse: Called once when the target is reached.

        Raises:
            ValueError: If target is naive.
            RuntimeError: If no event loop is running.
        """
        if target.tzinfo is None or target.utcoffset() is None:
            raise ValueError("target must be timezone-aware")

        loop = asyncio.get_running_loop()
        self._abandon()

        self.target = target
        self._on_elapse = on_elapse
        self.state = CountdownState.RUNNING
        self._task = loop.create_task(self._run(self._generation, target))
        self.logger.debug(f"Countdown started (target: {target.isoformat()})")

    def cancel(self) -> None:
        """
        Stop the countdown and return to IDLE.

        Idempotent. Scheduled ticks and a pending elapse callback will not
        run after this returns.
        """
        was = self.state
        self._abandon()
        self.state = CountdownState.IDLE
        self.target = None
        self._on_elapse = None
        if was != CountdownState.IDLE:
            self.logger.debug(f"Countdown cancelled (was {was.value})")

    async def wait(self) -> None:
        """Wait until the current cycle's task, if any, has finished."""
        task = self._task
        if task is None or task is asyncio.current_task():
            return
        try:
            await task
        except asyncio.CancelledError:
            pass

    def _abandon(self) -> None:
        """Invalidate the current cycle and cancel its task."""
        self._generation += 1
        task = self._task
        self._task = None
        # A task cancelling itself would interrupt its own callback
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()

    def _is_current(self, generation: int) -> bool:
        return generation == self._generation

    async def _run(self, generation: int, target: datetime) -> None:
        """
        Tick loop for one countdown cycle.

        Exits when the cycle elapses or is superseded by start()/cancel().
        """
        try:
            while self._is_current(generation):
                async with self._lock:
                    if not self._is_current(generation):
                        return
                    remaining = max(timedelta(0), target - self.clock())

                    await self._call(self.on_tick, "tick", remaining)
                    if not self._is_current(generation):
                        return

                    if remaining <= timedelta(0):
                        self.state = CountdownState.ELAPSED
                        self.logger.info(f"Countdown elapsed (target: {target.isoformat()})")
                        callback = self._on_elapse
                        self._on_elapse = None
                        await self._call(callback, "elapse")
                        return

                delay = min(self.tick_interval, remaining.total_seconds())
                await asyncio.sleep(max(delay, 0))
        except asyncio.CancelledError:
            self.logger.debug("Countdown task cancelled")
            raise

    async def _call(self, callback: Optional[Callable[..., Any]], kind: str, *args) -> None:
        if callback is None:
            return
        try:
            result = callback(*args)
            if inspect.isawaitable(result):
                await result
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self.logger.exception(f"Error in {kind} callback: {e}")
