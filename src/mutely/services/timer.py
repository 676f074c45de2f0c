"""Session countdown anchored on the server start time."""

import asyncio
import logging
import math
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime, timedelta

from mutely.domain.sessions import Session
from mutely.services.observable import AppState

_logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(tz=UTC)


def compute_remaining_seconds(
    ends_at: datetime, duration_minutes: int, now: datetime
) -> int:
    """Whole seconds left until ends_at, clamped to [0, duration]."""
    left = math.floor((ends_at - now).total_seconds())
    return min(duration_minutes * 60, max(0, left))


class SessionTimer:
    """Countdown that survives the process being suspended.

    Remaining time is always recomputed from ``ends_at`` instead of being
    decremented, so missed ticks never cause drift.
    """

    def __init__(
        self,
        on_complete: Callable[[], Awaitable[None]],
        *,
        now: Callable[[], datetime] = _utc_now,
        tick_interval_seconds: float = 1.0,
        on_tick: Callable[[int], None] | None = None,
    ) -> None:
        self.on_complete = on_complete
        self.on_tick = on_tick
        self.tick_interval_seconds = tick_interval_seconds
        self._now = now
        self._ends_at: datetime | None = None
        self._duration_minutes = 0
        self._remaining: int | None = None
        self._completed = False
        self._task: asyncio.Task[None] | None = None

    @property
    def ends_at(self) -> datetime | None:
        return self._ends_at

    @property
    def remaining_seconds(self) -> int | None:
        return self._remaining

    @property
    def completed(self) -> bool:
        return self._completed

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def anchor(self, session: Session) -> None:
        """Re-anchor on a fresh session record; ignored until it has started."""
        if session.started_at is None:
            return
        self._ends_at = session.started_at + timedelta(minutes=session.duration_minutes)
        self._duration_minutes = session.duration_minutes

    async def tick(self) -> int | None:
        """Recompute the remaining time and complete the session at zero."""
        if self._ends_at is None:
            return None
        remaining = compute_remaining_seconds(
            self._ends_at, self._duration_minutes, self._now()
        )
        if self._remaining is not None and remaining > self._remaining:
            remaining = self._remaining
        self._remaining = remaining
        if self.on_tick is not None:
            self.on_tick(remaining)
        if remaining == 0 and not self._completed:
            self._completed = True
            self.stop()
            _logger.info("Session timer completed")
            await self.on_complete()
        return remaining

    async def on_app_state_change(self, state: AppState) -> None:
        """Correct the countdown as soon as the app is active again."""
        if state is AppState.ACTIVE and not self._completed:
            await self.tick()

    def start(self) -> None:
        if self.is_running or self._completed:
            return
        self._task = asyncio.get_running_loop().create_task(self._run())

    def stop(self) -> None:
        task, self._task = self._task, None
        if task is not None and task is not asyncio.current_task():
            task.cancel()

    async def _run(self) -> None:
        while not self._completed:
            await self.tick()
            if self._completed:
                return
            await asyncio.sleep(self.tick_interval_seconds)
