"""Periodic inbox refresh that pauses while the view is hidden."""

from __future__ import annotations

import asyncio
import contextlib
from enum import Enum
from typing import Awaitable, Callable, Optional

from inbox.infra.logging_config import get_logger

logger = get_logger("polling_scheduler")


class SchedulerState(str, Enum):
    IDLE = "idle"
    POLLING = "polling"
    PAUSED = "paused"


class PollingScheduler:
    """
    Runs `fetch` on mount, then every `interval` seconds while visible.

    At most one fetch is in flight; a tick that finds one running is
    skipped rather than queued.
    """

    def __init__(
        self,
        fetch: Callable[[], Awaitable[object]],
        interval: float = 30.0,
    ) -> None:
        if interval <= 0:
            raise ValueError("interval must be positive")
        self._fetch = fetch
        self.interval = interval
        self.state = SchedulerState.IDLE
        self._timer_task: Optional[asyncio.Task[None]] = None
        self._in_flight = False

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    async def start(self) -> None:
        """Fetch immediately and arm the periodic timer."""
        if self.state != SchedulerState.IDLE:
            return
        self.state = SchedulerState.POLLING
        await self.tick()
        self._arm()

    async def set_visible(self, visible: bool) -> None:
        """Hidden pauses the timer; becoming visible again refreshes at once."""
        if self.state == SchedulerState.IDLE:
            return
        if not visible:
            if self.state == SchedulerState.POLLING:
                await self._disarm()
                self.state = SchedulerState.PAUSED
                logger.debug("Polling paused")
            return
        if self.state == SchedulerState.PAUSED:
            self.state = SchedulerState.POLLING
            logger.debug("Polling resumed")
            await self.tick()
            self._arm()

    async def stop(self) -> None:
        await self._disarm()
        self.state = SchedulerState.IDLE

    async def tick(self) -> bool:
        """
        Run one fetch unless one is already in flight.

        Returns False when skipped. Fetch errors are logged; the timer keeps
        running.
        """
        if self._in_flight:
            logger.debug("Skipping refresh; previous fetch still in flight")
            return False
        self._in_flight = True
        try:
            await self._fetch()
        except Exception as e:
            logger.error("Inbox refresh failed: %s", e)
        finally:
            self._in_flight = False
        return True

    def _arm(self) -> None:
        if self._timer_task is None or self._timer_task.done():
            self._timer_task = asyncio.create_task(self._run())

    async def _disarm(self) -> None:
        task, self._timer_task = self._timer_task, None
        if task is None:
            return
        task.cancel()
        if task is not asyncio.current_task():
            with contextlib.suppress(asyncio.CancelledError):
                await task

    async def _run(self) -> None:
        while self.state == SchedulerState.POLLING:
            await asyncio.sleep(self.interval)
            if self.state != SchedulerState.POLLING:
                break
            await self.tick()
