"""
Recurring background tasks (heartbeats and registry fetches).
"""

import asyncio
from typing import Awaitable, Callable, Optional

import structlog


class RecurringTask:
    """Runs an async callback every ``interval_seconds`` until halted.

    The first call happens one interval after ``start()``. Halting only
    prevents future firings: a callback already running is left to finish.
    """

    def __init__(
        self,
        name: str,
        callback: Callable[[], Awaitable[object]],
        interval_seconds: float,
        logger=None,
    ):
        self.name = name
        self.callback = callback
        self.interval = interval_seconds
        self.logger = (logger or structlog.get_logger()).bind(task=name)
        self._task: Optional[asyncio.Task] = None
        self._running = False
        self._sleeping = False

    @property
    def running(self) -> bool:
        return self._running

    def start(self) -> None:
        """Schedule the loop on the running event loop"""
        if self._running:
            self.logger.warning("recurring_task_already_running")
            return

        self._running = True
        self._task = asyncio.create_task(self._loop(), name=f"eureka-{self.name}")
        self.logger.info("recurring_task_started", interval_seconds=self.interval)

    def halt(self) -> None:
        """Stop future firings without touching a callback in progress"""
        self._running = False

        # Only the interval sleep is interrupted
        if self._task is not None and self._sleeping:
            self._task.cancel()

    async def join(self) -> None:
        """Wait for the loop to exit after ``halt()``"""
        if self._task is None:
            return

        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        self.logger.info("recurring_task_cancelled")

    async def cancel(self) -> None:
        self.halt()
        await self.join()

    async def _loop(self) -> None:
        while self._running:
            self._sleeping = True
            try:
                await asyncio.sleep(self.interval)
            except asyncio.CancelledError:
                break
            finally:
                self._sleeping = False

            if not self._running:
                break

            try:
                await self.callback()
            except Exception as e:
                self.logger.error("recurring_task_error", error=str(e))


class BackgroundLoops:
    """Owns the heartbeat and registry-fetch loops of one client."""

    def __init__(
        self,
        heartbeat: RecurringTask,
        registry_fetch: Optional[RecurringTask] = None,
    ):
        self.heartbeat = heartbeat
        self.registry_fetch = registry_fetch

    def _tasks(self):
        if self.registry_fetch is None:
            return [self.heartbeat]
        return [self.heartbeat, self.registry_fetch]

    def start(self, fetch_registry: bool = True) -> None:
        self.heartbeat.start()
        if fetch_registry and self.registry_fetch is not None:
            self.registry_fetch.start()

    def halt(self) -> None:
        for task in self._tasks():
            task.halt()

    async def join(self) -> None:
        for task in self._tasks():
            await task.join()

    async def cancel(self) -> None:
        self.halt()
        await self.join()
