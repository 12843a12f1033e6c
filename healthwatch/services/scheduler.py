"""
Fixed-cadence background schedule on top of an asyncio task.
"""

import asyncio
import time
from collections.abc import Awaitable, Callable
from typing import Any

import structlog

logger = structlog.get_logger(__name__)


class PeriodicTask:
    """
    Calls `action` every `interval_seconds` until stopped.

    A cycle that raises is logged and the schedule carries on. A cycle that
    overruns its interval starts the next one immediately.
    """

    def __init__(
        self,
        name: str,
        interval_seconds: float,
        action: Callable[[], Awaitable[Any]],
        run_immediately: bool = False,
    ) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self.name = name
        self.interval_seconds = interval_seconds
        self.action = action
        self.run_immediately = run_immediately
        self.cycles_completed = 0
        self._task: asyncio.Task[None] | None = None
        self.logger = logger.bind(schedule=name)

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Schedule the loop on the running event loop. Raises RuntimeError without one."""
        if self.is_running:
            return
        loop = asyncio.get_running_loop()
        self._task = loop.create_task(self._run(), name=f"healthwatch-{self.name}")
        self.logger.info("schedule_started", interval_seconds=self.interval_seconds)

    async def stop(self) -> None:
        """Cancel the loop, abandoning any cycle in flight."""
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        self.logger.info("schedule_stopped", cycles_completed=self.cycles_completed)

    async def _run(self) -> None:
        if not self.run_immediately:
            await asyncio.sleep(self.interval_seconds)

        while True:
            cycle_start = time.perf_counter()

            try:
                await self.action()
                self.cycles_completed += 1
            except Exception as e:
                self.logger.exception("schedule_cycle_failed", error=str(e))

            elapsed = time.perf_counter() - cycle_start
            sleep_time = self.interval_seconds - elapsed
            if sleep_time > 0:
                await asyncio.sleep(sleep_time)
            else:
                self.logger.warning(
                    "schedule_slower_than_interval",
                    elapsed_seconds=round(elapsed, 3),
                    interval_seconds=self.interval_seconds,
                )
                await asyncio.sleep(0)
