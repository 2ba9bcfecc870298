"""Periodic trigger for detection cycles and retention sweeps"""

import asyncio
from typing import Awaitable, Callable, Optional

import structlog

logger = structlog.get_logger()


class PeriodicScheduler:
    """
    Runs a coroutine function on a fixed interval.

    The first run fires immediately after start(). A failing run is logged
    and the loop keeps its cadence.
    """

    def __init__(
        self,
        run_cycle: Callable[[], Awaitable[object]],
        interval_seconds: float = 30.0,
        name: str = "detection",
    ):
        """
        Initialize scheduler.

        Args:
            run_cycle: Coroutine function executing one run
            interval_seconds: Seconds between run starts (default 30)
            name: Task name bound to every log event
        """
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self.run_cycle = run_cycle
        self.interval_seconds = interval_seconds
        self.name = name
        self._logger = logger.bind(component="periodic_scheduler", task=name)
        self._running = False
        self._task: Optional[asyncio.Task] = None

    @property
    def is_running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Start the periodic loop"""
        if self._running:
            self._logger.warning("scheduler_already_running")
            return

        self._running = True
        self._task = asyncio.create_task(self._loop())
        self._logger.info(
            "scheduler_started",
            interval_seconds=self.interval_seconds,
        )

    async def stop(self) -> None:
        """Stop the loop, cancelling an in-flight run"""
        if not self._running:
            return

        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        self._logger.info("scheduler_stopped")

    async def _loop(self) -> None:
        loop = asyncio.get_running_loop()
        while self._running:
            started = loop.time()
            try:
                await self.run_cycle()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                self._logger.error(
                    "scheduled_run_failed",
                    error=str(e),
                    error_type=type(e).__name__,
                )

            elapsed = loop.time() - started
            await asyncio.sleep(max(0.0, self.interval_seconds - elapsed))
