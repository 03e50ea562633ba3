"""Base worker class for periodic background tasks."""

import asyncio
import time
from abc import ABC, abstractmethod
from typing import Optional

from ..core.observability import get_logger

logger = get_logger(__name__)


class BaseWorker(ABC):
    """
    Abstract base class for background workers.

    Runs ``process`` every ``interval_seconds`` until stopped. An iteration
    that raises is logged and the loop carries on after one interval.
    """

    def __init__(self, name: str, interval_seconds: float = 60):
        """
        Initialize the worker.

        Args:
            name: Worker name for logging
            interval_seconds: How often to run the task
        """
        self.name = name
        self.interval_seconds = interval_seconds
        self._running = False
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._running

    @abstractmethod
    async def process(self) -> None:
        """Process one iteration of the background task."""

    async def start(self) -> None:
        """Start the worker."""
        if self._running:
            logger.warning("worker_already_running", worker=self.name)
            return

        self._running = True
        self._task = asyncio.create_task(self._run())
        logger.info("worker_started", worker=self.name, interval_seconds=self.interval_seconds)

    async def stop(self) -> None:
        """Stop the worker, cancelling a sleeping or running iteration."""
        if not self._running:
            logger.warning("worker_not_running", worker=self.name)
            return

        self._running = False

        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

        logger.info("worker_stopped", worker=self.name)

    async def _run(self) -> None:
        """Main worker loop."""
        while self._running:
            try:
                started = time.monotonic()
                await self.process()
                duration = time.monotonic() - started
                logger.debug("worker_iteration_completed", worker=self.name, duration_seconds=round(duration, 3))

                sleep_time = max(0, self.interval_seconds - duration)
                if sleep_time > 0:
                    await asyncio.sleep(sleep_time)

            except asyncio.CancelledError:
                logger.info("worker_loop_cancelled", worker=self.name)
                break
            except Exception as e:
                logger.error("worker_iteration_failed", worker=self.name, error=str(e), exc_info=True)
                await asyncio.sleep(self.interval_seconds)
