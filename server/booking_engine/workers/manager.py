"""Worker manager for coordinating background tasks."""

import asyncio
from typing import Dict

from ..core.config import settings
from ..core.database import async_session_factory
from ..core.observability import get_logger
from ..repositories.sql import SqlAlchemyUnitOfWork
from .base import BaseWorker
from .reservation_sweeper import ReservationSweeper

logger = get_logger(__name__)


class WorkerManager:
    """Starts, stops and reports on the application's background workers."""

    def __init__(self):
        self.workers: Dict[str, BaseWorker] = {}
        self._setup_workers()

    def _setup_workers(self) -> None:
        self.workers["reservation_sweeper"] = ReservationSweeper(
            uow_factory=lambda: SqlAlchemyUnitOfWork(async_session_factory),
            config=settings.pricing_config(),
            interval_seconds=settings.sweeper_interval_seconds,
            batch_size=settings.sweeper_batch_size,
        )
        logger.info("workers_initialized", count=len(self.workers))

    async def start_all(self) -> None:
        """Start all workers."""
        for name, worker in self.workers.items():
            try:
                await worker.start()
            except Exception as e:
                logger.error("worker_start_failed", worker=name, error=str(e), exc_info=True)

    async def stop_all(self) -> None:
        """Stop all workers gracefully."""
        results = await asyncio.gather(
            *(worker.stop() for worker in self.workers.values()),
            return_exceptions=True,
        )
        for name, result in zip(self.workers.keys(), results):
            if isinstance(result, Exception):
                logger.error("worker_stop_failed", worker=name, error=str(result))

    def get_worker_status(self) -> Dict[str, bool]:
        """Running status of every worker by name."""
        return {name: worker.running for name, worker in self.workers.items()}


# Global worker manager instance
worker_manager = WorkerManager()
