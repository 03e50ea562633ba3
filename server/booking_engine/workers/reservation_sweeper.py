"""Background worker that expires pending bookings past their grace period."""

from collections.abc import Callable
from datetime import timedelta
from typing import Optional

from ..core.clock import Clock, utcnow
from ..core.config import PricingConfig
from ..core.observability import MetricsCollector, get_logger
from ..repositories.base import AbstractUnitOfWork
from ..services.booking_orchestrator import BookingOrchestrator, SweepResult
from .base import BaseWorker

logger = get_logger(__name__)


class ReservationSweeper(BaseWorker):
    """
    Releases the rooms of bookings that stayed pending too long.

    Each run expires at most ``batch_size`` bookings, oldest first; the rest
    are picked up by the following runs.
    """

    def __init__(
        self,
        uow_factory: Callable[[], AbstractUnitOfWork],
        config: PricingConfig,
        clock: Clock = utcnow,
        interval_seconds: float = 60,
        batch_size: int = 100,
        expiry_grace: Optional[timedelta] = None,
    ):
        super().__init__(name="reservation_sweeper", interval_seconds=interval_seconds)
        self.uow_factory = uow_factory
        self.config = config
        self.clock = clock
        self.batch_size = batch_size
        self.expiry_grace = expiry_grace
        self.last_result: Optional[SweepResult] = None

    async def run_once(self) -> SweepResult:
        """Expire one batch and report what happened."""
        orchestrator = BookingOrchestrator(
            self.uow_factory(),
            self.config,
            self.clock,
            expiry_grace=self.expiry_grace,
        )
        result = await orchestrator.expire_stale_bookings(self.clock(), self.batch_size)

        MetricsCollector.record_sweeper_run("ok" if result.failed == 0 else "partial")
        if result.candidates:
            logger.info(
                "stale_bookings_swept",
                worker=self.name,
                candidates=result.candidates,
                expired=result.expired,
                skipped=result.skipped,
                failed=result.failed,
            )
        self.last_result = result
        return result

    async def process(self) -> None:
        await self.run_once()
