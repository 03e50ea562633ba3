"""Booking orchestrator: the booking state machine and its compensations."""

import logging
import secrets
import string
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional
from uuid import UUID, uuid4

from ..core.clock import Clock, utcnow
from ..core.config import PricingConfig, settings
from ..core.exceptions import InsufficientInventory, InvalidTransition, NotFoundError
from ..core.observability import MetricsCollector
from ..core.retry import run_with_conflict_retry
from ..models import Booking, BookingStatus
from ..repositories.base import AbstractUnitOfWork
from ..schemas.booking import CreateBookingRequest
from .audit_trail import AuditTrail
from .availability_resolver import AvailabilityResolver
from .inventory_ledger import InventoryLedger
from .promotion_catalog import PromotionCatalog

logger = logging.getLogger(__name__)

BOOKING_SUBJECT = "booking"
SWEEPER_ACTOR = "reservation_sweeper"
PAYMENT_ACTOR = "payment"
PAYMENT_FAILED_REASON = "payment failed"


def generate_booking_reference(length: int = 8) -> str:
    """Random booking reference, ``BK`` followed by upper-case letters and digits."""
    alphabet = string.ascii_uppercase + string.digits
    return "BK" + "".join(secrets.choice(alphabet) for _ in range(length))


@dataclass
class SweepResult:
    """Outcome of one ``expire_stale_bookings`` batch."""

    candidates: int = 0
    expired: int = 0
    skipped: int = 0
    failed: int = 0


class BookingOrchestrator:
    """
    Drives bookings through pending -> confirmed | cancelled | expired.

    Every transition runs in one unit of work together with its inventory
    move and audit entry, so a failure leaves neither a half-reserved stay nor
    a status that disagrees with the ledger.
    """

    def __init__(
        self,
        uow: AbstractUnitOfWork,
        config: PricingConfig,
        clock: Clock = utcnow,
        expiry_grace: Optional[timedelta] = None,
        max_retries: Optional[int] = None,
        backoff_seconds: Optional[float] = None,
    ):
        self.uow = uow
        self.clock = clock
        self.expiry_grace = expiry_grace or timedelta(minutes=settings.reservation_expiry_minutes)
        self.max_retries = settings.conflict_max_retries if max_retries is None else max_retries
        self.backoff_seconds = settings.conflict_backoff_seconds if backoff_seconds is None else backoff_seconds

        self.resolver = AvailabilityResolver(uow, config, clock)
        self.ledger = InventoryLedger(uow, clock)
        self.promotions = PromotionCatalog(uow, clock)
        self.audit = AuditTrail(uow, clock)

    async def _retrying(self, name: str, operation):
        return await run_with_conflict_retry(
            operation,
            name=name,
            max_retries=self.max_retries,
            backoff_seconds=self.backoff_seconds,
            in_transaction=self.uow.in_transaction,
        )

    async def _lock_booking(self, booking_id: UUID) -> Booking:
        booking = await self.uow.bookings.get_for_update(booking_id)
        if booking is None:
            raise NotFoundError("booking", str(booking_id))
        return booking

    async def create_booking(self, request: CreateBookingRequest, actor: Optional[str] = None) -> Booking:
        """
        Price the stay, persist a pending booking and reserve its rooms.

        Args:
            request: Booking creation request
            actor: Audit actor, defaults to the guest reference

        Returns:
            The pending booking

        Raises:
            NotFoundError: If the rate plan does not exist or is inactive
            ValidationError: If the party does not fit the rooms
            StayRestrictionViolated: If the stay breaks the arrival night's limits
            RateNotDefined: If a night has no rate
            InsufficientInventory: If a night is short; nothing is persisted
        """
        actor = actor or request.guest_ref

        async def attempt() -> Booking:
            async with self.uow:
                option = await self.resolver.check_rate_plan(
                    request.rate_plan_id,
                    request.check_in,
                    request.check_out,
                    adults=request.adults,
                    children=request.children,
                    rooms=request.rooms,
                    promotion_code=request.promotion_code,
                    guest_ref=request.guest_ref,
                )
                quote = option.quote
                now = self.clock()
                booking = Booking(
                    id=uuid4(),
                    reference=generate_booking_reference(),
                    guest_ref=request.guest_ref,
                    rate_plan_id=request.rate_plan_id,
                    check_in=request.check_in,
                    check_out=request.check_out,
                    nights=quote.nights,
                    adults=request.adults,
                    children=request.children,
                    rooms=request.rooms,
                    base_price=quote.base_price,
                    discount_amount=quote.discount_amount,
                    subtotal=quote.subtotal,
                    taxes=quote.taxes,
                    fees=quote.fees,
                    total=quote.total,
                    currency=quote.currency,
                    promotion_id=quote.promotion_id,
                    promotion_code=quote.promotion_code,
                    price_breakdown=[night.model_dump(mode="json") for night in quote.nightly_breakdown],
                    status=BookingStatus.PENDING.value,
                    refund_due=False,
                    cancellation_reason=None,
                    created_at=now,
                    updated_at=now,
                    version=1,
                )
                await self.uow.bookings.add(booking)
                await self.ledger.reserve(booking.id, actor)
                await self.audit.record(
                    "booking_created",
                    BOOKING_SUBJECT,
                    booking.id,
                    actor=actor,
                    after_state=BookingStatus.PENDING,
                    details={
                        "reference": booking.reference,
                        "rate_plan_id": booking.rate_plan_id,
                        "check_in": booking.check_in,
                        "check_out": booking.check_out,
                        "rooms": booking.rooms,
                        "total": booking.total,
                        "promotion_code": booking.promotion_code,
                        "promotion_rejection_reason": quote.promotion_rejection_reason,
                    },
                )
            return booking

        try:
            booking = await self._retrying("create_booking", attempt)
        except InsufficientInventory as exc:
            logger.info(
                "Booking refused for insufficient inventory",
                extra={
                    "guest_ref": request.guest_ref,
                    "rate_plan_id": str(request.rate_plan_id),
                    "date": exc.night.isoformat(),
                },
            )
            raise

        MetricsCollector.record_booking_created(str(booking.rate_plan_id))
        logger.info(
            "Booking created",
            extra={
                "booking_id": str(booking.id),
                "reference": booking.reference,
                "rate_plan_id": str(booking.rate_plan_id),
                "nights": booking.nights,
                "total": str(booking.total),
            },
        )
        return booking

    async def confirm_booking(self, booking_id: UUID, actor: Optional[str] = None) -> Booking:
        """
        Confirm a pending booking after payment.

        Raises:
            NotFoundError: If the booking does not exist
            InvalidTransition: If the booking is not pending
        """
        async def attempt() -> Booking:
            async with self.uow:
                booking = await self._lock_booking(booking_id)
                previous = booking.transition_to(BookingStatus.CONFIRMED, self.clock())
                await self.ledger.confirm_reservation(booking.id, actor)
                redemption = await self.promotions.redeem(booking)
                await self.audit.record(
                    "booking_confirmed",
                    BOOKING_SUBJECT,
                    booking.id,
                    actor=actor,
                    before_state=previous,
                    after_state=BookingStatus.CONFIRMED,
                    details={
                        "reference": booking.reference,
                        "promotion_redeemed": redemption is not None,
                    },
                )
            return booking

        try:
            booking = await self._retrying("confirm_booking", attempt)
        except InvalidTransition as exc:
            logger.error(
                "Illegal booking transition",
                extra={"booking_id": str(booking_id), "from": exc.current, "to": exc.target},
            )
            raise

        MetricsCollector.record_booking_confirmed(str(booking.rate_plan_id))
        logger.info("Booking confirmed", extra={"booking_id": str(booking.id), "reference": booking.reference})
        return booking

    async def cancel_booking(
        self,
        booking_id: UUID,
        reason: Optional[str] = None,
        actor: Optional[str] = None,
    ) -> Booking:
        """
        Cancel a pending or confirmed booking and free its rooms.

        Pending bookings release their reserved rooms; confirmed bookings
        release their booked rooms and owe a refund when the rate plan is
        refundable. Cancelling a cancelled booking returns it unchanged.
        Conflicts are not retried: a failed release leaves the booking and the
        ledger untouched and is re-raised.

        Raises:
            NotFoundError: If the booking does not exist
            InvalidTransition: If the booking has expired
        """
        try:
            async with self.uow:
                booking = await self._lock_booking(booking_id)
                if booking.current_status == BookingStatus.CANCELLED:
                    logger.info("Booking already cancelled", extra={"booking_id": str(booking_id)})
                    return booking

                previous = booking.transition_to(BookingStatus.CANCELLED, self.clock())
                if previous == BookingStatus.PENDING:
                    await self.ledger.release(booking.id, actor)
                else:
                    await self.ledger.release_booked(booking.id, actor)
                    rate_plan = await self.uow.rate_plans.get(booking.rate_plan_id)
                    booking.refund_due = bool(rate_plan and rate_plan.refundable)
                booking.cancellation_reason = reason

                await self.audit.record(
                    "booking_cancelled",
                    BOOKING_SUBJECT,
                    booking.id,
                    actor=actor,
                    before_state=previous,
                    after_state=BookingStatus.CANCELLED,
                    details={"reason": reason, "refund_due": booking.refund_due},
                )
        except InvalidTransition as exc:
            logger.error(
                "Illegal booking transition",
                extra={"booking_id": str(booking_id), "from": exc.current, "to": exc.target},
            )
            raise
        except NotFoundError:
            raise
        except Exception:
            logger.error(
                "Booking cancellation failed, inventory left as it was",
                exc_info=True,
                extra={"booking_id": str(booking_id)},
            )
            raise

        MetricsCollector.record_booking_cancelled(previous.value)
        logger.info(
            "Booking cancelled",
            extra={"booking_id": str(booking.id), "from_status": previous.value, "refund_due": booking.refund_due},
        )
        return booking

    async def expire_booking(
        self,
        booking_id: UUID,
        now: Optional[datetime] = None,
        actor: str = SWEEPER_ACTOR,
    ) -> Optional[Booking]:
        """
        Expire a pending booking older than the grace period and release its rooms.

        The status is re-read under the row lock, so a booking confirmed or
        cancelled in the meantime is left alone.

        Returns:
            The expired booking, or None when it was not expirable
        """
        now = now or self.clock()
        cutoff = now - self.expiry_grace

        async with self.uow:
            booking = await self._lock_booking(booking_id)
            if booking.current_status != BookingStatus.PENDING or booking.created_at >= cutoff:
                logger.debug(
                    "Booking not expirable",
                    extra={"booking_id": str(booking_id), "status": booking.current_status.value},
                )
                return None

            previous = booking.transition_to(BookingStatus.EXPIRED, now)
            await self.ledger.release(booking.id, actor)
            await self.audit.record(
                "booking_expired",
                BOOKING_SUBJECT,
                booking.id,
                actor=actor,
                before_state=previous,
                after_state=BookingStatus.EXPIRED,
                details={
                    "created_at": booking.created_at,
                    "grace_minutes": int(self.expiry_grace.total_seconds() // 60),
                },
            )

        MetricsCollector.record_booking_expired()
        logger.info("Booking expired", extra={"booking_id": str(booking.id), "reference": booking.reference})
        return booking

    async def expire_stale_bookings(self, now: Optional[datetime] = None, batch_size: int = 100) -> SweepResult:
        """
        Expire up to ``batch_size`` stale pending bookings, each in its own unit of work.

        A failing booking is logged and counted and does not stop the batch.
        """
        now = now or self.clock()
        async with self.uow:
            candidates = await self.uow.bookings.list_stale_pending(now - self.expiry_grace, batch_size)

        result = SweepResult(candidates=len(candidates))
        for booking_id in candidates:
            try:
                expired = await self.expire_booking(booking_id, now)
            except Exception:
                result.failed += 1
                logger.error(
                    "Failed to expire booking",
                    exc_info=True,
                    extra={"booking_id": str(booking_id)},
                )
                continue
            if expired is None:
                result.skipped += 1
            else:
                result.expired += 1
        return result

    async def handle_payment_result(
        self,
        booking_id: UUID,
        succeeded: bool,
        actor: str = PAYMENT_ACTOR,
    ) -> Booking:
        """Confirm on payment success, cancel with reason "payment failed" otherwise."""
        if succeeded:
            return await self.confirm_booking(booking_id, actor)
        return await self.cancel_booking(booking_id, reason=PAYMENT_FAILED_REASON, actor=actor)

    async def get_booking(self, booking_id: UUID) -> Booking:
        async with self.uow:
            booking = await self.uow.bookings.get(booking_id)
        if booking is None:
            raise NotFoundError("booking", str(booking_id))
        return booking

    async def get_booking_by_reference(self, reference: str) -> Booking:
        async with self.uow:
            booking = await self.uow.bookings.get_by_reference(reference)
        if booking is None:
            raise NotFoundError("booking", reference)
        return booking
