"""Background workers for the booking engine."""

from .reservation_sweeper import ReservationSweeper

__all__ = ["ReservationSweeper"]
