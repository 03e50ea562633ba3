"""Models module exporting all database models."""

from .audit import AuditEntry
from .booking import ALLOWED_TRANSITIONS, Booking, BookingStatus
from .inventory import AllocationStatus, InventoryAllocation, InventoryRecord
from .promotion import DiscountType, Promotion, PromotionRedemption, PromotionTarget
from .rate_plan import RatePlan
from .seasonal_rate import SeasonalRate

__all__ = [
    # Catalog entities
    "RatePlan",
    "SeasonalRate",

    # Inventory entities
    "InventoryRecord",
    "InventoryAllocation",
    "AllocationStatus",

    # Promotion entities
    "Promotion",
    "PromotionRedemption",
    "DiscountType",
    "PromotionTarget",

    # Booking entities
    "Booking",
    "BookingStatus",
    "ALLOWED_TRANSITIONS",

    # Audit entity
    "AuditEntry",
]
