"""Service layer package."""

from .audit_trail import AuditTrail
from .availability_resolver import AvailabilityResolver
from .booking_orchestrator import BookingOrchestrator
from .inventory_ledger import InventoryLedger
from .pricing_engine import PricingEngine
from .promotion_catalog import PromotionCatalog
from .rate_table import SeasonalRateTable

__all__ = [
    "AuditTrail",
    "AvailabilityResolver",
    "BookingOrchestrator",
    "InventoryLedger",
    "PricingEngine",
    "PromotionCatalog",
    "SeasonalRateTable",
]
