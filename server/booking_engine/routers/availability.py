"""Availability router for stay searches."""

from fastapi import APIRouter, Depends

from ..core.clock import Clock
from ..core.config import PricingConfig
from ..core.dependencies import get_clock, get_pricing_config, get_unit_of_work
from ..repositories.base import AbstractUnitOfWork
from ..schemas.availability import (
    AvailabilityCheckRequest,
    AvailabilityOption,
    AvailabilitySearchRequest,
    AvailabilitySearchResponse,
)
from ..services.availability_resolver import AvailabilityResolver

router = APIRouter(prefix="/v1/availability", tags=["availability"])

UOW_DEPENDENCY = Depends(get_unit_of_work)
PRICING_DEPENDENCY = Depends(get_pricing_config)
CLOCK_DEPENDENCY = Depends(get_clock)


def get_resolver(
    uow: AbstractUnitOfWork = UOW_DEPENDENCY,
    config: PricingConfig = PRICING_DEPENDENCY,
    clock: Clock = CLOCK_DEPENDENCY,
) -> AvailabilityResolver:
    return AvailabilityResolver(uow, config, clock)


RESOLVER_DEPENDENCY = Depends(get_resolver)


@router.post("/search", response_model=AvailabilitySearchResponse)
async def search_availability(
    request: AvailabilitySearchRequest,
    resolver: AvailabilityResolver = RESOLVER_DEPENDENCY,
) -> AvailabilitySearchResponse:
    """Priced, bookable rate plans for the stay, cheapest first."""
    return await resolver.search(request)


@router.post("/check", response_model=AvailabilityOption)
async def check_availability(
    request: AvailabilityCheckRequest,
    resolver: AvailabilityResolver = RESOLVER_DEPENDENCY,
) -> AvailabilityOption:
    """Price one rate plan for the stay, or report why it cannot be booked."""
    return await resolver.check(request)
