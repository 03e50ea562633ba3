"""Seasonal rate router."""

from fastapi import APIRouter, Depends

from ..core.clock import Clock
from ..core.dependencies import get_clock, get_current_user, get_unit_of_work
from ..repositories.base import AbstractUnitOfWork
from ..schemas.rates import CreateSeasonalRateRequest, SeasonalRate, UpdateSeasonalRateRequest
from ..services.rate_table import SeasonalRateTable

router = APIRouter(prefix="/v1/rates", tags=["rates"])

UOW_DEPENDENCY = Depends(get_unit_of_work)
CLOCK_DEPENDENCY = Depends(get_clock)
AUTH_DEPENDENCY = Depends(get_current_user)


def get_rate_table(
    uow: AbstractUnitOfWork = UOW_DEPENDENCY,
    clock: Clock = CLOCK_DEPENDENCY,
) -> SeasonalRateTable:
    return SeasonalRateTable(uow, clock)


RATE_TABLE_DEPENDENCY = Depends(get_rate_table)


@router.post("/create", response_model=SeasonalRate)
async def create_rate(
    request: CreateSeasonalRateRequest,
    rate_table: SeasonalRateTable = RATE_TABLE_DEPENDENCY,
    current_user: dict = AUTH_DEPENDENCY,
) -> SeasonalRate:
    """Add a seasonal rate. Ranges of the same rate plan may not overlap."""
    rate = await rate_table.add_rate(request, actor=current_user["user_id"])
    return SeasonalRate.model_validate(rate)


@router.post("/update", response_model=SeasonalRate)
async def update_rate(
    request: UpdateSeasonalRateRequest,
    rate_table: SeasonalRateTable = RATE_TABLE_DEPENDENCY,
    current_user: dict = AUTH_DEPENDENCY,
) -> SeasonalRate:
    """Change a seasonal rate; only the fields sent are updated."""
    rate = await rate_table.update_rate(request, actor=current_user["user_id"])
    return SeasonalRate.model_validate(rate)
