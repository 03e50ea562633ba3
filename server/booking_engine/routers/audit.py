"""Audit router for the change history of bookings, inventory and rates."""

from fastapi import APIRouter, Depends

from ..core.clock import Clock
from ..core.dependencies import get_clock, get_current_user, get_unit_of_work
from ..repositories.base import AbstractUnitOfWork
from ..schemas.audit import AuditEntry, AuditHistoryRequest
from ..services.audit_trail import AuditTrail

router = APIRouter(prefix="/v1/audit", tags=["audit"])

UOW_DEPENDENCY = Depends(get_unit_of_work)
CLOCK_DEPENDENCY = Depends(get_clock)
AUTH_DEPENDENCY = Depends(get_current_user)


@router.post("/history", response_model=list[AuditEntry])
async def history(
    request: AuditHistoryRequest,
    uow: AbstractUnitOfWork = UOW_DEPENDENCY,
    clock: Clock = CLOCK_DEPENDENCY,
    current_user: dict = AUTH_DEPENDENCY,
) -> list[AuditEntry]:
    """Audit entries of one subject, oldest first."""
    entries = await AuditTrail(uow, clock).history(request.subject_type, request.subject_id)
    return [AuditEntry.model_validate(entry) for entry in entries]
