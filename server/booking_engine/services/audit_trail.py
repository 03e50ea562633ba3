"""Append-only audit trail for booking and inventory changes."""

import logging
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional
from uuid import UUID

from ..core.clock import Clock, utcnow
from ..models import AuditEntry
from ..repositories.base import AbstractUnitOfWork

logger = logging.getLogger(__name__)

SYSTEM_ACTOR = "system"


def _json_safe(value: Any) -> Any:
    if isinstance(value, dict):
        return {str(key): _json_safe(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_json_safe(item) for item in value]
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (UUID, Decimal)):
        return str(value)
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return value


class AuditTrail:
    """Writes audit entries inside the caller's unit of work."""

    def __init__(self, uow: AbstractUnitOfWork, clock: Clock = utcnow):
        self.uow = uow
        self.clock = clock

    async def record(
        self,
        action: str,
        subject_type: str,
        subject_id: Any,
        actor: Optional[str] = None,
        before_state: Optional[str] = None,
        after_state: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> AuditEntry:
        entry = AuditEntry(
            actor=actor or SYSTEM_ACTOR,
            action=action,
            subject_type=subject_type,
            subject_id=str(subject_id),
            before_state=_json_safe(before_state),
            after_state=_json_safe(after_state),
            details=_json_safe(details or {}),
            created_at=self.clock(),
        )
        async with self.uow:
            await self.uow.audit.append(entry)
        logger.debug(
            "Audit entry recorded",
            extra={"action": action, "subject_type": subject_type, "subject_id": str(subject_id)},
        )
        return entry

    async def history(self, subject_type: str, subject_id: Any) -> list[AuditEntry]:
        async with self.uow:
            return await self.uow.audit.list_for_subject(subject_type, str(subject_id))
