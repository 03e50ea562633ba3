"""Audit trail Pydantic schemas."""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class AuditHistoryRequest(BaseModel):
    subject_type: str = Field(..., description="booking, inventory_record or seasonal_rate")
    subject_id: str = Field(..., min_length=1, max_length=128)


class AuditEntry(BaseModel):
    """Audit entry response schema."""

    model_config = ConfigDict(from_attributes=True)

    actor: str
    action: str
    subject_type: str
    subject_id: str
    before_state: Optional[str] = None
    after_state: Optional[str] = None
    details: dict[str, Any]
    created_at: datetime
