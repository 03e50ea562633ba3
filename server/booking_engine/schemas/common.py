"""Common Pydantic schemas."""

from datetime import date
from typing import List, Optional

from pydantic import BaseModel, Field, model_validator


class Violation(BaseModel):
    """Validation error violation."""

    path: str = Field(..., description="JSON path to the invalid field")
    message: str = Field(..., description="Validation error message")


class Problem(BaseModel):
    """RFC 9457 Problem Details response."""

    type: Optional[str] = Field(None, description="Problem type URI")
    title: str = Field(..., description="Short human-readable summary")
    status: int = Field(..., description="HTTP status code")
    detail: Optional[str] = Field(None, description="Human-readable explanation")
    instance: Optional[str] = Field(None, description="URI reference for this occurrence")
    code: Optional[str] = Field(None, description="Application-specific error code")
    retryable: Optional[bool] = Field(None, description="Whether the operation can be retried")
    violations: Optional[List[Violation]] = Field(None, description="Validation errors")


class StayDates(BaseModel):
    """Arrival and departure dates; the departure date is not a stay night."""

    check_in: date = Field(..., description="Arrival date")
    check_out: date = Field(..., description="Departure date, exclusive")

    @model_validator(mode="after")
    def check_out_after_check_in(self):
        if self.check_out <= self.check_in:
            raise ValueError("check_out must be after check_in")
        return self

    @property
    def nights(self) -> int:
        return (self.check_out - self.check_in).days


class DateRange(BaseModel):
    """Inclusive calendar range."""

    start_date: date = Field(..., description="First date (inclusive)")
    end_date: date = Field(..., description="Last date (inclusive)")

    @model_validator(mode="after")
    def end_not_before_start(self):
        if self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        if (self.end_date - self.start_date).days > 366:
            raise ValueError("range must not exceed 366 days")
        return self
