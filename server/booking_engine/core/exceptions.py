"""Custom exceptions following RFC 9457 Problem Details for HTTP APIs."""

from typing import Any, Dict, Optional
from fastapi import HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
import logging
import uuid
from datetime import date, datetime, timezone


logger = logging.getLogger(__name__)


class ProblemDetailsException(HTTPException):
    """
    Base exception class following RFC 9457 Problem Details for HTTP APIs.

    https://tools.ietf.org/rfc/rfc9457.txt
    """

    def __init__(
        self,
        status_code: int,
        title: str,
        detail: Optional[str] = None,
        type_uri: Optional[str] = None,
        instance: Optional[str] = None,
        extensions: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ):
        """
        Initialize Problem Details exception.

        Args:
            status_code: HTTP status code
            title: Short, human-readable summary of the problem type
            detail: Human-readable explanation specific to this occurrence
            type_uri: URI reference that identifies the problem type
            instance: URI reference that identifies the specific occurrence
            extensions: Additional problem-specific information
            headers: HTTP headers to include in response
        """
        self.status_code = status_code
        self.title = title
        self.type_uri = type_uri or f"about:blank#{status_code}"
        self.instance = instance
        self.extensions = extensions or {}

        self.problem_details = {
            "type": self.type_uri,
            "title": self.title,
            "status": self.status_code,
        }

        if detail:
            self.problem_details["detail"] = detail

        if self.instance:
            self.problem_details["instance"] = self.instance

        self.problem_details.update(self.extensions)

        super().__init__(
            status_code=status_code,
            detail=self.problem_details,
            headers=headers
        )

    @property
    def code(self) -> Optional[str]:
        """Machine-readable error code, when the problem type defines one."""
        return self.problem_details.get("code")

    @property
    def retryable(self) -> bool:
        """Whether the caller may retry the same request unchanged."""
        return bool(self.problem_details.get("retryable", False))


class ValidationError(ProblemDetailsException):
    """Exception for request validation errors."""

    def __init__(
        self,
        detail: str = "The request data failed validation",
        errors: Optional[Dict[str, Any]] = None,
        instance: Optional[str] = None,
    ):
        extensions = {}
        if errors:
            extensions["errors"] = errors

        super().__init__(
            status_code=400,
            title="Validation Error",
            detail=detail,
            type_uri="https://example.com/problems/validation-error",
            instance=instance,
            extensions=extensions,
        )


class AuthenticationError(ProblemDetailsException):
    """Exception for authentication errors."""

    def __init__(
        self,
        detail: str = "Authentication credentials are required",
        instance: Optional[str] = None,
    ):
        super().__init__(
            status_code=401,
            title="Authentication Required",
            detail=detail,
            type_uri="https://example.com/problems/authentication-required",
            instance=instance,
            headers={"WWW-Authenticate": "Bearer"},
        )


class NotFoundError(ProblemDetailsException):
    """Exception for resource not found errors."""

    def __init__(
        self,
        resource_type: str = "resource",
        resource_id: Optional[str] = None,
        detail: Optional[str] = None,
        instance: Optional[str] = None,
    ):
        if not detail:
            detail = f"The requested {resource_type}"
            if resource_id:
                detail += f" with ID '{resource_id}'"
            detail += " could not be found"

        extensions = {
            "resource_type": resource_type,
        }
        if resource_id:
            extensions["resource_id"] = resource_id

        super().__init__(
            status_code=404,
            title="Resource Not Found",
            detail=detail,
            type_uri="https://example.com/problems/resource-not-found",
            instance=instance,
            extensions=extensions,
        )


class ConflictError(ProblemDetailsException):
    """Exception for resource conflict errors."""

    def __init__(
        self,
        detail: str = "The request conflicts with the current state of the resource",
        conflicting_resource: Optional[Dict[str, Any]] = None,
        instance: Optional[str] = None,
    ):
        extensions = {}
        if conflicting_resource:
            extensions["conflicting_resource"] = conflicting_resource

        super().__init__(
            status_code=409,
            title="Resource Conflict",
            detail=detail,
            type_uri="https://example.com/problems/resource-conflict",
            instance=instance,
            extensions=extensions,
        )


class UnprocessableError(ProblemDetailsException):
    """Exception for well-formed requests the engine cannot fulfil."""

    def __init__(
        self,
        title: str,
        detail: str,
        type_slug: str,
        instance: Optional[str] = None,
    ):
        super().__init__(
            status_code=422,
            title=title,
            detail=detail,
            type_uri=f"https://example.com/problems/{type_slug}",
            instance=instance,
        )


# Engine exceptions

class InsufficientInventory(ConflictError):
    """Raised when a night of the stay cannot cover the requested rooms."""

    def __init__(self, rate_plan_id: Any, night: date, requested: int, available: int):
        super().__init__(detail="The selected dates are no longer available")
        self.rate_plan_id = rate_plan_id
        self.night = night
        self.requested = requested
        self.available = available
        self.problem_details.update({
            "code": "INSUFFICIENT_INVENTORY",
            "retryable": False,
            "date": night.isoformat(),
        })


class PersistenceConflict(ConflictError):
    """Raised when a concurrent writer won a race on the same row."""

    def __init__(self, detail: str = "The resource was modified concurrently, please retry"):
        super().__init__(detail=detail)
        self.problem_details.update({
            "code": "PERSISTENCE_CONFLICT",
            "retryable": True,
        })


class InvalidTransition(ConflictError):
    """Raised when a booking is asked to move to a state its current state forbids."""

    def __init__(self, booking_id: Any, current: str, target: str):
        super().__init__(detail=f"Booking cannot move from {current} to {target}")
        self.booking_id = booking_id
        self.current = current
        self.target = target
        self.problem_details.update({
            "code": "INVALID_TRANSITION",
            "retryable": False,
            "current_status": current,
            "target_status": target,
        })


class CapacityConflict(ConflictError):
    """Raised when an inventory adjustment would drop below committed rooms."""

    def __init__(self, night: date, requested_total: int, committed: int):
        super().__init__(
            detail=f"Capacity for {night.isoformat()} cannot drop below {committed} committed rooms"
        )
        self.problem_details.update({
            "code": "CAPACITY_CONFLICT",
            "retryable": False,
            "requested_total": requested_total,
            "committed_rooms": committed,
        })


class RateNotDefined(UnprocessableError):
    """Raised when no seasonal rate covers a night of the stay."""

    def __init__(self, rate_plan_id: Any, night: date):
        super().__init__(
            title="Rate Not Defined",
            detail="No rate is available for the selected dates",
            type_slug="rate-not-defined",
        )
        self.rate_plan_id = rate_plan_id
        self.night = night
        self.problem_details.update({
            "code": "RATE_NOT_DEFINED",
            "retryable": False,
        })


class ExchangeRateNotDefined(UnprocessableError):
    """Raised when a currency conversion has no configured rate."""

    def __init__(self, from_currency: str, to_currency: str):
        super().__init__(
            title="Exchange Rate Not Defined",
            detail=f"No exchange rate from {from_currency} to {to_currency}",
            type_slug="exchange-rate-not-defined",
        )
        self.problem_details.update({
            "code": "EXCHANGE_RATE_NOT_DEFINED",
            "retryable": False,
        })


class InvalidPromotion(UnprocessableError):
    """Raised when a promotion code cannot be applied to the stay."""

    def __init__(self, code: str, reason: str):
        super().__init__(
            title="Invalid Promotion",
            detail=f"Promotion code {code} cannot be applied: {reason}",
            type_slug="invalid-promotion",
        )
        self.reason = reason
        self.problem_details.update({
            "code": "INVALID_PROMOTION",
            "retryable": False,
            "reason": reason,
        })


class StayRestrictionViolated(UnprocessableError):
    """Raised when the stay length is outside the arrival night's min/max stay."""

    def __init__(self, nights: int, min_stay: int, max_stay: Optional[int]):
        if nights < min_stay:
            detail = f"A minimum stay of {min_stay} nights is required"
        else:
            detail = f"A maximum stay of {max_stay} nights is allowed"
        super().__init__(
            title="Stay Restriction Violated",
            detail=detail,
            type_slug="stay-restriction",
        )
        self.problem_details.update({
            "code": "STAY_RESTRICTION",
            "retryable": False,
            "min_stay": min_stay,
            "max_stay": max_stay,
        })


class SeasonalRateOverlap(ValidationError):
    """Raised when a seasonal rate range overlaps an existing one for the same plan."""

    def __init__(self, existing_name: str, start: date, end: date):
        super().__init__(
            detail=f"Rate period overlaps '{existing_name}' ({start.isoformat()} to {end.isoformat()})"
        )
        self.problem_details.update({
            "code": "RATE_OVERLAP",
            "retryable": False,
        })


async def problem_details_handler(request: Request, exc: ProblemDetailsException) -> JSONResponse:
    """
    Exception handler for Problem Details exceptions.

    Args:
        request: FastAPI request object
        exc: Problem Details exception

    Returns:
        JSONResponse: Problem Details formatted response
    """
    content = dict(exc.problem_details)
    content.setdefault("instance", request.url.path)
    return JSONResponse(
        status_code=exc.status_code,
        content=content,
        headers=exc.headers,
        media_type="application/problem+json",
    )


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Render request body validation failures as Problem Details with violations."""
    violations = [
        {
            "path": ".".join(str(part) for part in error["loc"] if part != "body") or "body",
            "message": error["msg"],
        }
        for error in exc.errors()
    ]
    logger.info("Request validation failed", extra={"path": request.url.path, "violations": len(violations)})
    return JSONResponse(
        status_code=422,
        content={
            "type": "https://example.com/problems/validation-error",
            "title": "Validation Error",
            "status": 422,
            "detail": "The request data failed validation",
            "instance": request.url.path,
            "code": "REQUEST_INVALID",
            "retryable": False,
            "violations": violations,
        },
        media_type="application/problem+json",
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Generic exception handler that converts unhandled exceptions to Problem Details format.

    Args:
        request: FastAPI request object
        exc: Unhandled exception

    Returns:
        JSONResponse: Problem Details formatted response
    """
    error_id = str(uuid.uuid4())
    logger.exception(
        "Unhandled exception",
        extra={"error_id": error_id, "path": request.url.path},
    )

    problem_details = {
        "type": "https://example.com/problems/internal-server-error",
        "title": "Internal Server Error",
        "status": 500,
        "detail": "An unexpected error occurred while processing the request",
        "instance": str(request.url),
        "error_id": error_id,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }

    return JSONResponse(
        status_code=500,
        content=problem_details,
        media_type="application/problem+json",
    )
