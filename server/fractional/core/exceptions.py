"""Custom exceptions following RFC 9457 Problem Details for HTTP APIs."""

from typing import Any, Dict, Optional
from fastapi import HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
import uuid
from datetime import datetime


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
        self.detail = detail
        self.type_uri = type_uri or f"about:blank#{status_code}"
        self.instance = instance
        self.extensions = extensions or {}

        # Create the problem details object
        self.problem_details = {
            "type": self.type_uri,
            "title": self.title,
            "status": self.status_code,
        }

        if self.detail:
            self.problem_details["detail"] = self.detail

        if self.instance:
            self.problem_details["instance"] = self.instance

        # Add extensions
        self.problem_details.update(self.extensions)

        super().__init__(
            status_code=status_code,
            detail=self.problem_details,
            headers=headers
        )

    @property
    def error_kind(self) -> Optional[str]:
        """Machine-readable error code, when the problem carries one."""
        return self.problem_details.get("code")


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
            status_code=422,
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
        scheme: str = "Signature",
        instance: Optional[str] = None,
    ):
        super().__init__(
            status_code=401,
            title="Authentication Required",
            detail=detail,
            type_uri="https://example.com/problems/authentication-required",
            instance=instance,
            headers={"WWW-Authenticate": scheme},
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


class InternalServerError(ProblemDetailsException):
    """Exception for internal server errors."""

    def __init__(
        self,
        detail: str = "An unexpected error occurred while processing the request",
        error_id: Optional[str] = None,
        instance: Optional[str] = None,
    ):
        if not error_id:
            error_id = str(uuid.uuid4())

        extensions = {
            "error_id": error_id,
            "timestamp": datetime.utcnow().isoformat() + "Z",
        }

        super().__init__(
            status_code=500,
            title="Internal Server Error",
            detail=detail,
            type_uri="https://example.com/problems/internal-server-error",
            instance=instance,
            extensions=extensions,
        )


# Business logic exceptions

class InvalidEventError(ValidationError):
    """Exception when a payment event lacks the fields its purpose requires."""

    def __init__(self, detail: str, external_id: Optional[str] = None):
        super().__init__(detail=detail)
        self.problem_details.update({
            "code": "InvalidEvent",
            "retryable": False,
        })
        if external_id:
            self.problem_details["external_id"] = external_id


class InvalidSignatureError(AuthenticationError):
    """Exception when a payment event fails signature verification."""

    def __init__(self, provider: str, detail: Optional[str] = None):
        super().__init__(
            detail=detail or f"Payment event signature for provider {provider} is missing or invalid"
        )
        self.problem_details.update({
            "code": "InvalidSignature",
            "retryable": False,
            "provider": provider,
        })


class CollectionNotFoundError(NotFoundError):
    """Exception when a property collection does not exist."""

    def __init__(self, collection_id: int):
        super().__init__(resource_type="collection", resource_id=str(collection_id))
        self.problem_details.update({
            "code": "CollectionNotFound",
            "retryable": False,
        })


class UnitNotFoundError(NotFoundError):
    """Exception when a unit does not exist."""

    def __init__(self, unit_id: int):
        super().__init__(resource_type="unit", resource_id=str(unit_id))
        self.problem_details.update({
            "code": "UnitNotFound",
            "retryable": False,
        })


class PricingTierNotFoundError(NotFoundError):
    """Exception when a pricing tier does not exist or belongs to another collection."""

    def __init__(self, pricing_tier_id: int, collection_id: Optional[int] = None):
        detail = None
        if collection_id is not None:
            detail = f"Pricing tier '{pricing_tier_id}' does not exist in collection '{collection_id}'"
        super().__init__(
            resource_type="pricing_tier",
            resource_id=str(pricing_tier_id),
            detail=detail,
        )
        self.problem_details.update({
            "code": "PricingTierNotFound",
            "retryable": False,
        })


class BookingNotFoundError(NotFoundError):
    """Exception when a booking does not exist."""

    def __init__(self, booking_id: int):
        super().__init__(resource_type="booking", resource_id=str(booking_id))
        self.problem_details.update({
            "code": "BookingNotFound",
            "retryable": False,
        })


class PaymentNotFoundError(NotFoundError):
    """Exception when no payment was recorded for an external id."""

    def __init__(self, external_id: str):
        super().__init__(resource_type="payment", resource_id=external_id)
        self.problem_details.update({
            "code": "PaymentNotFound",
            "retryable": False,
        })


class CapacityExceededError(ConflictError):
    """Exception when recording a share would push a unit past 100% ownership."""

    def __init__(self, unit_id: int, requested_basis_points: int, available_basis_points: int):
        super().__init__(
            detail=(
                f"Unit {unit_id} has insufficient capacity. "
                f"Requested: {requested_basis_points} bp, Available: {available_basis_points} bp"
            ),
            conflicting_resource={
                "unit_id": unit_id,
                "requested_basis_points": requested_basis_points,
                "available_basis_points": available_basis_points,
            }
        )
        self.problem_details.update({
            "code": "CapacityExceeded",
            "retryable": False,
        })


class SoldOutError(ConflictError):
    """Exception when no unit in a collection can absorb the requested share."""

    def __init__(self, collection_id: int, requested_basis_points: int):
        super().__init__(
            detail=(
                f"No unit in collection {collection_id} has {requested_basis_points} bp "
                f"of capacity remaining"
            ),
            conflicting_resource={
                "collection_id": collection_id,
                "requested_basis_points": requested_basis_points,
            }
        )
        self.problem_details.update({
            "code": "SoldOut",
            "retryable": False,
        })


class UnitsUnavailableError(ConflictError):
    """Exception when a collection cannot supply enough free units for a stay."""

    def __init__(self, collection_id: int, units_required: int, units_available: int):
        super().__init__(
            detail=(
                f"Collection {collection_id} has {units_available} unit(s) free for the requested dates, "
                f"{units_required} required"
            ),
            conflicting_resource={
                "collection_id": collection_id,
                "units_required": units_required,
                "units_available": units_available,
            }
        )
        self.problem_details.update({
            "code": "UnitsUnavailable",
            "retryable": False,
        })


class InvalidBookingStateError(ConflictError):
    """Exception when a booking payment arrives for a booking not awaiting payment."""

    def __init__(self, booking_id: int, status: str):
        super().__init__(
            detail=f"Booking {booking_id} is not awaiting payment (status: {status})"
        )
        self.problem_details.update({
            "code": "InvalidBookingState",
            "retryable": False,
            "booking_id": booking_id,
            "booking_status": status,
        })


class InvalidBookingTransitionError(ConflictError):
    """Exception when a booking status change is not allowed from its current status."""

    def __init__(self, booking_id: int, current_status: str, target_status: str):
        super().__init__(
            detail=f"Booking {booking_id} cannot move from {current_status} to {target_status}"
        )
        self.problem_details.update({
            "code": "InvalidBookingTransition",
            "retryable": False,
            "booking_id": booking_id,
            "current_status": current_status,
            "target_status": target_status,
        })


class AllocationFailedAfterPaymentError(ConflictError):
    """
    Exception when a payment was recorded but its allocation could not be applied.

    The payment row exists and the domain effect is missing. This needs operator
    reconciliation and is never retried automatically.
    """

    def __init__(self, external_id: str, reason: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(
            detail=f"Payment {external_id} was recorded but could not be applied: {reason}",
            conflicting_resource=context,
        )
        self.problem_details.update({
            "code": "AllocationFailedAfterPayment",
            "retryable": False,
            "external_id": external_id,
            "reason": reason,
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
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.problem_details,
        headers=exc.headers,
    )


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Render request body validation failures as Problem Details with violations."""
    violations = [
        {
            "path": ".".join(str(part) for part in error.get("loc", ())),
            "message": error.get("msg", "Invalid value"),
        }
        for error in exc.errors()
    ]
    return JSONResponse(
        status_code=422,
        content={
            "type": "https://example.com/problems/validation-error",
            "title": "Validation Error",
            "status": 422,
            "detail": "The request data failed validation",
            "instance": str(request.url),
            "code": "InvalidEvent" if request.url.path.startswith("/v1/payments") else "ValidationError",
            "violations": violations,
        },
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

    problem_details = {
        "type": "https://example.com/problems/internal-server-error",
        "title": "Internal Server Error",
        "status": 500,
        "detail": "An unexpected error occurred while processing the request",
        "instance": str(request.url),
        "error_id": error_id,
        "timestamp": datetime.utcnow().isoformat() + "Z",
    }

    return JSONResponse(
        status_code=500,
        content=problem_details,
    )
