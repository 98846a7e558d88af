"""Payment router: inbound payment events and reconciliation."""

import logging

from fastapi import APIRouter, Depends, Header
from fastapi.responses import JSONResponse
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.clock import utcnow
from ..core.database import get_db
from ..core.dependencies import get_verified_event_body
from ..core.exceptions import InternalServerError, InvalidEventError, ProblemDetailsException
from ..schemas.common import Problem
from ..schemas.payment import (
    ListUnappliedPaymentsRequest,
    ListUnappliedPaymentsResponse,
    PaymentEvent,
    ReplayPaymentRequest,
    SettlementResult,
    UnappliedPayment,
)
from ..services.reconciliation_service import ReconciliationService
from ..services.settlement_dispatcher import SettlementDispatcher

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/payments", tags=["payments"])

# Define dependencies to avoid B008 linting errors
DB_DEPENDENCY = Depends(get_db)
VERIFIED_BODY_DEPENDENCY = Depends(get_verified_event_body)
PROVIDER_HEADER = Header(..., alias="X-Payment-Provider")

# HTTP status for an unsuccessful settlement, by error kind; anything else is a 409
SETTLEMENT_ERROR_STATUS = {
    "InvalidEvent": 422,
    "CollectionNotFound": 404,
    "PricingTierNotFound": 404,
    "BookingNotFound": 404,
}


def _parse_event(body: bytes, provider: str) -> PaymentEvent:
    """Parse a verified body into a payment event from the signing provider."""
    try:
        event = PaymentEvent.model_validate_json(body)
    except PydanticValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(part) for part in error['loc']) or 'body'}: {error['msg']}"
            for error in e.errors()
        )
        raise InvalidEventError(detail=f"Payment event failed validation: {problems}")

    if event.provider.value != provider.upper():
        raise InvalidEventError(
            detail=f"Event provider {event.provider.value} does not match signing provider {provider}",
            external_id=event.external_id
        )
    return event


@router.post(
    "/event",
    response_model=SettlementResult,
    responses={401: {"model": Problem}, 422: {"model": Problem}},
)
async def receive_payment_event(
    body: bytes = VERIFIED_BODY_DEPENDENCY,
    provider: str = PROVIDER_HEADER,
    db: AsyncSession = DB_DEPENDENCY
) -> JSONResponse:
    """
    Settle a signed payment event from any payment rail.

    Redelivered events answer 200 with ``duplicate`` set and change nothing.
    A payment that was recorded but could not be applied answers 409 with
    ``error_kind`` AllocationFailedAfterPayment.
    """
    event = _parse_event(body, provider)
    dispatcher = SettlementDispatcher(db)

    try:
        result = await dispatcher.dispatch(event, as_of=utcnow())
    except ProblemDetailsException:
        raise
    except Exception as e:
        logger.error(
            "Unexpected error settling payment event",
            extra={
                "external_id": event.external_id,
                "provider": event.provider,
                "purpose": event.purpose,
                "error": str(e)
            },
            exc_info=True
        )
        raise InternalServerError()

    status_code = 200 if result.success else SETTLEMENT_ERROR_STATUS.get(result.error_kind, 409)
    return JSONResponse(
        status_code=status_code,
        content=result.model_dump(mode="json")
    )


@router.post("/unapplied", response_model=ListUnappliedPaymentsResponse)
async def list_unapplied_payments(
    request: ListUnappliedPaymentsRequest,
    db: AsyncSession = DB_DEPENDENCY
) -> JSONResponse:
    """List payments that were recorded but never produced a share or a unit assignment."""
    reconciliation = ReconciliationService(db)
    payments = await reconciliation.list_unapplied(request.limit)

    response_data = ListUnappliedPaymentsResponse(
        items=[
            UnappliedPayment(
                payment_id=payment.id,
                external_id=payment.external_id,
                provider=payment.provider,
                purpose=payment.purpose,
                amount_minor=payment.amount_minor,
                currency=payment.currency,
                collection_id=payment.collection_id,
                pricing_tier_id=payment.pricing_tier_id,
                booking_id=payment.booking_id,
                processed_at=payment.processed_at
            )
            for payment in payments
        ]
    )

    return JSONResponse(
        status_code=200,
        content=response_data.model_dump(mode="json")
    )


@router.post("/replay", response_model=SettlementResult, responses={404: {"model": Problem}, 409: {"model": Problem}})
async def replay_payment(
    request: ReplayPaymentRequest,
    db: AsyncSession = DB_DEPENDENCY
) -> JSONResponse:
    """
    Re-run the allocation of a recorded payment after an operator fixed its cause.

    Replaying an already applied payment answers with ``duplicate`` set.
    """
    reconciliation = ReconciliationService(db)

    try:
        result = await reconciliation.replay(request.external_id)
    except ProblemDetailsException:
        raise
    except Exception as e:
        logger.error(
            "Unexpected error replaying payment",
            extra={"external_id": request.external_id, "error": str(e)},
            exc_info=True
        )
        raise InternalServerError()

    logger.info(
        "Payment replay completed",
        extra={
            "external_id": request.external_id,
            "duplicate": result.duplicate,
            "unit_name": result.unit_name
        }
    )

    return JSONResponse(
        status_code=200,
        content=result.model_dump(mode="json")
    )
