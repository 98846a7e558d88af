"""Booking router for stay operations."""

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.database import get_db
from ..schemas.booking import (
    Booking,
    BookingTransitionRequest,
    CancelBookingRequest,
    CreateBookingRequest,
    GetBookingRequest,
)
from ..services.booking_service import BookingService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/booking", tags=["booking"])

# Define dependencies to avoid B008 linting errors
DB_DEPENDENCY = Depends(get_db)


def _convert_booking_to_schema(booking_model) -> Booking:
    """Convert booking model to schema."""
    return Booking(
        id=booking_model.id,
        collection_id=booking_model.collection_id,
        guest_name=booking_model.guest_name,
        guest_email=booking_model.guest_email,
        number_of_guests=booking_model.number_of_guests,
        units_required=booking_model.units_required,
        check_in=booking_model.check_in,
        check_out=booking_model.check_out,
        total_price_minor=booking_model.total_price_minor,
        currency=booking_model.currency,
        status=booking_model.status,
        payment_id=booking_model.payment_id,
        unit_ids=[assignment.unit_id for assignment in booking_model.assigned_units],
        confirmed_at=booking_model.confirmed_at,
        cancelled_at=booking_model.cancelled_at,
        cancellation_reason=booking_model.cancellation_reason,
        created_at=booking_model.created_at
    )


def _booking_response(booking_model) -> JSONResponse:
    return JSONResponse(
        status_code=200,
        content=_convert_booking_to_schema(booking_model).model_dump(mode="json")
    )


@router.post("/create", response_model=Booking)
async def create_booking(
    request: CreateBookingRequest,
    db: AsyncSession = DB_DEPENDENCY
) -> JSONResponse:
    """
    Create a booking awaiting payment.

    Units are assigned when the booking's payment event settles.
    """
    booking = await BookingService(db).create_booking(request)
    return _booking_response(booking)


@router.post("/get", response_model=Booking)
async def get_booking(
    request: GetBookingRequest,
    db: AsyncSession = DB_DEPENDENCY
) -> JSONResponse:
    """Retrieve a booking with its assigned units."""
    booking = await BookingService(db).get_booking_or_raise(request.booking_id)
    return _booking_response(booking)


@router.post("/confirm", response_model=Booking)
async def confirm_booking(
    request: BookingTransitionRequest,
    db: AsyncSession = DB_DEPENDENCY
) -> JSONResponse:
    """Confirm a paid booking whose units have been assigned."""
    booking = await BookingService(db).confirm_booking(request.booking_id)
    return _booking_response(booking)


@router.post("/complete", response_model=Booking)
async def complete_booking(
    request: BookingTransitionRequest,
    db: AsyncSession = DB_DEPENDENCY
) -> JSONResponse:
    """Mark a confirmed stay as completed."""
    booking = await BookingService(db).complete_booking(request.booking_id)
    return _booking_response(booking)


@router.post("/cancel", response_model=Booking)
async def cancel_booking(
    request: CancelBookingRequest,
    db: AsyncSession = DB_DEPENDENCY
) -> JSONResponse:
    """
    Cancel a booking and release its dates.

    Cancelling a cancelled booking returns it unchanged.
    """
    booking = await BookingService(db).cancel_booking(request.booking_id, request.reason)

    logger.info(
        "Booking cancellation completed",
        extra={"booking_id": booking.id, "status": booking.status}
    )

    return _booking_response(booking)
