"""Booking settlement coordinator for stay payments."""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from ..core.clock import to_naive_utc
from ..core.database import acquire_collection_lock
from ..core.exceptions import InvalidBookingStateError, InvalidEventError, UnitsUnavailableError
from ..core.observability import metrics_collector
from ..models.booking import Booking, BookingStatus
from ..models.catalog import Unit
from ..models.payment import PaymentPurpose, PaymentRecord
from ..schemas.payment import PaymentEvent, SettlementResult
from .booking_service import BookingService, LocalUnitAvailability, UnitAvailability
from .payment_service import PaymentService, RecordedPayment

logger = logging.getLogger(__name__)


class BookingSettlementService:
    """
    Applies a booking payment event exactly once.

    The first transaction records the payment, links it to the booking and
    moves the booking to PAYMENT_RECEIVED. The second assigns units for the
    stay dates. Confirmation is a separate, later step.
    """

    def __init__(self, db: AsyncSession, unit_availability: Optional[UnitAvailability] = None):
        self.db = db
        self.payments = PaymentService(db)
        self.bookings = BookingService(db)
        self.unit_availability = unit_availability or LocalUnitAvailability(db)

    async def settle(self, event: PaymentEvent, as_of: datetime) -> SettlementResult:
        """
        Settle a booking payment.

        Raises:
            InvalidEventError: If the event does not name a booking
            BookingNotFoundError: If the booking does not exist
            InvalidBookingStateError: If the booking is not awaiting payment
            AllocationFailedAfterPaymentError: If the payment was recorded but units could not be assigned
        """
        if event.purpose != PaymentPurpose.BOOKING or event.missing_fields():
            raise InvalidEventError(
                detail="Not a complete booking payment event (missing: booking_id)",
                external_id=event.external_id
            )

        existing = await self.payments.get_by_external_id(event.external_id)
        if existing:
            return self.payments.duplicate_result(event, existing)

        try:
            booking = await self.bookings.get_booking_or_raise(event.booking_id)
            if booking.status != BookingStatus.PENDING_PAYMENT:
                logger.warning(
                    "Booking payment rejected - booking not awaiting payment",
                    extra={
                        "external_id": event.external_id,
                        "booking_id": booking.id,
                        "booking_status": booking.status
                    }
                )
                raise InvalidBookingStateError(booking.id, BookingStatus(booking.status).value)

            payment = self.payments.build_record(
                event,
                to_naive_utc(as_of),
                user_id=booking.user_id,
                collection_id=booking.collection_id,
                booking_id=booking.id
            )

            def link_booking(recorded: PaymentRecord) -> None:
                booking.payment_id = recorded.id
                self.bookings.apply_transition(booking, BookingStatus.PAYMENT_RECEIVED)

            recorded = await self.payments.commit_new_payment(payment, before_commit=link_booking)
        except Exception:
            await self.db.rollback()
            raise

        if not recorded:
            return self.payments.duplicate_result(event)

        metrics_collector.record_booking_transition(BookingStatus.PAYMENT_RECEIVED.value)

        snapshot = RecordedPayment.of(payment)

        try:
            units = await self.assign_units(booking)
            await self.db.commit()
        except Exception as e:
            await self.db.rollback()
            raise self.payments.allocation_failed(snapshot, e) from e

        unit_name = ", ".join(unit.name for unit in units)
        logger.info(
            "Booking payment settled",
            extra={
                "external_id": event.external_id,
                "payment_id": payment.id,
                "booking_id": booking.id,
                "unit_ids": [unit.id for unit in units]
            }
        )

        return SettlementResult(
            success=True,
            external_id=event.external_id,
            purpose=event.purpose,
            unit_name=unit_name,
            payment_id=payment.id,
            booking_id=booking.id
        )

    async def assign_units(self, booking: Booking) -> list[Unit]:
        """
        Assign free units for the booking's dates, without committing.

        Already-assigned bookings keep their units.

        Raises:
            UnitsUnavailableError: If fewer units are free than the booking requires
        """
        await acquire_collection_lock(self.db, booking.collection_id)

        booking = await self.bookings.get_booking_or_raise(booking.id)
        if booking.assigned_units:
            unit_ids = [assignment.unit_id for assignment in booking.assigned_units]
            return [await self.bookings.catalog_service.get_unit_or_raise(unit_id) for unit_id in unit_ids]

        units = await self.unit_availability.find_units(
            booking.collection_id,
            booking.check_in,
            booking.check_out,
            booking.units_required,
            exclude_booking_id=booking.id
        )
        if len(units) < booking.units_required:
            raise UnitsUnavailableError(booking.collection_id, booking.units_required, len(units))

        await self.bookings.assign_units(booking, [unit.id for unit in units])
        return units
