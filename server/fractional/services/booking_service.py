"""Booking service: stay creation, status transitions and unit assignment."""

import logging
import math
from datetime import date, datetime
from typing import Optional, Protocol

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ..core.clock import utcnow
from ..core.config import settings
from ..core.exceptions import BookingNotFoundError, ConflictError, InvalidBookingTransitionError
from ..core.observability import metrics_collector
from ..models.booking import Booking, BookingStatus, BookingUnit
from ..models.catalog import Unit
from ..schemas.booking import CreateBookingRequest
from .catalog_service import CatalogService

logger = logging.getLogger(__name__)


ALLOWED_TRANSITIONS: dict[BookingStatus, frozenset[BookingStatus]] = {
    BookingStatus.PENDING_PAYMENT: frozenset({BookingStatus.PAYMENT_RECEIVED, BookingStatus.CANCELLED}),
    BookingStatus.PAYMENT_RECEIVED: frozenset({BookingStatus.CONFIRMED, BookingStatus.CANCELLED}),
    BookingStatus.CONFIRMED: frozenset({BookingStatus.COMPLETED, BookingStatus.CANCELLED}),
    BookingStatus.COMPLETED: frozenset(),
    BookingStatus.CANCELLED: frozenset(),
}

# Bookings in these states hold their units for the stay dates
OCCUPYING_STATUSES = (
    BookingStatus.PAYMENT_RECEIVED,
    BookingStatus.CONFIRMED,
    BookingStatus.COMPLETED,
)


def can_transition(current: BookingStatus | str, target: BookingStatus) -> bool:
    return target in ALLOWED_TRANSITIONS[BookingStatus(current)]


class UnitAvailability(Protocol):
    """Supplies unit ids that are free for a date range."""

    async def find_units(
        self,
        collection_id: int,
        check_in: date,
        check_out: date,
        count: int,
        exclude_booking_id: Optional[int] = None,
    ) -> list[Unit]:
        ...


class LocalUnitAvailability:
    """
    Date-range availability from this database's own booking assignments.

    A unit is free when no booking holding it overlaps the half-open stay
    [check_in, check_out). Units are offered in ascending id order.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def find_units(
        self,
        collection_id: int,
        check_in: date,
        check_out: date,
        count: int,
        exclude_booking_id: Optional[int] = None,
    ) -> list[Unit]:
        occupied = (
            select(BookingUnit.unit_id)
            .join(Booking, Booking.id == BookingUnit.booking_id)
            .where(
                Booking.collection_id == collection_id,
                Booking.status.in_([status.value for status in OCCUPYING_STATUSES]),
                Booking.check_in < check_out,
                Booking.check_out > check_in,
            )
        )
        if exclude_booking_id is not None:
            occupied = occupied.where(Booking.id != exclude_booking_id)

        stmt = (
            select(Unit)
            .where(Unit.collection_id == collection_id, Unit.id.not_in(occupied))
            .order_by(Unit.id)
            .limit(count)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())


class BookingService:
    """Service for booking-related operations."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.catalog_service = CatalogService(db)

    async def create_booking(self, request: CreateBookingRequest) -> Booking:
        """
        Create a booking awaiting payment.

        Units required default to enough units to sleep every guest.

        Raises:
            CollectionNotFoundError: If the collection does not exist
        """
        await self.catalog_service.get_collection_or_raise(request.collection_id)

        units_required = request.units_required or math.ceil(
            request.number_of_guests / settings.max_guests_per_unit
        )

        booking = Booking(
            collection_id=request.collection_id,
            user_id=request.user_id,
            guest_name=request.guest_name,
            guest_email=request.guest_email.lower(),
            guest_phone=request.guest_phone,
            number_of_guests=request.number_of_guests,
            units_required=units_required,
            check_in=request.check_in,
            check_out=request.check_out,
            total_price_minor=request.total_price_minor,
            currency=request.currency.upper(),
            status=BookingStatus.PENDING_PAYMENT
        )

        self.db.add(booking)
        await self.db.commit()
        booking = await self.get_booking_or_raise(booking.id)

        metrics_collector.record_booking_transition(BookingStatus.PENDING_PAYMENT.value)
        logger.info(
            "Booking created successfully",
            extra={
                "booking_id": booking.id,
                "collection_id": booking.collection_id,
                "check_in": booking.check_in.isoformat(),
                "check_out": booking.check_out.isoformat(),
                "units_required": booking.units_required
            }
        )

        return booking

    async def get_booking_by_id(self, booking_id: int) -> Booking | None:
        stmt = (
            select(Booking)
            .options(selectinload(Booking.assigned_units))
            .where(Booking.id == booking_id)
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_booking_or_raise(self, booking_id: int) -> Booking:
        """
        Raises:
            BookingNotFoundError: If the booking does not exist
        """
        booking = await self.get_booking_by_id(booking_id)
        if not booking:
            raise BookingNotFoundError(booking_id)
        return booking

    def apply_transition(self, booking: Booking, target: BookingStatus, reason: str | None = None) -> None:
        """
        Move a booking to ``target`` in the session without committing.

        Raises:
            InvalidBookingTransitionError: If the move is not allowed from the current status
        """
        current = BookingStatus(booking.status)
        if not can_transition(current, target):
            raise InvalidBookingTransitionError(booking.id, current.value, target.value)

        booking.status = target
        if target == BookingStatus.CONFIRMED:
            booking.confirmed_at = utcnow()
        elif target == BookingStatus.CANCELLED:
            booking.cancelled_at = utcnow()
            booking.cancellation_reason = reason

        logger.info(
            "Booking status changed",
            extra={
                "booking_id": booking.id,
                "from_status": current.value,
                "to_status": target.value
            }
        )

    async def assign_units(self, booking: Booking, unit_ids: list[int]) -> None:
        """Record unit assignments for a booking without committing."""
        for unit_id in unit_ids:
            self.db.add(BookingUnit(booking_id=booking.id, unit_id=unit_id))
        await self.db.flush()

        logger.info(
            "Units assigned to booking",
            extra={"booking_id": booking.id, "unit_ids": unit_ids}
        )

    async def _transition_and_commit(self, booking_id: int, target: BookingStatus, reason: str | None = None) -> Booking:
        booking = await self.get_booking_or_raise(booking_id)
        self.apply_transition(booking, target, reason)
        await self.db.commit()
        metrics_collector.record_booking_transition(target.value)
        return await self.get_booking_or_raise(booking_id)

    async def confirm_booking(self, booking_id: int) -> Booking:
        """
        Confirm a paid booking whose units are assigned.

        Raises:
            BookingNotFoundError: If the booking does not exist
            InvalidBookingTransitionError: If the booking is not PAYMENT_RECEIVED
            ConflictError: If no units have been assigned yet
        """
        booking = await self.get_booking_or_raise(booking_id)
        if booking.status == BookingStatus.PAYMENT_RECEIVED and not booking.assigned_units:
            raise ConflictError(
                detail=f"Booking {booking_id} has no assigned units and cannot be confirmed",
                conflicting_resource={"booking_id": booking_id}
            )
        return await self._transition_and_commit(booking_id, BookingStatus.CONFIRMED)

    async def complete_booking(self, booking_id: int) -> Booking:
        """
        Mark a confirmed stay as completed.

        Raises:
            BookingNotFoundError: If the booking does not exist
            InvalidBookingTransitionError: If the booking is not CONFIRMED
        """
        return await self._transition_and_commit(booking_id, BookingStatus.COMPLETED)

    async def cancel_booking(self, booking_id: int, reason: str | None = None) -> Booking:
        """
        Cancel a booking. Cancelling an already cancelled booking returns it unchanged.

        Cancelled bookings stop occupying their units, so the dates become free again.

        Raises:
            BookingNotFoundError: If the booking does not exist
            InvalidBookingTransitionError: If the booking is COMPLETED
        """
        booking = await self.get_booking_or_raise(booking_id)
        if booking.status == BookingStatus.CANCELLED:
            logger.info(
                "Booking already cancelled - returning existing booking",
                extra={"booking_id": booking_id}
            )
            return booking

        return await self._transition_and_commit(booking_id, BookingStatus.CANCELLED, reason)
