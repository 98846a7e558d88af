"""Reconciliation of payments that were recorded but never applied."""

import logging
from typing import Optional

from sqlalchemy import and_, exists, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.exceptions import InvalidBookingStateError
from ..core.observability import metrics_collector
from ..models.booking import BookingStatus, BookingUnit
from ..models.catalog import Unit
from ..models.ownership import OwnershipRecord
from ..models.payment import PaymentPurpose, PaymentRecord
from ..schemas.payment import SettlementResult
from .booking_service import UnitAvailability
from .booking_settlement_service import BookingSettlementService
from .payment_service import PaymentService, RecordedPayment
from .payment_settlement_service import PaymentSettlementService

logger = logging.getLogger(__name__)


class ReconciliationService:
    """Operator view of paid-but-unapplied payments, and manual replay of their allocation."""

    def __init__(self, db: AsyncSession, unit_availability: Optional[UnitAvailability] = None):
        self.db = db
        self.payments = PaymentService(db)
        self.ownership_settlement = PaymentSettlementService(db)
        self.booking_settlement = BookingSettlementService(db, unit_availability)

    async def list_unapplied(self, limit: int = 100) -> list[PaymentRecord]:
        """Ownership payments without a share and booking payments without units, oldest first."""
        has_ownership = exists().where(OwnershipRecord.payment_id == PaymentRecord.id)
        has_units = exists().where(BookingUnit.booking_id == PaymentRecord.booking_id)

        stmt = (
            select(PaymentRecord)
            .where(
                or_(
                    and_(PaymentRecord.purpose == PaymentPurpose.OWNERSHIP.value, ~has_ownership),
                    and_(PaymentRecord.purpose == PaymentPurpose.BOOKING.value, ~has_units),
                )
            )
            .order_by(PaymentRecord.id)
            .limit(limit)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def replay(self, external_id: str) -> SettlementResult:
        """
        Re-run only the allocation step of a recorded payment.

        Safe to repeat: a payment that already has its share or its units is
        reported as a duplicate without changes.

        Raises:
            PaymentNotFoundError: If no payment was recorded for the external id
            InvalidBookingStateError: If the paid booking has since moved on
            AllocationFailedAfterPaymentError: If the allocation still cannot be applied
        """
        payment = await self.payments.get_by_external_id_or_raise(external_id)

        if payment.purpose == PaymentPurpose.OWNERSHIP:
            return await self._replay_ownership(payment)
        return await self._replay_booking(payment)

    async def _replay_ownership(self, payment: PaymentRecord) -> SettlementResult:
        stmt = (
            select(OwnershipRecord, Unit)
            .join(Unit, Unit.id == OwnershipRecord.unit_id)
            .where(OwnershipRecord.payment_id == payment.id)
        )
        applied = (await self.db.execute(stmt)).first()
        if applied:
            ownership, unit = applied
            return SettlementResult(
                success=True,
                duplicate=True,
                external_id=payment.external_id,
                purpose=PaymentPurpose.OWNERSHIP,
                unit_name=unit.name,
                payment_id=payment.id,
                ownership_id=ownership.id
            )

        snapshot = RecordedPayment.of(payment)

        try:
            unit, ownership = await self.ownership_settlement.apply_allocation(payment)
            await self.db.commit()
        except Exception as e:
            await self.db.rollback()
            raise self.payments.allocation_failed(snapshot, e) from e

        metrics_collector.record_ownership(payment.collection_id, ownership.percentage_owned)
        logger.info(
            "Ownership payment replayed",
            extra={
                "external_id": payment.external_id,
                "payment_id": payment.id,
                "ownership_id": ownership.id,
                "unit_name": unit.name
            }
        )

        return SettlementResult(
            success=True,
            external_id=payment.external_id,
            purpose=PaymentPurpose.OWNERSHIP,
            unit_name=unit.name,
            payment_id=payment.id,
            ownership_id=ownership.id
        )

    async def _replay_booking(self, payment: PaymentRecord) -> SettlementResult:
        booking = await self.booking_settlement.bookings.get_booking_or_raise(payment.booking_id)
        already_assigned = bool(booking.assigned_units)

        if not already_assigned and booking.status != BookingStatus.PAYMENT_RECEIVED:
            raise InvalidBookingStateError(booking.id, BookingStatus(booking.status).value)

        snapshot = RecordedPayment.of(payment)

        try:
            units = await self.booking_settlement.assign_units(booking)
            await self.db.commit()
        except Exception as e:
            await self.db.rollback()
            raise self.payments.allocation_failed(snapshot, e) from e

        logger.info(
            "Booking payment replayed",
            extra={
                "external_id": payment.external_id,
                "booking_id": booking.id,
                "unit_ids": [unit.id for unit in units],
                "already_assigned": already_assigned
            }
        )

        return SettlementResult(
            success=True,
            duplicate=already_assigned,
            external_id=payment.external_id,
            purpose=PaymentPurpose.BOOKING,
            unit_name=", ".join(unit.name for unit in units),
            payment_id=payment.id,
            booking_id=booking.id
        )
