"""Routes verified payment events to the coordinator for their purpose."""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from ..core.exceptions import ProblemDetailsException
from ..core.observability import metrics_collector
from ..models.payment import PaymentPurpose
from ..schemas.payment import PaymentEvent, SettlementResult
from .booking_service import UnitAvailability
from .booking_settlement_service import BookingSettlementService
from .payment_settlement_service import PaymentSettlementService

logger = logging.getLogger(__name__)


class SettlementDispatcher:
    """
    Single entry point for payment events from every rail.

    Domain rejections raised by a coordinator come back as an unsuccessful
    ``SettlementResult`` carrying the error kind. Unexpected errors propagate
    so the provider's redelivery can retry them.
    """

    def __init__(self, db: AsyncSession, unit_availability: Optional[UnitAvailability] = None):
        self.db = db
        self.coordinators = {
            PaymentPurpose.OWNERSHIP: PaymentSettlementService(db),
            PaymentPurpose.BOOKING: BookingSettlementService(db, unit_availability),
        }

    async def dispatch(self, event: PaymentEvent, as_of: datetime) -> SettlementResult:
        coordinator = self.coordinators[PaymentPurpose(event.purpose)]

        try:
            result = await coordinator.settle(event, as_of)
        except ProblemDetailsException as e:
            if not e.error_kind:
                raise
            metrics_collector.record_settlement(event.purpose.value, e.error_kind)
            logger.warning(
                "Payment event not applied",
                extra={
                    "external_id": event.external_id,
                    "provider": event.provider,
                    "purpose": event.purpose,
                    "error_kind": e.error_kind,
                    "collection_id": event.collection_id,
                    "pricing_tier_id": event.pricing_tier_id,
                    "booking_id": event.booking_id
                }
            )
            return SettlementResult(
                success=False,
                external_id=event.external_id,
                purpose=event.purpose,
                error_kind=e.error_kind,
                detail=e.problem_details.get("detail"),
                booking_id=event.booking_id
            )

        metrics_collector.record_settlement(event.purpose.value, "duplicate" if result.duplicate else "applied")
        return result
