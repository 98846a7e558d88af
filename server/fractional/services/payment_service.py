"""Payment records: the idempotency gate shared by both settlement coordinators."""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.exceptions import AllocationFailedAfterPaymentError, PaymentNotFoundError, ProblemDetailsException
from ..core.observability import metrics_collector
from ..models.payment import PaymentProvider, PaymentPurpose, PaymentRecord, PaymentStatus
from ..schemas.payment import PaymentEvent, SettlementResult

logger = logging.getLogger(__name__)


class PaymentService:
    """Service for looking up and persisting payment records."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_by_external_id(self, external_id: str) -> PaymentRecord | None:
        stmt = select(PaymentRecord).where(PaymentRecord.external_id == external_id)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_by_external_id_or_raise(self, external_id: str) -> PaymentRecord:
        """
        Raises:
            PaymentNotFoundError: If no payment was recorded for the external id
        """
        payment = await self.get_by_external_id(external_id)
        if not payment:
            raise PaymentNotFoundError(external_id)
        return payment

    def build_record(self, event: PaymentEvent, processed_at: datetime, **references: Any) -> PaymentRecord:
        """A SUCCESS payment row for an event; ``references`` carries the purpose-specific ids."""
        return PaymentRecord(
            provider=event.provider,
            external_id=event.external_id,
            payer_email=event.payer_email,
            amount_minor=event.amount_paid_minor_units,
            currency=event.currency,
            status=PaymentStatus.SUCCESS,
            purpose=event.purpose,
            event_metadata=event.model_dump(mode="json"),
            processed_at=processed_at,
            **references
        )

    async def commit_new_payment(
        self,
        payment: PaymentRecord,
        before_commit: Callable[[PaymentRecord], None] | None = None,
    ) -> bool:
        """
        Insert the payment and commit everything pending in the session with it.

        ``before_commit`` runs once the row has its id, so callers can link
        other rows to it inside the same transaction.

        Returns False, after rolling back, when a concurrent delivery of the same
        event committed first and the unique external id rejected this insert.
        """
        self.db.add(payment)
        try:
            await self.db.flush()
            if before_commit is not None:
                before_commit(payment)
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            if await self.get_by_external_id(payment.external_id) is None:
                raise
            logger.info(
                "Payment already recorded by a concurrent delivery (race condition)",
                extra={"external_id": payment.external_id}
            )
            return False

        logger.info(
            "Payment recorded",
            extra={
                "payment_id": payment.id,
                "external_id": payment.external_id,
                "provider": payment.provider,
                "purpose": payment.purpose,
                "amount_minor": payment.amount_minor,
                "currency": payment.currency
            }
        )
        return True

    def duplicate_result(self, event: PaymentEvent, payment: PaymentRecord | None = None) -> SettlementResult:
        """Success result for a redelivered event; no domain effect is applied."""
        metrics_collector.record_duplicate_event(event.provider.value)
        logger.info(
            "Duplicate payment event ignored",
            extra={
                "external_id": event.external_id,
                "provider": event.provider,
                "purpose": event.purpose
            }
        )
        return SettlementResult(
            success=True,
            duplicate=True,
            external_id=event.external_id,
            purpose=event.purpose,
            payment_id=payment.id if payment else None,
            booking_id=payment.booking_id if payment else None
        )

    def allocation_failed(self, payment: "RecordedPayment", exc: Exception) -> AllocationFailedAfterPaymentError:
        """
        Log and count a payment that is recorded but could not be applied.

        Works from a snapshot taken before the allocation started, so nothing
        here touches a session the failure may have broken.

        Returns the error for the caller to raise; it is never retried here.
        """
        if isinstance(exc, ProblemDetailsException) and exc.error_kind:
            reason = exc.error_kind
        else:
            reason = type(exc).__name__

        context = {
            "payment_id": payment.payment_id,
            "collection_id": payment.collection_id,
            "pricing_tier_id": payment.pricing_tier_id,
            "booking_id": payment.booking_id,
            "percentage_to_buy": payment.percentage_to_buy,
        }

        metrics_collector.record_reconciliation_required(payment.purpose)
        logger.error(
            "Payment recorded but allocation failed - manual reconciliation required",
            extra={
                "external_id": payment.external_id,
                "provider": payment.provider,
                "purpose": payment.purpose,
                "reason": reason,
                "error": str(exc),
                **context
            },
            exc_info=not isinstance(exc, ProblemDetailsException)
        )

        return AllocationFailedAfterPaymentError(payment.external_id, reason, context)


@dataclass(frozen=True)
class RecordedPayment:
    """Plain copy of a committed payment row, still readable after a rollback expires the row."""

    payment_id: int
    external_id: str
    provider: str
    purpose: str
    collection_id: int | None = None
    pricing_tier_id: int | None = None
    booking_id: int | None = None
    percentage_to_buy: int | None = None

    @classmethod
    def of(cls, payment: PaymentRecord) -> "RecordedPayment":
        return cls(
            payment_id=payment.id,
            external_id=payment.external_id,
            provider=PaymentProvider(payment.provider).value,
            purpose=PaymentPurpose(payment.purpose).value,
            collection_id=payment.collection_id,
            pricing_tier_id=payment.pricing_tier_id,
            booking_id=payment.booking_id,
            percentage_to_buy=payment.percentage_to_buy,
        )
