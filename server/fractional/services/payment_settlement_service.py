"""Payment settlement coordinator for fractional ownership purchases."""

import logging
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from ..core.clock import to_naive_utc
from ..core.exceptions import InvalidEventError
from ..core.observability import metrics_collector
from ..models.catalog import Unit
from ..models.ownership import OwnershipRecord
from ..models.payment import PaymentPurpose, PaymentRecord
from ..models.user import User
from ..schemas.payment import PaymentEvent, SettlementResult
from .allocation_service import AllocationService
from .catalog_service import CatalogService
from .identity_service import IdentityService
from .payment_service import PaymentService, RecordedPayment

logger = logging.getLogger(__name__)


class PaymentSettlementService:
    """
    Applies an ownership payment event exactly once.

    Settlement runs in two transactions. The first resolves the payer, the
    collection and the tier and commits the payment row; from then on a
    redelivery of the same event is a no-op. The second allocates a unit and
    records the share. If the second fails, the payment stays recorded and
    the failure is raised as ``AllocationFailedAfterPaymentError`` for manual
    reconciliation.
    """

    def __init__(self, db: AsyncSession):
        self.db = db
        self.payments = PaymentService(db)
        self.catalog_service = CatalogService(db)
        self.identity = IdentityService(db)
        self.allocation = AllocationService(db)

    async def settle(self, event: PaymentEvent, as_of: datetime) -> SettlementResult:
        """
        Settle an ownership purchase.

        Raises:
            InvalidEventError: If the event lacks collection, tier or payer email
            CollectionNotFoundError: If the collection does not exist
            PricingTierNotFoundError: If the tier does not exist in the collection
            AllocationFailedAfterPaymentError: If the payment was recorded but no share could be applied
        """
        missing = event.missing_fields()
        if event.purpose != PaymentPurpose.OWNERSHIP or missing:
            raise InvalidEventError(
                detail=f"Not a complete ownership payment event (missing: {', '.join(missing) or 'none'})",
                external_id=event.external_id
            )

        existing = await self.payments.get_by_external_id(event.external_id)
        if existing:
            return self.payments.duplicate_result(event, existing)

        try:
            payment, new_user_created = await self._record_payment(event, as_of)
        except Exception:
            await self.db.rollback()
            raise

        if payment is None:
            return self.payments.duplicate_result(event)

        snapshot = RecordedPayment.of(payment)

        try:
            unit, ownership = await self.apply_allocation(payment)
            await self.db.commit()
        except Exception as e:
            await self.db.rollback()
            raise self.payments.allocation_failed(snapshot, e) from e

        metrics_collector.record_ownership(payment.collection_id, ownership.percentage_owned)

        logger.info(
            "Ownership payment settled",
            extra={
                "external_id": event.external_id,
                "payment_id": payment.id,
                "ownership_id": ownership.id,
                "unit_id": unit.id,
                "unit_name": unit.name,
                "basis_points": ownership.percentage_owned,
                "new_user_created": new_user_created
            }
        )

        return SettlementResult(
            success=True,
            external_id=event.external_id,
            purpose=event.purpose,
            unit_name=unit.name,
            new_user_created=new_user_created,
            payment_id=payment.id,
            ownership_id=ownership.id
        )

    async def _record_payment(self, event: PaymentEvent, as_of: datetime) -> tuple[PaymentRecord | None, bool]:
        """Resolve everything the payment row references and commit it; None when a concurrent delivery won."""
        user, new_user_created = await self.identity.resolve_or_create_user(event.payer_email, event.user_id)
        affiliate_link_id = await self.identity.resolve_affiliate_link_id(event.referral_code)

        collection = await self.catalog_service.get_collection_or_raise(event.collection_id)
        tier = await self.catalog_service.get_pricing_tier_or_raise(event.pricing_tier_id, collection.id)

        expected_price = tier.price_for(event.currency)
        if expected_price is not None and expected_price != event.amount_paid_minor_units:
            logger.warning(
                "Payment amount differs from tier price",
                extra={
                    "external_id": event.external_id,
                    "pricing_tier_id": tier.id,
                    "currency": event.currency,
                    "expected_minor": expected_price,
                    "paid_minor": event.amount_paid_minor_units
                }
            )

        payment = self.payments.build_record(
            event,
            to_naive_utc(as_of),
            user_id=user.id,
            collection_id=collection.id,
            pricing_tier_id=tier.id,
            percentage_to_buy=tier.percentage,
            affiliate_link_id=affiliate_link_id
        )

        if not await self.payments.commit_new_payment(payment):
            return None, False
        return payment, new_user_created

    async def apply_allocation(self, payment: PaymentRecord) -> tuple[Unit, OwnershipRecord]:
        """
        Allocate the purchased share for a recorded payment, without committing.

        Raises:
            SoldOutError: If no unit can absorb the share
            CapacityExceededError: If the chosen unit filled up concurrently
        """
        unit, ownership = await self.allocation.allocate(
            payment.collection_id,
            payment.percentage_to_buy,
            payment.user_id,
            currency=payment.currency,
            purchase_amount_minor=payment.amount_minor,
            pricing_tier_id=payment.pricing_tier_id,
            payment_id=payment.id,
            affiliate_link_id=payment.affiliate_link_id
        )

        user = await self.db.get(User, payment.user_id)
        await self.identity.record_investment(user, payment.amount_minor)

        return unit, ownership
