"""Unit allocator: sequential fill of ownership shares across a collection's units."""

import logging
from typing import Iterable, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from ..core.database import acquire_collection_lock
from ..core.exceptions import SoldOutError
from ..models.catalog import Unit
from ..models.ownership import OwnershipRecord
from .catalog_service import CatalogService
from .ledger_service import LedgerService, UnitCapacity

logger = logging.getLogger(__name__)


def select_first_fit(capacities: Iterable[UnitCapacity], basis_points_needed: int) -> Optional[UnitCapacity]:
    """
    Sequential fill: the lowest-id unit whose remaining capacity covers the request.

    A unit is filled completely before a later unit is touched, and the same
    ledger state always yields the same unit.
    """
    for capacity in sorted(capacities, key=lambda c: c.unit_id):
        if capacity.available_capacity >= basis_points_needed:
            return capacity
    return None


class AllocationService:
    """Service that picks the unit absorbing an ownership purchase and records it."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.ledger = LedgerService(db)
        self.catalog_service = CatalogService(db)

    async def find_available_unit(self, collection_id: int, basis_points_needed: int) -> Optional[Unit]:
        """
        Return the first unit (ascending id) with enough capacity, or None.

        None is not an error: it covers both a sold-out collection and a
        collection without units.
        """
        capacities = await self.ledger.capacities(collection_id)
        chosen = select_first_fit(capacities, basis_points_needed)
        if chosen is None:
            logger.info(
                "No unit can absorb requested share",
                extra={
                    "collection_id": collection_id,
                    "basis_points_needed": basis_points_needed,
                    "units_considered": len(capacities)
                }
            )
            return None
        return await self.catalog_service.get_unit_or_raise(chosen.unit_id)

    async def allocate(
        self,
        collection_id: int,
        basis_points: int,
        holder_id: str,
        *,
        currency: str,
        purchase_amount_minor: int = 0,
        pricing_tier_id: int | None = None,
        payment_id: int | None = None,
        affiliate_link_id: int | None = None,
    ) -> tuple[Unit, OwnershipRecord]:
        """
        Pick a unit and record the share in the current transaction.

        The collection lock is held from the capacity read through the insert;
        the caller commits.

        Raises:
            SoldOutError: If no unit can absorb the share
        """
        await acquire_collection_lock(self.db, collection_id)

        unit = await self.find_available_unit(collection_id, basis_points)
        if unit is None:
            raise SoldOutError(collection_id, basis_points)

        ownership = await self.ledger.record(
            unit.id,
            holder_id,
            basis_points,
            currency=currency,
            purchase_amount_minor=purchase_amount_minor,
            pricing_tier_id=pricing_tier_id,
            payment_id=payment_id,
            affiliate_link_id=affiliate_link_id
        )

        logger.info(
            "Share allocated",
            extra={
                "collection_id": collection_id,
                "unit_id": unit.id,
                "unit_name": unit.name,
                "basis_points": basis_points,
                "holder_id": holder_id,
                "payment_id": payment_id
            }
        )

        return unit, ownership
