"""Tier availability: which ownership tiers of a collection can still be bought."""

import logging
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from ..core.clock import to_naive_utc
from .catalog_service import CatalogService
from .ledger_service import LedgerService

logger = logging.getLogger(__name__)


class AvailabilityService:
    """Derives tier availability from the ledger on demand."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.ledger = LedgerService(db)
        self.catalog_service = CatalogService(db)

    async def availability(self, collection_id: int, as_of: datetime) -> dict[int, bool]:
        """
        Map each tier active at ``as_of`` (by basis points) to whether it can be bought.

        A tier is purchasable when at least one unit alone has that much
        capacity left. A collection with no units reports no tiers.

        Raises:
            CollectionNotFoundError: If the collection does not exist
        """
        await self.catalog_service.get_collection_or_raise(collection_id)

        capacities = await self.ledger.capacities(collection_id)
        if not capacities:
            return {}

        max_available = max(capacity.available_capacity for capacity in capacities)
        tiers = await self.catalog_service.list_tiers_active_at(collection_id, to_naive_utc(as_of))

        availability = {tier.percentage: tier.percentage <= max_available for tier in tiers}

        logger.debug(
            "Tier availability computed",
            extra={
                "collection_id": collection_id,
                "as_of": as_of.isoformat(),
                "max_available_basis_points": max_available,
                "tiers": len(availability)
            }
        )

        return availability
