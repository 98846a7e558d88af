"""Catalog service for collections, units and pricing tiers."""

import logging
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.clock import to_naive_utc
from ..core.exceptions import CollectionNotFoundError, ConflictError, PricingTierNotFoundError, UnitNotFoundError
from ..models.catalog import Collection, Unit
from ..models.pricing import PricingTier
from ..schemas.catalog import CreateCollectionRequest, CreatePricingTierRequest, CreateUnitRequest

logger = logging.getLogger(__name__)


class CatalogService:
    """Service for collection reference data."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create_collection(self, request: CreateCollectionRequest) -> Collection:
        """
        Create a new collection.

        Raises:
            ConflictError: If the slug is already taken
        """
        if await self.get_collection_by_slug(request.slug):
            raise ConflictError(
                detail=f"Collection with slug '{request.slug}' already exists",
                conflicting_resource={"slug": request.slug}
            )

        collection = Collection(
            name=request.name,
            slug=request.slug,
            description=request.description,
            is_active=True
        )

        self.db.add(collection)
        await self.db.commit()
        await self.db.refresh(collection)

        logger.info(
            "Collection created successfully",
            extra={
                "collection_id": collection.id,
                "slug": collection.slug
            }
        )

        return collection

    async def get_collection_by_id(self, collection_id: int) -> Collection | None:
        stmt = select(Collection).where(Collection.id == collection_id)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_collection_by_slug(self, slug: str) -> Collection | None:
        stmt = select(Collection).where(Collection.slug == slug)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_collection_or_raise(self, collection_id: int) -> Collection:
        """
        Get a collection by ID or raise.

        Raises:
            CollectionNotFoundError: If the collection does not exist
        """
        collection = await self.get_collection_by_id(collection_id)
        if not collection:
            raise CollectionNotFoundError(collection_id)
        return collection

    async def create_unit(self, request: CreateUnitRequest) -> Unit:
        """
        Add a unit to a collection.

        Raises:
            CollectionNotFoundError: If the collection does not exist
            ConflictError: If the collection already has a unit with this name
        """
        await self.get_collection_or_raise(request.collection_id)

        stmt = select(Unit).where(
            Unit.collection_id == request.collection_id,
            Unit.name == request.name
        )
        if (await self.db.execute(stmt)).scalar_one_or_none():
            raise ConflictError(
                detail=f"Collection {request.collection_id} already has a unit named '{request.name}'",
                conflicting_resource={"collection_id": request.collection_id, "name": request.name}
            )

        unit = Unit(
            collection_id=request.collection_id,
            name=request.name,
            description=request.description
        )

        self.db.add(unit)
        await self.db.commit()
        await self.db.refresh(unit)

        logger.info(
            "Unit created successfully",
            extra={
                "unit_id": unit.id,
                "collection_id": unit.collection_id,
                "unit_name": unit.name
            }
        )

        return unit

    async def get_unit_or_raise(self, unit_id: int) -> Unit:
        """
        Get a unit by ID or raise.

        Raises:
            UnitNotFoundError: If the unit does not exist
        """
        result = await self.db.execute(select(Unit).where(Unit.id == unit_id))
        unit = result.scalar_one_or_none()
        if not unit:
            raise UnitNotFoundError(unit_id)
        return unit

    async def list_units(self, collection_id: int) -> list[Unit]:
        """Units of a collection in ascending id order."""
        stmt = select(Unit).where(Unit.collection_id == collection_id).order_by(Unit.id)
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def create_pricing_tier(self, request: CreatePricingTierRequest) -> PricingTier:
        """
        Create a pricing tier for a collection.

        Raises:
            CollectionNotFoundError: If the collection does not exist
            ConflictError: If a tier with the same size already starts at the same time
        """
        await self.get_collection_or_raise(request.collection_id)

        stmt = select(PricingTier).where(
            PricingTier.collection_id == request.collection_id,
            PricingTier.percentage == request.percentage,
            PricingTier.effective_from == to_naive_utc(request.effective_from)
        )
        if (await self.db.execute(stmt)).scalar_one_or_none():
            raise ConflictError(
                detail=(
                    f"Collection {request.collection_id} already has a {request.percentage} bp tier "
                    f"starting {request.effective_from.isoformat()}"
                ),
                conflicting_resource={
                    "collection_id": request.collection_id,
                    "percentage": request.percentage
                }
            )

        tier = PricingTier(
            collection_id=request.collection_id,
            percentage=request.percentage,
            prices=request.prices,
            display_label=request.display_label,
            is_active=request.is_active,
            effective_from=to_naive_utc(request.effective_from),
            effective_until=to_naive_utc(request.effective_until)
        )

        self.db.add(tier)
        await self.db.commit()
        await self.db.refresh(tier)

        logger.info(
            "Pricing tier created successfully",
            extra={
                "pricing_tier_id": tier.id,
                "collection_id": tier.collection_id,
                "percentage": tier.percentage
            }
        )

        return tier

    async def get_pricing_tier_or_raise(self, pricing_tier_id: int, collection_id: int | None = None) -> PricingTier:
        """
        Get a pricing tier, optionally requiring it to belong to a collection.

        Raises:
            PricingTierNotFoundError: If the tier does not exist or belongs elsewhere
        """
        result = await self.db.execute(select(PricingTier).where(PricingTier.id == pricing_tier_id))
        tier = result.scalar_one_or_none()
        if not tier or (collection_id is not None and tier.collection_id != collection_id):
            raise PricingTierNotFoundError(pricing_tier_id, collection_id)
        return tier

    async def list_tiers_active_at(self, collection_id: int, as_of: datetime) -> list[PricingTier]:
        """Tiers of a collection that are active and inside their window at ``as_of``, smallest first."""
        stmt = (
            select(PricingTier)
            .where(PricingTier.collection_id == collection_id, PricingTier.is_active.is_(True))
            .order_by(PricingTier.percentage, PricingTier.id)
        )
        result = await self.db.execute(stmt)
        as_of = to_naive_utc(as_of)
        return [tier for tier in result.scalars().all() if tier.is_effective_at(as_of)]

