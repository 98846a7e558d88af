"""Collection router for catalog administration and availability views."""

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.clock import to_naive_utc, utcnow
from ..core.database import get_db
from ..schemas.catalog import (
    Collection,
    CreateCollectionRequest,
    CreatePricingTierRequest,
    CreateUnitRequest,
    PricingTier,
    TierAvailabilityRequest,
    TierAvailabilityResponse,
    Unit,
    UnitCapacity,
    UnitCapacityRequest,
    UnitCapacityResponse,
)
from ..services.availability_service import AvailabilityService
from ..services.catalog_service import CatalogService
from ..services.ledger_service import LedgerService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/collection", tags=["collection"])

# Define dependencies to avoid B008 linting errors
DB_DEPENDENCY = Depends(get_db)


@router.post("/create", response_model=Collection)
async def create_collection(
    request: CreateCollectionRequest,
    db: AsyncSession = DB_DEPENDENCY
) -> JSONResponse:
    """Create a new collection. Slugs are unique."""
    collection = await CatalogService(db).create_collection(request)
    response_data = Collection.model_validate(collection)
    return JSONResponse(status_code=200, content=response_data.model_dump(mode="json"))


@router.post("/unit/create", response_model=Unit)
async def create_unit(
    request: CreateUnitRequest,
    db: AsyncSession = DB_DEPENDENCY
) -> JSONResponse:
    """
    Add a unit to a collection.

    Units are allocated in creation order, so the first unit created is
    filled first.
    """
    unit = await CatalogService(db).create_unit(request)
    response_data = Unit.model_validate(unit)
    return JSONResponse(status_code=200, content=response_data.model_dump(mode="json"))


@router.post("/tier/create", response_model=PricingTier)
async def create_pricing_tier(
    request: CreatePricingTierRequest,
    db: AsyncSession = DB_DEPENDENCY
) -> JSONResponse:
    """Create a pricing tier with its sale window and per-currency prices."""
    tier = await CatalogService(db).create_pricing_tier(request)
    response_data = PricingTier.model_validate(tier)
    return JSONResponse(status_code=200, content=response_data.model_dump(mode="json"))


@router.post("/availability", response_model=TierAvailabilityResponse)
async def tier_availability(
    request: TierAvailabilityRequest,
    db: AsyncSession = DB_DEPENDENCY
) -> JSONResponse:
    """
    Report which tiers active at ``as_of`` can still be bought.

    A tier is available while at least one unit alone has that many basis
    points left.
    """
    as_of = to_naive_utc(request.as_of) if request.as_of else utcnow()
    availability = await AvailabilityService(db).availability(request.collection_id, as_of)

    logger.debug(
        "Tier availability requested",
        extra={"collection_id": request.collection_id, "as_of": as_of.isoformat()}
    )

    response_data = TierAvailabilityResponse(
        collection_id=request.collection_id,
        as_of=as_of,
        availability=availability
    )
    return JSONResponse(status_code=200, content=response_data.model_dump(mode="json"))


@router.post("/capacity", response_model=UnitCapacityResponse)
async def unit_capacity(
    request: UnitCapacityRequest,
    db: AsyncSession = DB_DEPENDENCY
) -> JSONResponse:
    """Per-unit ownership totals of a collection, in allocation order."""
    await CatalogService(db).get_collection_or_raise(request.collection_id)
    capacities = await LedgerService(db).capacities(request.collection_id)

    response_data = UnitCapacityResponse(
        collection_id=request.collection_id,
        units=[
            UnitCapacity(
                unit_id=capacity.unit_id,
                name=capacity.name,
                total_owned=capacity.total_owned,
                available_capacity=capacity.available_capacity
            )
            for capacity in capacities
        ]
    )
    return JSONResponse(status_code=200, content=response_data.model_dump(mode="json"))
