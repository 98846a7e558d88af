"""Unit tests for tier availability."""

from datetime import datetime, timezone

import pytest

from fractional.core.exceptions import CollectionNotFoundError
from fractional.models.user import User
from fractional.schemas.catalog import CreateCollectionRequest, CreatePricingTierRequest
from fractional.services.availability_service import AvailabilityService
from fractional.services.catalog_service import CatalogService
from fractional.services.ledger_service import LedgerService


async def fill_units(session, unit_ids, basis_points):
    user = User(email="filler@example.com")
    session.add(user)
    await session.commit()

    ledger = LedgerService(session)
    for unit_id in unit_ids:
        await ledger.record(unit_id, user.id, basis_points, currency="USD")
    await session.commit()


@pytest.mark.asyncio
async def test_all_tiers_available_on_empty_collection(test_session, seeded, settled_at):
    """Every active tier can be bought before any sale."""
    availability = await AvailabilityService(test_session).availability(seeded["collection_id"], settled_at)

    assert availability == {500: True, 1000: True, 2500: True}


@pytest.mark.asyncio
async def test_tier_unavailable_when_no_single_unit_fits(test_session, seeded, settled_at):
    """With 90% of every unit owned, only tiers up to 10% remain."""
    await fill_units(test_session, seeded["unit_ids"], 9000)

    availability = await AvailabilityService(test_session).availability(seeded["collection_id"], settled_at)

    assert availability == {500: True, 1000: True, 2500: False}


@pytest.mark.asyncio
async def test_capacity_is_not_pooled_across_units(test_session, seed, settled_at):
    """Two units with 10% left each do not make a 15% tier available."""
    seeded = await seed(slug="two-units", tiers=((500, 100), (1500, 300)), unit_count=2)
    await fill_units(test_session, seeded["unit_ids"], 9000)

    availability = await AvailabilityService(test_session).availability(seeded["collection_id"], settled_at)

    assert availability == {500: True, 1500: False}


@pytest.mark.asyncio
async def test_inactive_and_out_of_window_tiers_excluded(test_session, seeded, settled_at):
    """Only tiers active and inside their window at as_of are reported."""
    catalog = CatalogService(test_session)
    await catalog.create_pricing_tier(
        CreatePricingTierRequest(
            collection_id=seeded["collection_id"],
            percentage=5000,
            prices={"USD": 1000000},
            display_label="50%",
            is_active=False,
            effective_from=datetime(2024, 1, 1, tzinfo=timezone.utc)
        )
    )
    await catalog.create_pricing_tier(
        CreatePricingTierRequest(
            collection_id=seeded["collection_id"],
            percentage=7500,
            prices={"USD": 1500000},
            display_label="75%",
            effective_from=datetime(2030, 1, 1, tzinfo=timezone.utc)
        )
    )
    await catalog.create_pricing_tier(
        CreatePricingTierRequest(
            collection_id=seeded["collection_id"],
            percentage=200,
            prices={"USD": 50000},
            display_label="2%",
            effective_from=datetime(2023, 1, 1, tzinfo=timezone.utc),
            effective_until=datetime(2024, 1, 1, tzinfo=timezone.utc)
        )
    )

    availability = await AvailabilityService(test_session).availability(seeded["collection_id"], settled_at)

    assert set(availability) == {500, 1000, 2500}


@pytest.mark.asyncio
async def test_collection_without_units_reports_no_tiers(test_session, settled_at):
    """No units means nothing can be bought, so no tiers are listed."""
    catalog = CatalogService(test_session)
    collection = await catalog.create_collection(CreateCollectionRequest(name="Empty", slug="empty"))
    await catalog.create_pricing_tier(
        CreatePricingTierRequest(
            collection_id=collection.id,
            percentage=500,
            prices={"USD": 100},
            display_label="5%",
            effective_from=datetime(2024, 1, 1, tzinfo=timezone.utc)
        )
    )

    assert await AvailabilityService(test_session).availability(collection.id, settled_at) == {}


@pytest.mark.asyncio
async def test_unknown_collection(test_session, settled_at):
    """Availability of a missing collection is an error."""
    with pytest.raises(CollectionNotFoundError):
        await AvailabilityService(test_session).availability(99999, settled_at)
