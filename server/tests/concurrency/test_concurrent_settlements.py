"""Concurrency tests for payment settlement."""

import asyncio
from datetime import datetime, timezone

import pytest
from sqlalchemy import func, select

from fractional.models.booking import BookingStatus, BookingUnit
from fractional.models.ownership import OwnershipRecord
from fractional.models.payment import PaymentPurpose, PaymentRecord
from fractional.models.user import User
from fractional.schemas.booking import CreateBookingRequest
from fractional.schemas.catalog import CreateCollectionRequest, CreatePricingTierRequest, CreateUnitRequest
from fractional.services.booking_service import BookingService
from fractional.services.catalog_service import CatalogService
from fractional.services.ledger_service import LedgerService
from fractional.services.settlement_dispatcher import SettlementDispatcher


async def seed_file_database(session_factory, unit_count=2):
    async with session_factory() as session:
        catalog = CatalogService(session)
        collection = await catalog.create_collection(CreateCollectionRequest(name="Race Villas", slug="race-villas"))
        for index in range(1, unit_count + 1):
            await catalog.create_unit(CreateUnitRequest(collection_id=collection.id, name=f"B{index}"))
        tier = await catalog.create_pricing_tier(
            CreatePricingTierRequest(
                collection_id=collection.id,
                percentage=2500,
                prices={"USD": 550000},
                display_label="25%",
                effective_from=datetime(2024, 1, 1, tzinfo=timezone.utc)
            )
        )
        return collection.id, tier.id


@pytest.mark.asyncio
async def test_concurrent_purchases_never_oversell(file_session_factory, make_ownership_event, settled_at):
    """Many buyers racing for two units never push either past 100%."""
    collection_id, tier_id = await seed_file_database(file_session_factory)
    seeded = {"collection_id": collection_id, "tier_ids": {2500: tier_id}, "tier_prices": {2500: 550000}}

    async def settle(index: int):
        async with file_session_factory() as session:
            event = make_ownership_event(
                seeded, 2500, external_id=f"cs_race_{index}", payer_email=f"buyer{index}@example.com"
            )
            return await SettlementDispatcher(session).dispatch(event, settled_at)

    results = await asyncio.gather(*(settle(i) for i in range(12)))

    applied = [r for r in results if r.success]
    failed = [r for r in results if not r.success]
    assert len(applied) == 8
    assert {r.error_kind for r in failed} == {"AllocationFailedAfterPayment"}

    async with file_session_factory() as session:
        capacities = await LedgerService(session).capacities(collection_id)
        assert [c.total_owned for c in capacities] == [10000, 10000]

        payments = (await session.execute(select(func.count()).select_from(PaymentRecord))).scalar_one()
        assert payments == 12


@pytest.mark.asyncio
async def test_concurrent_redeliveries_apply_once(file_session_factory, make_ownership_event, settled_at):
    """Simultaneous deliveries of one event record one payment and one share."""
    collection_id, tier_id = await seed_file_database(file_session_factory)
    seeded = {"collection_id": collection_id, "tier_ids": {2500: tier_id}, "tier_prices": {2500: 550000}}
    event = make_ownership_event(seeded, 2500, external_id="cs_redelivered")

    async def deliver():
        async with file_session_factory() as session:
            return await SettlementDispatcher(session).dispatch(event, settled_at)

    results = await asyncio.gather(*(deliver() for _ in range(8)))

    assert all(r.success for r in results)
    assert sum(1 for r in results if not r.duplicate) == 1

    async with file_session_factory() as session:
        assert (await session.execute(select(func.count()).select_from(PaymentRecord))).scalar_one() == 1
        assert (await session.execute(select(func.count()).select_from(OwnershipRecord))).scalar_one() == 1
        assert (await session.execute(select(func.count()).select_from(User))).scalar_one() == 1


@pytest.mark.asyncio
async def test_concurrent_booking_payments_never_double_book(file_session_factory, make_booking_event, sample_booking_data, settled_at):
    """Overlapping paid stays racing for two units: at most two get units."""
    collection_id, _ = await seed_file_database(file_session_factory)

    bookings = []
    async with file_session_factory() as session:
        service = BookingService(session)
        for index in range(5):
            booking = await service.create_booking(
                CreateBookingRequest(**{**sample_booking_data, "collection_id": collection_id, "number_of_guests": 2})
            )
            bookings.append(make_booking_event(booking, external_id=f"pi_race_{index}"))

    async def pay(event):
        async with file_session_factory() as session:
            return await SettlementDispatcher(session).dispatch(event, settled_at)

    results = await asyncio.gather(*(pay(event) for event in bookings))

    assert sum(1 for r in results if r.success) == 2
    assert all(r.purpose == PaymentPurpose.BOOKING for r in results)

    async with file_session_factory() as session:
        assignments = (await session.execute(select(BookingUnit))).scalars().all()
        assert len(assignments) == 2
        assert len({a.unit_id for a in assignments}) == 2

        service = BookingService(session)
        for event in bookings:
            booking = await service.get_booking_or_raise(event.booking_id)
            assert booking.status == BookingStatus.PAYMENT_RECEIVED
