"""Unit tests for booking payment settlement."""

from datetime import date

import pytest
from sqlalchemy import func, select

from fractional.core.exceptions import AllocationFailedAfterPaymentError
from fractional.models.booking import BookingStatus, BookingUnit
from fractional.models.payment import PaymentRecord
from fractional.services.booking_service import BookingService
from fractional.services.booking_settlement_service import BookingSettlementService
from fractional.services.settlement_dispatcher import SettlementDispatcher


async def count(session, model) -> int:
    return (await session.execute(select(func.count()).select_from(model))).scalar_one()


async def assigned_unit_ids(session, booking_id):
    booking = await BookingService(session).get_booking_or_raise(booking_id)
    return sorted(assignment.unit_id for assignment in booking.assigned_units)


class FixedUnitAvailability:
    """Offers a fixed list of units whatever the dates."""

    def __init__(self, units):
        self.units = units
        self.calls = []

    async def find_units(self, collection_id, check_in, check_out, count, exclude_booking_id=None):
        self.calls.append((collection_id, check_in, check_out, count))
        return self.units[:count]


@pytest.mark.asyncio
async def test_booking_payment_assigns_first_free_unit(test_session, seeded, settled_at, create_pending_booking, make_booking_event):
    """A paid booking moves to PAYMENT_RECEIVED and gets B1."""
    booking = await create_pending_booking(seeded)
    booking_id = booking.id
    event = make_booking_event(booking)

    result = await SettlementDispatcher(test_session).dispatch(event, settled_at)

    assert result.success is True
    assert result.unit_name == "B1"
    assert result.booking_id == booking_id

    booking = await BookingService(test_session).get_booking_or_raise(booking_id)
    assert booking.status == BookingStatus.PAYMENT_RECEIVED
    assert booking.payment_id == result.payment_id
    assert [a.unit_id for a in booking.assigned_units] == [seeded["unit_ids"][0]]


@pytest.mark.asyncio
async def test_large_party_gets_several_units(test_session, seeded, settled_at, create_pending_booking, make_booking_event):
    """Nine guests need three units at four guests per unit."""
    booking = await create_pending_booking(seeded, number_of_guests=9)
    booking_id = booking.id
    assert booking.units_required == 3

    result = await SettlementDispatcher(test_session).dispatch(make_booking_event(booking), settled_at)

    assert result.success is True
    assert result.unit_name == "B1, B2, B3"
    assert await assigned_unit_ids(test_session, booking_id) == sorted(seeded["unit_ids"])


@pytest.mark.asyncio
async def test_overlapping_stays_use_different_units(test_session, seeded, settled_at, create_pending_booking, make_booking_event):
    """Overlapping stays never share a unit; back-to-back stays may."""
    dispatcher = SettlementDispatcher(test_session)
    b1, b2, _ = seeded["unit_ids"]

    first = await create_pending_booking(seeded, check_in=date(2025, 3, 10), check_out=date(2025, 3, 14))
    first_id = first.id
    await dispatcher.dispatch(make_booking_event(first, external_id="pi_1"), settled_at)

    overlapping = await create_pending_booking(seeded, check_in=date(2025, 3, 12), check_out=date(2025, 3, 16))
    overlapping_id = overlapping.id
    await dispatcher.dispatch(make_booking_event(overlapping, external_id="pi_2"), settled_at)

    back_to_back = await create_pending_booking(seeded, check_in=date(2025, 3, 16), check_out=date(2025, 3, 18))
    back_to_back_id = back_to_back.id
    await dispatcher.dispatch(make_booking_event(back_to_back, external_id="pi_3"), settled_at)

    assert await assigned_unit_ids(test_session, first_id) == [b1]
    assert await assigned_unit_ids(test_session, overlapping_id) == [b2]
    assert await assigned_unit_ids(test_session, back_to_back_id) == [b1]


@pytest.mark.asyncio
async def test_cancelled_booking_releases_its_units(test_session, seeded, settled_at, create_pending_booking, make_booking_event):
    """Dates held by a cancelled booking can be booked again."""
    dispatcher = SettlementDispatcher(test_session)
    b1 = seeded["unit_ids"][0]

    first = await create_pending_booking(seeded)
    first_id = first.id
    await dispatcher.dispatch(make_booking_event(first, external_id="pi_1"), settled_at)
    await BookingService(test_session).cancel_booking(first_id, "Change of plans")

    second = await create_pending_booking(seeded)
    second_id = second.id
    await dispatcher.dispatch(make_booking_event(second, external_id="pi_2"), settled_at)

    assert await assigned_unit_ids(test_session, second_id) == [b1]


@pytest.mark.asyncio
async def test_no_free_units_keeps_payment_for_reconciliation(test_session, seeded, settled_at, create_pending_booking, make_booking_event):
    """When too few units are free the payment and status change stay, without units."""
    dispatcher = SettlementDispatcher(test_session)

    blocker = await create_pending_booking(seeded, number_of_guests=8)
    await dispatcher.dispatch(make_booking_event(blocker, external_id="pi_blocker"), settled_at)

    booking = await create_pending_booking(seeded, number_of_guests=6)
    booking_id = booking.id
    result = await dispatcher.dispatch(make_booking_event(booking, external_id="pi_late"), settled_at)

    assert result.success is False
    assert result.error_kind == "AllocationFailedAfterPayment"
    assert "UnitsUnavailable" in result.detail

    booking = await BookingService(test_session).get_booking_or_raise(booking_id)
    assert booking.status == BookingStatus.PAYMENT_RECEIVED
    assert booking.payment_id is not None
    assert booking.assigned_units == []


@pytest.mark.asyncio
async def test_booking_redelivery_is_a_no_op(test_session, seeded, settled_at, create_pending_booking, make_booking_event):
    """The second delivery of a booking payment changes nothing."""
    dispatcher = SettlementDispatcher(test_session)
    booking = await create_pending_booking(seeded)
    event = make_booking_event(booking)

    first = await dispatcher.dispatch(event, settled_at)
    second = await dispatcher.dispatch(event, settled_at)

    assert first.duplicate is False
    assert second.success is True
    assert second.duplicate is True
    assert second.booking_id == first.booking_id
    assert await count(test_session, PaymentRecord) == 1
    assert await count(test_session, BookingUnit) == 1


@pytest.mark.asyncio
async def test_booking_not_awaiting_payment(test_session, seeded, settled_at, create_pending_booking, make_booking_event):
    """A cancelled booking cannot be paid and no payment is recorded."""
    booking = await create_pending_booking(seeded)
    event = make_booking_event(booking)
    await BookingService(test_session).cancel_booking(event.booking_id)

    result = await SettlementDispatcher(test_session).dispatch(event, settled_at)

    assert result.success is False
    assert result.error_kind == "InvalidBookingState"
    assert await count(test_session, PaymentRecord) == 0


@pytest.mark.asyncio
async def test_unknown_booking(test_session, seeded, settled_at, create_pending_booking, make_booking_event):
    """Paying for a missing booking is rejected."""
    booking = await create_pending_booking(seeded)
    event = make_booking_event(booking, booking_id=99999)

    result = await SettlementDispatcher(test_session).dispatch(event, settled_at)

    assert result.success is False
    assert result.error_kind == "BookingNotFound"
    assert await count(test_session, PaymentRecord) == 0


@pytest.mark.asyncio
async def test_unit_availability_is_injectable(test_session, seeded, settled_at, create_pending_booking, make_booking_event):
    """A supplied availability source decides which units a stay gets."""
    booking = await create_pending_booking(seeded)
    booking_id = booking.id
    event = make_booking_event(booking)
    catalog = BookingService(test_session).catalog_service
    b3 = await catalog.get_unit_or_raise(seeded["unit_ids"][2])
    availability = FixedUnitAvailability([b3])

    result = await SettlementDispatcher(test_session, unit_availability=availability).dispatch(event, settled_at)

    assert result.unit_name == "B3"
    assert availability.calls == [(seeded["collection_id"], date(2025, 3, 10), date(2025, 3, 14), 1)]
    assert await assigned_unit_ids(test_session, booking_id) == [seeded["unit_ids"][2]]


@pytest.mark.asyncio
async def test_coordinator_raises_when_units_unavailable(test_session, seeded, settled_at, create_pending_booking, make_booking_event):
    """Called directly, the coordinator raises the reconciliation error."""
    booking = await create_pending_booking(seeded)
    event = make_booking_event(booking)

    with pytest.raises(AllocationFailedAfterPaymentError) as exc_info:
        await BookingSettlementService(test_session, FixedUnitAvailability([])).settle(event, settled_at)

    assert exc_info.value.problem_details["reason"] == "UnitsUnavailable"
