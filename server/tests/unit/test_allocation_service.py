"""Unit tests for sequential-fill allocation."""

import pytest

from fractional.core.exceptions import SoldOutError
from fractional.models.user import User
from fractional.services.allocation_service import AllocationService, select_first_fit
from fractional.services.ledger_service import LedgerService, UnitCapacity


def test_select_first_fit_prefers_lowest_unit():
    """The lowest-id unit that fits wins, regardless of input order."""
    capacities = [
        UnitCapacity(unit_id=3, name="B3", total_owned=0),
        UnitCapacity(unit_id=1, name="B1", total_owned=9000),
        UnitCapacity(unit_id=2, name="B2", total_owned=2000),
    ]

    assert select_first_fit(capacities, 1000).unit_id == 1
    assert select_first_fit(capacities, 1500).unit_id == 2
    assert select_first_fit(capacities, 9000).unit_id == 3
    assert select_first_fit(capacities, 10001) is None
    assert select_first_fit([], 500) is None


@pytest.mark.asyncio
async def test_sequential_fill(test_session, seeded):
    """Three 40% purchases fill B1 twice and spill the third into B2."""
    user = User(email="buyer@example.com")
    test_session.add(user)
    await test_session.commit()

    allocation = AllocationService(test_session)
    names = []
    for _ in range(3):
        unit, ownership = await allocation.allocate(seeded["collection_id"], 4000, user.id, currency="USD")
        await test_session.commit()
        names.append(unit.name)
        assert ownership.percentage_owned == 4000

    assert names == ["B1", "B1", "B2"]

    ledger = LedgerService(test_session)
    b1, b2, b3 = seeded["unit_ids"]
    assert await ledger.total_owned(b1) == 8000
    assert await ledger.total_owned(b2) == 4000
    assert await ledger.total_owned(b3) == 0


@pytest.mark.asyncio
async def test_find_available_unit_is_deterministic(test_session, seeded):
    """The same ledger state always yields the same unit."""
    allocation = AllocationService(test_session)

    first = await allocation.find_available_unit(seeded["collection_id"], 2500)
    second = await allocation.find_available_unit(seeded["collection_id"], 2500)

    assert first.id == second.id == seeded["unit_ids"][0]


@pytest.mark.asyncio
async def test_find_available_unit_none_when_nothing_fits(test_session, seeded):
    """No single unit can hold more than 10000 bp."""
    allocation = AllocationService(test_session)

    assert await allocation.find_available_unit(seeded["collection_id"], 10001) is None
    assert await allocation.find_available_unit(99999, 500) is None


@pytest.mark.asyncio
async def test_allocate_sold_out(test_session, seeded):
    """A request no unit can absorb is refused and nothing is recorded."""
    user = User(email="buyer@example.com")
    test_session.add(user)
    await test_session.commit()
    user_id = user.id

    allocation = AllocationService(test_session)
    for _ in seeded["unit_ids"]:
        await allocation.allocate(seeded["collection_id"], 9600, user_id, currency="USD")
    await test_session.commit()

    with pytest.raises(SoldOutError) as exc_info:
        await allocation.allocate(seeded["collection_id"], 500, user_id, currency="USD")

    assert exc_info.value.error_kind == "SoldOut"
    await test_session.rollback()

    ledger = LedgerService(test_session)
    assert sum(c.total_owned for c in await ledger.capacities(seeded["collection_id"])) == 3 * 9600
