"""Unit tests for catalog administration."""

import logging

import pytest
from sqlalchemy import func, select

from fractional.core.exceptions import CollectionNotFoundError, ConflictError
from fractional.models.catalog import Unit
from fractional.schemas.catalog import CreateCollectionRequest, CreateUnitRequest
from fractional.services.catalog_service import CatalogService


async def create_collection(session, slug="palm-cove"):
    collection = await CatalogService(session).create_collection(
        CreateCollectionRequest(name="Palm Cove", slug=slug)
    )
    return collection.id


@pytest.mark.asyncio
async def test_create_unit_logs_unit_name(test_session, caplog):
    """Creating a unit returns it and logs its name at INFO."""
    collection_id = await create_collection(test_session)
    caplog.set_level(logging.INFO, logger="fractional.services.catalog_service")

    unit = await CatalogService(test_session).create_unit(
        CreateUnitRequest(collection_id=collection_id, name="B1")
    )

    assert unit.name == "B1"
    assert unit.collection_id == collection_id

    created = [record for record in caplog.records if record.getMessage() == "Unit created successfully"]
    assert len(created) == 1
    assert created[0].unit_name == "B1"
    assert created[0].unit_id == unit.id


@pytest.mark.asyncio
async def test_create_unit_rejects_duplicate_name(test_session):
    """Unit names are unique within a collection."""
    collection_id = await create_collection(test_session)
    catalog = CatalogService(test_session)
    await catalog.create_unit(CreateUnitRequest(collection_id=collection_id, name="B1"))

    with pytest.raises(ConflictError):
        await catalog.create_unit(CreateUnitRequest(collection_id=collection_id, name="B1"))

    count = (await test_session.execute(
        select(func.count()).select_from(Unit).where(Unit.collection_id == collection_id)
    )).scalar_one()
    assert count == 1


@pytest.mark.asyncio
async def test_same_unit_name_in_another_collection(test_session):
    """Two collections can each have a B1."""
    first = await create_collection(test_session, slug="palm-cove")
    second = await create_collection(test_session, slug="coral-point")
    catalog = CatalogService(test_session)

    a = await catalog.create_unit(CreateUnitRequest(collection_id=first, name="B1"))
    b = await catalog.create_unit(CreateUnitRequest(collection_id=second, name="B1"))

    assert a.id != b.id


@pytest.mark.asyncio
async def test_create_unit_unknown_collection(test_session):
    """A unit cannot be added to a missing collection."""
    with pytest.raises(CollectionNotFoundError):
        await CatalogService(test_session).create_unit(CreateUnitRequest(collection_id=999, name="B1"))


@pytest.mark.asyncio
async def test_unit_create_endpoint(test_client):
    """The unit create route returns the unit rather than a server error."""
    response = await test_client.post(
        "/v1/collection/create",
        json={"name": "Palm Cove", "slug": "palm-cove"}
    )
    assert response.status_code == 200
    collection_id = response.json()["id"]

    response = await test_client.post(
        "/v1/collection/unit/create",
        json={"collection_id": collection_id, "name": "B1"}
    )

    assert response.status_code == 200
    assert response.json()["name"] == "B1"
