"""Test configuration and fixtures."""

import os
from datetime import date, datetime, timedelta, timezone

# The module-level engine is built from settings at import time
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import AsyncClient  # noqa: E402

from fractional.core.database import Base, build_engine, build_session_factory, get_db  # noqa: E402
from fractional.models import *  # noqa: F403,E402 - Import all models
from fractional.models.payment import PaymentProvider, PaymentPurpose  # noqa: E402
from fractional.schemas.booking import CreateBookingRequest  # noqa: E402
from fractional.schemas.catalog import (  # noqa: E402
    CreateCollectionRequest,
    CreatePricingTierRequest,
    CreateUnitRequest,
)
from fractional.schemas.payment import PaymentEvent  # noqa: E402
from fractional.services.booking_service import BookingService  # noqa: E402
from fractional.services.catalog_service import CatalogService  # noqa: E402

# Test database URL (in-memory SQLite for speed)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

TIER_WINDOW_START = datetime(2024, 1, 1, tzinfo=timezone.utc)
SETTLED_AT = datetime(2024, 6, 1, 12, 0, 0)


async def create_schema(engine):
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def seed_collection(session, slug="azure-bay", unit_count=3, tiers=((500, 120000), (1000, 230000), (2500, 550000))):
    """
    Create a collection with units B1..Bn and one USD tier per (basis points, price) pair.

    Returns plain ids rather than ORM objects, since a settlement rollback
    expires every instance held by the session.
    """
    catalog = CatalogService(session)
    collection = await catalog.create_collection(
        CreateCollectionRequest(name="Azure Bay Villas", slug=slug, description="Beachfront villas")
    )
    collection_id = collection.id

    unit_ids = []
    for index in range(1, unit_count + 1):
        unit = await catalog.create_unit(CreateUnitRequest(collection_id=collection_id, name=f"B{index}"))
        unit_ids.append(unit.id)

    tier_ids = {}
    for basis_points, price in tiers:
        tier = await catalog.create_pricing_tier(
            CreatePricingTierRequest(
                collection_id=collection_id,
                percentage=basis_points,
                prices={"usd": price},
                display_label=f"{basis_points / 100:g}%",
                effective_from=TIER_WINDOW_START
            )
        )
        tier_ids[basis_points] = tier.id

    return {
        "collection_id": collection_id,
        "unit_ids": unit_ids,
        "tier_ids": tier_ids,
        "tier_prices": dict(tiers),
    }


@pytest_asyncio.fixture(scope="function")
async def test_engine():
    """Create a test database engine."""
    engine = build_engine(TEST_DATABASE_URL)

    # Create tables
    await create_schema(engine)

    yield engine

    # Drop tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def test_session(test_engine):
    """Create a test database session."""
    async_session = build_session_factory(test_engine)

    async with async_session() as session:
        yield session


@pytest_asyncio.fixture(scope="function")
async def file_session_factory(tmp_path):
    """
    Session factory over a file database.

    Every session gets its own connection, so concurrent tasks contend for
    the SQLite write lock the way separate workers would.
    """
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'settlement.db'}")
    await create_schema(engine)

    yield build_session_factory(engine)

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def test_app(test_session):
    """Create a test FastAPI application."""
    from fastapi import FastAPI
    from fastapi.exceptions import RequestValidationError
    from fastapi.middleware.cors import CORSMiddleware

    from fractional.core.exceptions import (
        ProblemDetailsException,
        generic_exception_handler,
        problem_details_handler,
        request_validation_handler,
    )
    from fractional.routers import booking, collection, health, metrics, payment

    # Create a simplified test app without lifespan
    app = FastAPI(
        title="Fractional Resort Settlement API (Test)",
        description="Test version of the API",
        version="1.0.0-test",
    )

    # Configure CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Simplified for tests
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
    )

    # Register exception handlers
    app.add_exception_handler(ProblemDetailsException, problem_details_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, generic_exception_handler)

    # Add inline health endpoints (like in main app)
    @app.get("/health")
    async def health_check():
        return {
            "status": "healthy",
            "service": "fractional-settlement-api",
            "version": "1.0.0",
            "environment": "test",
            "debug": True,
        }

    @app.get("/ready")
    async def readiness_check():
        return {
            "status": "ready",
            "service": "fractional-settlement-api",
            "checks": {"database": "ok"},
        }

    @app.get("/info")
    async def service_info():
        return {
            "service": "fractional-settlement-api",
            "version": "1.0.0",
            "environment": "test",
            "features": {
                "payment_signatures": True,
                "idempotent_settlement": True,
                "sequential_fill_allocation": True,
            },
        }

    # Register API routers
    app.include_router(health.router)
    app.include_router(collection.router)
    app.include_router(booking.router)
    app.include_router(payment.router)
    app.include_router(metrics.router)

    # Override database dependency
    async def override_get_db():
        yield test_session

    app.dependency_overrides[get_db] = override_get_db

    yield app

    # Clean up
    app.dependency_overrides.clear()


@pytest_asyncio.fixture(scope="function")
async def test_client(test_app):
    """Create a test HTTP client."""
    from httpx import ASGITransport
    transport = ASGITransport(app=test_app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest_asyncio.fixture(scope="function")
async def seeded(test_session):
    """A collection with units B1, B2, B3 and 5%, 10% and 25% tiers."""
    return await seed_collection(test_session)


@pytest.fixture
def settled_at():
    """Fixed settlement time inside every seeded tier's window."""
    return SETTLED_AT


@pytest.fixture
def make_ownership_event():
    """Build ownership payment events for a seeded collection."""
    def _make(seeded, basis_points=500, external_id="cs_test_1", **overrides):
        fields = {
            "external_id": external_id,
            "provider": PaymentProvider.STRIPE,
            "amount_paid_minor_units": seeded["tier_prices"][basis_points],
            "currency": "USD",
            "purpose": PaymentPurpose.OWNERSHIP,
            "collection_id": seeded["collection_id"],
            "pricing_tier_id": seeded["tier_ids"][basis_points],
            "payer_email": "investor@example.com",
        }
        fields.update(overrides)
        return PaymentEvent(**fields)

    return _make


@pytest.fixture
def sample_booking_data():
    """Sample booking data for testing."""
    check_in = date(2025, 3, 10)
    return {
        "guest_name": "Ada Guest",
        "guest_email": "ada@example.com",
        "number_of_guests": 3,
        "check_in": check_in,
        "check_out": check_in + timedelta(days=4),
        "total_price_minor": 180000,
        "currency": "USD",
    }


@pytest.fixture
def create_pending_booking(test_session, sample_booking_data):
    """Create PENDING_PAYMENT bookings against a seeded collection."""
    async def _create(seeded, **overrides):
        data = {**sample_booking_data, "collection_id": seeded["collection_id"], **overrides}
        return await BookingService(test_session).create_booking(CreateBookingRequest(**data))

    return _create


@pytest.fixture
def make_booking_event():
    """Build booking payment events."""
    def _make(booking, external_id="pi_booking_1", **overrides):
        fields = {
            "external_id": external_id,
            "provider": PaymentProvider.STRIPE,
            "amount_paid_minor_units": booking.total_price_minor,
            "currency": booking.currency,
            "purpose": PaymentPurpose.BOOKING,
            "booking_id": booking.id,
        }
        fields.update(overrides)
        return PaymentEvent(**fields)

    return _make


@pytest.fixture
def seed(test_session):
    """Seed additional collections with custom units and tiers."""
    async def _seed(**kwargs):
        return await seed_collection(test_session, **kwargs)

    return _seed
