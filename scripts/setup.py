#!/usr/bin/env python3
"""Setup script for the fractional resort settlement API."""

import asyncio
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path

# Add the server directory to the Python path
server_dir = Path(__file__).parent.parent / "server"
sys.path.insert(0, str(server_dir))

from alembic import command  # noqa: E402
from alembic.config import Config  # noqa: E402
from sqlalchemy import func, select  # noqa: E402

from fractional.core.database import async_session_factory, close_db  # noqa: E402
from fractional.models import Collection  # noqa: E402
from fractional.schemas.catalog import (  # noqa: E402
    CreateCollectionRequest,
    CreatePricingTierRequest,
    CreateUnitRequest,
)
from fractional.services.catalog_service import CatalogService  # noqa: E402

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# Basis points -> (label, USD cents, USDC minor units)
SAMPLE_TIERS = {
    500: ("5%", 120000, 1200000000),
    1000: ("10%", 230000, 2300000000),
    2500: ("25%", 550000, 5500000000),
}


def setup_database():
    """Bring the schema up to the latest migration."""
    logger.info("Running database migrations...")
    alembic_cfg = Config(str(server_dir / "db" / "alembic.ini"))
    alembic_cfg.set_main_option("script_location", str(server_dir / "db" / "alembic"))
    command.upgrade(alembic_cfg, "head")
    logger.info("Database migrations completed")


async def create_sample_data():
    """Create a sample collection with three units and its pricing tiers."""
    logger.info("Creating sample data...")

    async with async_session_factory() as db:
        existing = await db.execute(select(func.count()).select_from(Collection))
        if existing.scalar_one() > 0:
            logger.info("Sample data already exists, skipping...")
            return

        catalog = CatalogService(db)
        collection = await catalog.create_collection(
            CreateCollectionRequest(
                name="Azure Bay Villas",
                slug="azure-bay-villas",
                description="Beachfront villas sold in fractional shares"
            )
        )

        for name in ("B1", "B2", "B3"):
            await catalog.create_unit(CreateUnitRequest(collection_id=collection.id, name=name))

        for basis_points, (label, usd, usdc) in SAMPLE_TIERS.items():
            await catalog.create_pricing_tier(
                CreatePricingTierRequest(
                    collection_id=collection.id,
                    percentage=basis_points,
                    prices={"USD": usd, "USDC": usdc},
                    display_label=label,
                    effective_from=datetime(2024, 1, 1, tzinfo=timezone.utc)
                )
            )

        logger.info("Sample data created", extra={"collection_id": collection.id})

    await close_db()


def main():
    """Main setup function."""
    logger.info("Starting fractional settlement API setup...")

    # Alembic's env runs its own event loop, so migrate before seeding
    setup_database()
    asyncio.run(create_sample_data())

    logger.info("Setup completed successfully!")
    logger.info("You can now start the API server with: cd server && uvicorn fractional.main:app --reload")


if __name__ == "__main__":
    main()
