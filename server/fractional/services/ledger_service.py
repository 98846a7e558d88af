"""Ownership ledger: basis-point shares per unit and holder."""

import logging
from dataclasses import dataclass

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.database import acquire_collection_lock
from ..core.exceptions import CapacityExceededError, ValidationError
from ..models.catalog import Unit
from ..models.ownership import OwnershipRecord
from ..schemas.common import BasisPoints
from .catalog_service import CatalogService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UnitCapacity:
    """Ownership totals for one unit at the moment they were read."""

    unit_id: int
    name: str
    total_owned: int

    @property
    def available_capacity(self) -> int:
        return BasisPoints.WHOLE - self.total_owned


class LedgerService:
    """
    Authoritative record of who owns how much of which unit.

    The ledger never commits. ``record`` flushes inside the caller's
    transaction so the capacity check, the insert and whatever the caller
    does next commit or roll back together.
    """

    def __init__(self, db: AsyncSession):
        self.db = db
        self.catalog_service = CatalogService(db)

    async def total_owned(self, unit_id: int) -> int:
        """Basis points of a unit already owned."""
        stmt = select(func.coalesce(func.sum(OwnershipRecord.percentage_owned), 0)).where(
            OwnershipRecord.unit_id == unit_id
        )
        result = await self.db.execute(stmt)
        return int(result.scalar_one())

    async def available_capacity(self, unit_id: int) -> int:
        """Basis points of a unit still for sale."""
        return BasisPoints.WHOLE - await self.total_owned(unit_id)

    async def capacities(self, collection_id: int) -> list[UnitCapacity]:
        """Every unit of a collection with its owned total, in ascending id order."""
        owned = func.coalesce(func.sum(OwnershipRecord.percentage_owned), 0)
        stmt = (
            select(Unit.id, Unit.name, owned)
            .outerjoin(OwnershipRecord, OwnershipRecord.unit_id == Unit.id)
            .where(Unit.collection_id == collection_id)
            .group_by(Unit.id, Unit.name)
            .order_by(Unit.id)
        )
        result = await self.db.execute(stmt)
        return [
            UnitCapacity(unit_id=unit_id, name=name, total_owned=int(total))
            for unit_id, name, total in result.all()
        ]

    async def record(
        self,
        unit_id: int,
        holder_id: str,
        basis_points: int,
        *,
        currency: str,
        purchase_amount_minor: int = 0,
        pricing_tier_id: int | None = None,
        payment_id: int | None = None,
        affiliate_link_id: int | None = None,
    ) -> OwnershipRecord:
        """
        Record a holder's share of a unit.

        Takes the collection lock and re-reads the unit's total before
        inserting, so concurrent writers cannot push a unit past 10000 bp.

        Raises:
            ValidationError: If basis_points is outside 1..10000
            UnitNotFoundError: If the unit does not exist
            CapacityExceededError: If the unit cannot absorb the share
        """
        if basis_points <= 0 or basis_points > BasisPoints.WHOLE:
            raise ValidationError(
                detail=f"Basis points must be between 1 and {BasisPoints.WHOLE}, got {basis_points}",
                errors={"basis_points": basis_points}
            )

        unit = await self.catalog_service.get_unit_or_raise(unit_id)
        await acquire_collection_lock(self.db, unit.collection_id)

        owned = await self.total_owned(unit_id)
        available = BasisPoints.WHOLE - owned
        if basis_points > available:
            logger.warning(
                "Ownership record rejected - unit capacity exceeded",
                extra={
                    "unit_id": unit_id,
                    "requested_basis_points": basis_points,
                    "available_basis_points": available,
                    "payment_id": payment_id
                }
            )
            raise CapacityExceededError(unit_id, basis_points, available)

        ownership = OwnershipRecord(
            unit_id=unit_id,
            user_id=holder_id,
            pricing_tier_id=pricing_tier_id,
            percentage_owned=basis_points,
            purchase_amount_minor=purchase_amount_minor,
            currency=currency,
            payment_id=payment_id,
            affiliate_link_id=affiliate_link_id
        )
        self.db.add(ownership)
        await self.db.flush()

        logger.info(
            "Ownership recorded",
            extra={
                "ownership_id": ownership.id,
                "unit_id": unit_id,
                "holder_id": holder_id,
                "basis_points": basis_points,
                "unit_total_owned": owned + basis_points,
                "payment_id": payment_id
            }
        )

        return ownership

    async def holdings(self, holder_id: str) -> list[OwnershipRecord]:
        """A holder's ownership records, oldest first."""
        stmt = (
            select(OwnershipRecord)
            .where(OwnershipRecord.user_id == holder_id)
            .order_by(OwnershipRecord.id)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())
