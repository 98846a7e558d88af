"""Pricing tier model definition."""

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import JSON, Boolean, CheckConstraint, DateTime, ForeignKey, Integer, String, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ..core.database import Base

if TYPE_CHECKING:
    from .catalog import Collection


class PricingTier(Base):
    """A purchasable ownership share size within a collection."""

    __tablename__ = "pricing_tiers"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    collection_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("collections.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    # Share size in basis points (10000 = 100%)
    percentage: Mapped[int] = mapped_column(Integer, nullable=False)

    # Currency code -> price in minor units, e.g. {"USD": 120000, "USDC": 120000000}
    prices: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    display_label: Mapped[str] = mapped_column(String(64), nullable=False)

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    effective_from: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    effective_until: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        nullable=False,
        default=datetime.utcnow,
        server_default=func.now()
    )

    __table_args__ = (
        UniqueConstraint("collection_id", "percentage", "effective_from", name="uq_pricing_tier_collection_percentage"),
        CheckConstraint("percentage > 0", name="ck_pricing_tier_percentage_positive"),
        CheckConstraint("percentage <= 10000", name="ck_pricing_tier_percentage_max"),
    )

    # Relationships
    collection: Mapped["Collection"] = relationship("Collection", back_populates="pricing_tiers")

    def is_effective_at(self, as_of: datetime) -> bool:
        """True when the tier is active and ``as_of`` falls inside its half-open window."""
        if not self.is_active:
            return False
        if as_of < self.effective_from:
            return False
        return self.effective_until is None or as_of < self.effective_until

    def price_for(self, currency: str) -> int | None:
        """Price in minor units for a currency, if the tier is sold in it."""
        return self.prices.get(currency.upper())

    def __repr__(self) -> str:
        return (
            f"<PricingTier(id={self.id}, collection_id={self.collection_id}, "
            f"percentage={self.percentage}, label='{self.display_label}')>"
        )
