"""Property collection and unit model definitions."""

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, CheckConstraint, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ..core.database import Base

if TYPE_CHECKING:
    from .pricing import PricingTier


class Collection(Base):
    """A resort property grouping units that are sold under one set of pricing tiers."""

    __tablename__ = "collections"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    slug: Mapped[str] = mapped_column(String(255), nullable=False, unique=True, index=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        nullable=False,
        default=datetime.utcnow,
        server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        nullable=False,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
        server_default=func.now()
    )

    __table_args__ = (
        CheckConstraint("length(slug) > 0", name="ck_collection_slug_not_empty"),
    )

    # Relationships
    units: Mapped[list["Unit"]] = relationship(
        "Unit",
        back_populates="collection",
        order_by="Unit.id"
    )
    pricing_tiers: Mapped[list["PricingTier"]] = relationship(
        "PricingTier",
        back_populates="collection",
        order_by="PricingTier.percentage"
    )

    def __repr__(self) -> str:
        return f"<Collection(id={self.id}, slug='{self.slug}')>"


class Unit(Base):
    """
    A physical resort unit that can be fractionally owned and booked.

    The integer id is assigned in creation order and is the tie-break the
    allocator relies on; units are never deleted once sold into.
    """

    __tablename__ = "units"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    collection_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("collections.id", ondelete="RESTRICT"),
        nullable=False,
        index=True
    )
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        nullable=False,
        default=datetime.utcnow,
        server_default=func.now()
    )

    __table_args__ = (
        UniqueConstraint("collection_id", "name", name="uq_unit_collection_name"),
        CheckConstraint("length(name) > 0", name="ck_unit_name_not_empty"),
    )

    # Relationships
    collection: Mapped["Collection"] = relationship("Collection", back_populates="units")

    def __repr__(self) -> str:
        return f"<Unit(id={self.id}, collection_id={self.collection_id}, name='{self.name}')>"
