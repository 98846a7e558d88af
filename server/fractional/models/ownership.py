"""Ownership ledger entry model definition."""

from datetime import datetime

from sqlalchemy import BigInteger, CheckConstraint, DateTime, ForeignKey, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column

from ..core.database import Base


class OwnershipRecord(Base):
    """
    One holder's basis-point share of one unit.

    Records are create-only. The sum of ``percentage_owned`` per unit never
    exceeds 10000; the ledger enforces that under the collection lock.
    """

    __tablename__ = "ownership_records"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    unit_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("units.id", ondelete="RESTRICT"),
        nullable=False,
        index=True
    )
    user_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
        index=True
    )
    pricing_tier_id: Mapped[int | None] = mapped_column(
        Integer,
        ForeignKey("pricing_tiers.id", ondelete="SET NULL"),
        nullable=True
    )

    # Basis points (10000 = 100%)
    percentage_owned: Mapped[int] = mapped_column(Integer, nullable=False)

    purchase_amount_minor: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    currency: Mapped[str] = mapped_column(String(10), nullable=False)

    # At most one ownership per payment
    payment_id: Mapped[int | None] = mapped_column(
        Integer,
        ForeignKey("payment_records.id", ondelete="RESTRICT"),
        nullable=True,
        unique=True
    )
    affiliate_link_id: Mapped[int | None] = mapped_column(
        Integer,
        ForeignKey("affiliate_links.id", ondelete="SET NULL"),
        nullable=True
    )

    recorded_at: Mapped[datetime] = mapped_column(
        DateTime,
        nullable=False,
        default=datetime.utcnow,
        server_default=func.now()
    )

    __table_args__ = (
        CheckConstraint("percentage_owned > 0", name="ck_ownership_percentage_positive"),
        CheckConstraint("percentage_owned <= 10000", name="ck_ownership_percentage_max"),
        CheckConstraint("purchase_amount_minor >= 0", name="ck_ownership_amount_non_negative"),
    )

    def __repr__(self) -> str:
        return (
            f"<OwnershipRecord(id={self.id}, unit_id={self.unit_id}, "
            f"user_id={self.user_id}, percentage_owned={self.percentage_owned})>"
        )
