"""Payment record model definition."""

from datetime import datetime
from enum import Enum

from sqlalchemy import JSON, BigInteger, CheckConstraint, DateTime, ForeignKey, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column

from ..core.database import Base


class PaymentProvider(str, Enum):
    """Payment rail enumeration."""
    STRIPE = "STRIPE"
    DEPAY = "DEPAY"
    MANUAL = "MANUAL"


class PaymentPurpose(str, Enum):
    """What a payment buys."""
    OWNERSHIP = "OWNERSHIP"
    BOOKING = "BOOKING"


class PaymentStatus(str, Enum):
    """Payment status enumeration."""
    SUCCESS = "SUCCESS"


class PaymentRecord(Base):
    """
    A settled external payment.

    ``external_id`` is unique at the storage layer and is the idempotency key
    for every payment rail: a second delivery of the same event cannot insert
    a second row.
    """

    __tablename__ = "payment_records"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    provider: Mapped[PaymentProvider] = mapped_column(String(20), nullable=False)
    external_id: Mapped[str] = mapped_column(String(255), nullable=False, unique=True, index=True)

    user_id: Mapped[str | None] = mapped_column(
        String(36),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True
    )
    payer_email: Mapped[str | None] = mapped_column(String(320), nullable=True)

    amount_minor: Mapped[int] = mapped_column(BigInteger, nullable=False)
    currency: Mapped[str] = mapped_column(String(10), nullable=False)
    status: Mapped[PaymentStatus] = mapped_column(String(20), nullable=False, default=PaymentStatus.SUCCESS)
    purpose: Mapped[PaymentPurpose] = mapped_column(String(20), nullable=False, index=True)

    # Purpose-dependent references
    collection_id: Mapped[int | None] = mapped_column(
        Integer,
        ForeignKey("collections.id", ondelete="SET NULL"),
        nullable=True
    )
    pricing_tier_id: Mapped[int | None] = mapped_column(
        Integer,
        ForeignKey("pricing_tiers.id", ondelete="SET NULL"),
        nullable=True
    )
    percentage_to_buy: Mapped[int | None] = mapped_column(Integer, nullable=True)
    booking_id: Mapped[int | None] = mapped_column(Integer, nullable=True, index=True)
    affiliate_link_id: Mapped[int | None] = mapped_column(
        Integer,
        ForeignKey("affiliate_links.id", ondelete="SET NULL"),
        nullable=True
    )

    # Copy of the inbound event for audit
    event_metadata: Mapped[dict] = mapped_column("metadata", JSON, nullable=False, default=dict)

    processed_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        nullable=False,
        default=datetime.utcnow,
        server_default=func.now()
    )

    __table_args__ = (
        CheckConstraint("amount_minor >= 0", name="ck_payment_amount_non_negative"),
        CheckConstraint("length(external_id) > 0", name="ck_payment_external_id_not_empty"),
    )

    def __repr__(self) -> str:
        return (
            f"<PaymentRecord(id={self.id}, provider={self.provider}, "
            f"external_id='{self.external_id}', purpose={self.purpose})>"
        )
