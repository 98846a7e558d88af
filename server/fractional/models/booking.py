"""Booking and booking unit assignment model definitions."""

from datetime import date, datetime
from enum import Enum

from sqlalchemy import BigInteger, CheckConstraint, Date, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ..core.database import Base


class BookingStatus(str, Enum):
    """Booking status enumeration."""
    PENDING_PAYMENT = "PENDING_PAYMENT"
    PAYMENT_RECEIVED = "PAYMENT_RECEIVED"
    CONFIRMED = "CONFIRMED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class Booking(Base):
    """A stay in a collection over a half-open [check_in, check_out) date range."""

    __tablename__ = "bookings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    collection_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("collections.id", ondelete="RESTRICT"),
        nullable=False,
        index=True
    )
    user_id: Mapped[str | None] = mapped_column(
        String(36),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True
    )

    # Guest details
    guest_name: Mapped[str] = mapped_column(String(255), nullable=False)
    guest_email: Mapped[str] = mapped_column(String(320), nullable=False, index=True)
    guest_phone: Mapped[str | None] = mapped_column(String(64), nullable=True)
    number_of_guests: Mapped[int] = mapped_column(Integer, nullable=False)
    units_required: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    # Stay dates
    check_in: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    check_out: Mapped[date] = mapped_column(Date, nullable=False, index=True)

    # Price information (stored as minor units, e.g., cents)
    total_price_minor: Mapped[int] = mapped_column(BigInteger, nullable=False)
    currency: Mapped[str] = mapped_column(String(10), nullable=False, default="USD")

    status: Mapped[BookingStatus] = mapped_column(
        String(20),
        nullable=False,
        default=BookingStatus.PENDING_PAYMENT,
        index=True
    )
    payment_id: Mapped[int | None] = mapped_column(
        Integer,
        ForeignKey("payment_records.id", ondelete="SET NULL"),
        nullable=True,
        unique=True
    )

    confirmed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    cancellation_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

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
        CheckConstraint("check_out > check_in", name="ck_booking_dates_ordered"),
        CheckConstraint("number_of_guests > 0", name="ck_booking_guests_positive"),
        CheckConstraint("units_required > 0", name="ck_booking_units_required_positive"),
        CheckConstraint("total_price_minor >= 0", name="ck_booking_price_non_negative"),
    )

    # Relationships
    assigned_units: Mapped[list["BookingUnit"]] = relationship(
        "BookingUnit",
        back_populates="booking",
        cascade="all, delete-orphan",
        order_by="BookingUnit.unit_id"
    )

    def __repr__(self) -> str:
        return (
            f"<Booking(id={self.id}, collection_id={self.collection_id}, "
            f"check_in={self.check_in}, check_out={self.check_out}, status={self.status})>"
        )


class BookingUnit(Base):
    """A unit assigned to a booking."""

    __tablename__ = "booking_units"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    booking_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("bookings.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    unit_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("units.id", ondelete="RESTRICT"),
        nullable=False,
        index=True
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        nullable=False,
        default=datetime.utcnow,
        server_default=func.now()
    )

    __table_args__ = (
        UniqueConstraint("booking_id", "unit_id", name="uq_booking_unit"),
    )

    # Relationships
    booking: Mapped["Booking"] = relationship("Booking", back_populates="assigned_units")

    def __repr__(self) -> str:
        return f"<BookingUnit(booking_id={self.booking_id}, unit_id={self.unit_id})>"
