"""Booking-related Pydantic schemas."""

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, EmailStr, Field, model_validator

from ..models.booking import BookingStatus


class CreateBookingRequest(BaseModel):
    """Request schema for creating a booking awaiting payment."""

    collection_id: int = Field(..., description="Collection to stay in")
    guest_name: str = Field(..., min_length=1, max_length=255, description="Lead guest name")
    guest_email: EmailStr = Field(..., description="Lead guest email")
    guest_phone: Optional[str] = Field(None, max_length=64, description="Lead guest phone")
    number_of_guests: int = Field(..., ge=1, le=100, description="Number of guests")
    units_required: Optional[int] = Field(None, ge=1, le=50, description="Units needed; derived from guests when omitted")
    check_in: date = Field(..., description="Arrival date")
    check_out: date = Field(..., description="Departure date, exclusive")
    total_price_minor: int = Field(..., ge=0, description="Quoted price in minor units")
    currency: str = Field("USD", min_length=3, max_length=10, description="Currency code")
    user_id: Optional[str] = Field(None, description="Account making the booking")

    @model_validator(mode="after")
    def validate_dates(self) -> "CreateBookingRequest":
        """A stay must last at least one night."""
        if self.check_out <= self.check_in:
            raise ValueError("check_out must be after check_in")
        return self


class GetBookingRequest(BaseModel):
    """Request schema for getting a booking."""

    booking_id: int = Field(..., description="Booking to retrieve")


class BookingTransitionRequest(BaseModel):
    """Request schema for confirming or completing a booking."""

    booking_id: int = Field(..., description="Booking to update")


class CancelBookingRequest(BaseModel):
    """Request schema for cancelling a booking."""

    booking_id: int = Field(..., description="Booking to cancel")
    reason: Optional[str] = Field(None, max_length=2000, description="Cancellation reason")


class Booking(BaseModel):
    """Booking response schema."""

    id: int = Field(..., description="Unique booking ID")
    collection_id: int = Field(..., description="Collection stayed in")
    guest_name: str = Field(..., description="Lead guest name")
    guest_email: str = Field(..., description="Lead guest email")
    number_of_guests: int = Field(..., ge=1, description="Number of guests")
    units_required: int = Field(..., ge=1, description="Units needed")
    check_in: date = Field(..., description="Arrival date")
    check_out: date = Field(..., description="Departure date, exclusive")
    total_price_minor: int = Field(..., description="Price in minor units")
    currency: str = Field(..., description="Currency code")
    status: BookingStatus = Field(..., description="Booking status")
    payment_id: Optional[int] = Field(None, description="Settling payment id")
    unit_ids: list[int] = Field(default_factory=list, description="Assigned units")
    confirmed_at: Optional[datetime] = Field(None, description="Confirmation time (ISO 8601)")
    cancelled_at: Optional[datetime] = Field(None, description="Cancellation time (ISO 8601)")
    cancellation_reason: Optional[str] = Field(None, description="Cancellation reason")
    created_at: datetime = Field(..., description="Booking creation time (ISO 8601)")
