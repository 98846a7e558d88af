"""Payment event and settlement Pydantic schemas."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from ..models.payment import PaymentProvider, PaymentPurpose


class PaymentEvent(BaseModel):
    """
    A verified inbound payment event, normalized across payment rails.

    Ownership purchases must name the collection, the pricing tier and the
    payer email; booking payments must name the booking.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    external_id: str = Field(..., min_length=1, max_length=255, description="Provider's unique payment id")
    provider: PaymentProvider = Field(..., description="Payment rail")
    amount_paid_minor_units: int = Field(..., ge=0, description="Amount paid in minor units")
    currency: str = Field(..., min_length=3, max_length=10, description="Currency code, fiat or token symbol")
    purpose: PaymentPurpose = Field(..., description="What the payment buys")
    collection_id: Optional[int] = Field(None, description="Collection for an ownership purchase")
    pricing_tier_id: Optional[int] = Field(None, description="Pricing tier for an ownership purchase")
    booking_id: Optional[int] = Field(None, description="Booking being paid for")
    payer_email: Optional[EmailStr] = Field(None, description="Payer email, used to resolve the account")
    user_id: Optional[str] = Field(None, description="Existing account id, when the payer was signed in")
    referral_code: Optional[str] = Field(None, max_length=64, description="Affiliate referral code")

    @field_validator("currency")
    @classmethod
    def normalize_currency(cls, v: str) -> str:
        """Currency codes are stored upper case."""
        return v.upper()

    def missing_fields(self) -> list[str]:
        """Fields this event's purpose requires but the event does not carry."""
        if self.purpose == PaymentPurpose.OWNERSHIP:
            required = ("collection_id", "pricing_tier_id", "payer_email")
        else:
            required = ("booking_id",)
        return [name for name in required if getattr(self, name) is None]

    @model_validator(mode="after")
    def check_purpose_fields(self) -> "PaymentEvent":
        """Reject events missing the references their purpose needs."""
        missing = self.missing_fields()
        if missing:
            raise ValueError(f"{self.purpose.value} payment events require: {', '.join(missing)}")
        return self


class SettlementResult(BaseModel):
    """Outcome of settling one payment event."""

    success: bool = Field(..., description="True when the event is applied or was already applied")
    duplicate: bool = Field(False, description="True when the external id had already been processed")
    external_id: str = Field(..., description="Provider's unique payment id")
    purpose: PaymentPurpose = Field(..., description="What the payment bought")
    unit_name: Optional[str] = Field(None, description="Unit(s) that absorbed the purchase or stay")
    new_user_created: Optional[bool] = Field(None, description="Whether a payer account was created")
    error_kind: Optional[str] = Field(None, description="Machine-readable failure kind")
    detail: Optional[str] = Field(None, description="Human-readable failure explanation")
    payment_id: Optional[int] = Field(None, description="Recorded payment id")
    ownership_id: Optional[int] = Field(None, description="Recorded ownership id")
    booking_id: Optional[int] = Field(None, description="Settled booking id")


class ListUnappliedPaymentsRequest(BaseModel):
    """Request schema for listing payments awaiting reconciliation."""

    limit: int = Field(100, ge=1, le=1000, description="Maximum number of payments to return")


class UnappliedPayment(BaseModel):
    """A recorded payment whose allocation is missing."""

    payment_id: int = Field(..., description="Recorded payment id")
    external_id: str = Field(..., description="Provider's unique payment id")
    provider: PaymentProvider = Field(..., description="Payment rail")
    purpose: PaymentPurpose = Field(..., description="What the payment bought")
    amount_minor: int = Field(..., description="Amount paid in minor units")
    currency: str = Field(..., description="Currency code")
    collection_id: Optional[int] = Field(None, description="Collection for an ownership purchase")
    pricing_tier_id: Optional[int] = Field(None, description="Pricing tier for an ownership purchase")
    booking_id: Optional[int] = Field(None, description="Booking being paid for")
    processed_at: datetime = Field(..., description="When the payment was recorded (ISO 8601)")


class ListUnappliedPaymentsResponse(BaseModel):
    """Response schema for payments awaiting reconciliation."""

    items: list[UnappliedPayment] = Field(default_factory=list, description="Unapplied payments")


class ReplayPaymentRequest(BaseModel):
    """Request schema for re-running the allocation of a recorded payment."""

    external_id: str = Field(..., min_length=1, max_length=255, description="Provider's unique payment id")
