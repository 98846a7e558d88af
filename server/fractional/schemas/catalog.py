"""Collection, unit and pricing tier Pydantic schemas."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator


class CreateCollectionRequest(BaseModel):
    """Request schema for creating a collection."""

    name: str = Field(..., min_length=1, max_length=255, description="Collection name")
    slug: str = Field(..., min_length=1, max_length=255, pattern=r"^[a-z0-9-]+$", description="URL-friendly slug")
    description: Optional[str] = Field(None, max_length=2000, description="Collection description")


class Collection(BaseModel):
    """Collection response schema."""

    id: int = Field(..., description="Unique collection ID")
    name: str = Field(..., description="Collection name")
    slug: str = Field(..., description="URL-friendly slug")
    description: Optional[str] = Field(None, description="Collection description")
    is_active: bool = Field(..., description="Whether the collection is on sale")

    class Config:
        from_attributes = True


class CreateUnitRequest(BaseModel):
    """Request schema for adding a unit to a collection."""

    collection_id: int = Field(..., description="Collection the unit belongs to")
    name: str = Field(..., min_length=1, max_length=128, description="Display name, e.g. B1")
    description: Optional[str] = Field(None, max_length=2000, description="Unit description")


class Unit(BaseModel):
    """Unit response schema."""

    id: int = Field(..., description="Unique unit ID, assigned in creation order")
    collection_id: int = Field(..., description="Collection the unit belongs to")
    name: str = Field(..., description="Display name")
    description: Optional[str] = Field(None, description="Unit description")

    class Config:
        from_attributes = True


class CreatePricingTierRequest(BaseModel):
    """Request schema for creating a pricing tier."""

    collection_id: int = Field(..., description="Collection the tier sells shares of")
    percentage: int = Field(..., gt=0, le=10000, description="Share size in basis points")
    prices: dict[str, int] = Field(..., min_length=1, description="Currency code to price in minor units")
    display_label: str = Field(..., min_length=1, max_length=64, description="Label shown to buyers, e.g. 5%")
    is_active: bool = Field(True, description="Whether the tier is on sale")
    effective_from: datetime = Field(..., description="Start of the sale window (ISO 8601, UTC)")
    effective_until: Optional[datetime] = Field(None, description="End of the sale window, exclusive")

    @field_validator("prices")
    @classmethod
    def validate_prices(cls, v: dict[str, int]) -> dict[str, int]:
        """Prices are non-negative and keyed by upper-case currency code."""
        normalized = {}
        for currency, amount in v.items():
            if amount < 0:
                raise ValueError(f"Price for {currency} must not be negative")
            normalized[currency.upper()] = amount
        return normalized

    @model_validator(mode="after")
    def validate_window(self) -> "CreatePricingTierRequest":
        """The sale window must not be empty."""
        if self.effective_until is not None and self.effective_until <= self.effective_from:
            raise ValueError("effective_until must be after effective_from")
        return self


class PricingTier(BaseModel):
    """Pricing tier response schema."""

    id: int = Field(..., description="Unique pricing tier ID")
    collection_id: int = Field(..., description="Collection the tier sells shares of")
    percentage: int = Field(..., description="Share size in basis points")
    prices: dict[str, int] = Field(..., description="Currency code to price in minor units")
    display_label: str = Field(..., description="Label shown to buyers")
    is_active: bool = Field(..., description="Whether the tier is on sale")
    effective_from: datetime = Field(..., description="Start of the sale window")
    effective_until: Optional[datetime] = Field(None, description="End of the sale window, exclusive")

    class Config:
        from_attributes = True


class TierAvailabilityRequest(BaseModel):
    """Request schema for tier availability."""

    collection_id: int = Field(..., description="Collection to evaluate")
    as_of: Optional[datetime] = Field(None, description="Evaluation time; defaults to now (UTC)")


class TierAvailabilityResponse(BaseModel):
    """Which active tiers of a collection can still be bought."""

    collection_id: int = Field(..., description="Evaluated collection")
    as_of: datetime = Field(..., description="Evaluation time")
    availability: dict[int, bool] = Field(..., description="Basis points to purchasable")


class UnitCapacityRequest(BaseModel):
    """Request schema for the per-unit ledger view."""

    collection_id: int = Field(..., description="Collection to inspect")


class UnitCapacity(BaseModel):
    """Ownership totals for one unit."""

    unit_id: int = Field(..., description="Unit ID")
    name: str = Field(..., description="Unit display name")
    total_owned: int = Field(..., ge=0, le=10000, description="Basis points owned")
    available_capacity: int = Field(..., ge=0, le=10000, description="Basis points still for sale")


class UnitCapacityResponse(BaseModel):
    """Per-unit ledger view of a collection, in allocation order."""

    collection_id: int = Field(..., description="Inspected collection")
    units: list[UnitCapacity] = Field(default_factory=list, description="Units in ascending id order")
