"""Models module exporting all database models."""

from .booking import Booking, BookingStatus, BookingUnit
from .catalog import Collection, Unit
from .ownership import OwnershipRecord
from .payment import PaymentProvider, PaymentPurpose, PaymentRecord, PaymentStatus
from .pricing import PricingTier
from .user import AffiliateLink, InvestorProfile, User, UserRole

__all__ = [
    # Catalog entities
    "Collection",
    "Unit",
    "PricingTier",

    # Ledger entity
    "OwnershipRecord",

    # Payment entity
    "PaymentRecord",
    "PaymentProvider",
    "PaymentPurpose",
    "PaymentStatus",

    # Booking entities
    "Booking",
    "BookingStatus",
    "BookingUnit",

    # Identity entities
    "User",
    "UserRole",
    "AffiliateLink",
    "InvestorProfile",
]
