"""Service layer package."""

from .allocation_service import AllocationService, select_first_fit
from .availability_service import AvailabilityService
from .booking_service import BookingService, LocalUnitAvailability
from .booking_settlement_service import BookingSettlementService
from .catalog_service import CatalogService
from .identity_service import IdentityService
from .ledger_service import LedgerService, UnitCapacity
from .payment_service import PaymentService
from .payment_settlement_service import PaymentSettlementService
from .reconciliation_service import ReconciliationService
from .settlement_dispatcher import SettlementDispatcher

__all__ = [
    "AllocationService",
    "AvailabilityService",
    "BookingService",
    "BookingSettlementService",
    "CatalogService",
    "IdentityService",
    "LedgerService",
    "LocalUnitAvailability",
    "PaymentService",
    "PaymentSettlementService",
    "ReconciliationService",
    "SettlementDispatcher",
    "UnitCapacity",
    "select_first_fit",
]
