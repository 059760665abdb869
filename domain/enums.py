"""Domain Enums"""
from enum import Enum


class BookingStatus(str, Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    CHECKED_IN = "CHECKED_IN"
    CHECKED_OUT = "CHECKED_OUT"
    CANCELLED = "CANCELLED"


class BookingRoomStatus(str, Enum):
    PENDING = "PENDING"
    CHECKED_IN = "CHECKED_IN"
    CHECKED_OUT = "CHECKED_OUT"
    CANCELLED = "CANCELLED"


class RoomStatus(str, Enum):
    AVAILABLE = "AVAILABLE"
    OCCUPIED = "OCCUPIED"
    CLEANING = "CLEANING"
    OUT_OF_SERVICE = "OUT_OF_SERVICE"
    DIRTY = "DIRTY"
    CLEAN = "CLEAN"
    MAINTENANCE = "MAINTENANCE"


class SurchargeType(str, Enum):
    EARLY_CHECK_IN = "EARLY_CHECK_IN"
    LATE_CHECK_OUT = "LATE_CHECK_OUT"
    EXTRA_GUEST = "EXTRA_GUEST"


class InvoiceLineSourceType(str, Enum):
    ROOM_CHARGE = "ROOM_CHARGE"
    FNB = "FNB"
    MINIBAR = "MINIBAR"
    SURCHARGE = "SURCHARGE"
    DISCOUNT = "DISCOUNT"
    ADDITIONAL = "ADDITIONAL"


class PromotionScope(str, Enum):
    BOOKING = "booking"
    FOOD = "food"


class PaymentType(str, Enum):
    CASH = "CASH"
    CARD = "CARD"
    TRANSFER = "TRANSFER"
    EWALLET = "EWALLET"
    REFUND = "REFUND"


class PropertyStatus(str, Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"


# Rooms in these states are never handed out by the allocator
UNALLOCATABLE_ROOM_STATUSES = frozenset({RoomStatus.OUT_OF_SERVICE, RoomStatus.MAINTENANCE})

# Rooms must be in one of these states to receive a guest
CHECK_IN_READY_ROOM_STATUSES = frozenset({RoomStatus.AVAILABLE, RoomStatus.CLEAN})

# Invoice line types each promotion scope is allowed to discount
SCOPE_SOURCE_TYPES = {
    PromotionScope.BOOKING: frozenset({InvoiceLineSourceType.ROOM_CHARGE}),
    PromotionScope.FOOD: frozenset({InvoiceLineSourceType.FNB}),
}
