"""In-Memory Repository Implementations"""
import asyncio
import copy
import logging
from typing import Optional, List, Dict
from uuid import UUID

from domain.repositories import (
    PropertyRepository, RoomTypeRepository, RoomRepository, SurchargeRuleRepository,
    PromotionRepository, MinibarItemRepository, GuestRepository, BookingRepository,
    OrderRepository, InvoiceRepository, UnitOfWork,
)
from domain.entities import (
    Property, RoomType, Room, SurchargeRule, Promotion, MinibarItem,
    Guest, Booking, Order, Invoice,
)
from domain.enums import BookingStatus
from domain.errors import ValidationError, TransientStorageError

logger = logging.getLogger(__name__)


class InMemoryPropertyRepository(PropertyRepository):
    """In-memory implementation of PropertyRepository"""

    def __init__(self):
        self._storage: Dict[UUID, Property] = {}

    async def save(self, hotel: Property) -> Property:
        self._storage[hotel.property_id] = hotel
        return hotel

    async def find_by_id(self, property_id: UUID) -> Optional[Property]:
        return self._storage.get(property_id)

    async def find_all(self) -> List[Property]:
        return list(self._storage.values())


class InMemoryRoomTypeRepository(RoomTypeRepository):
    """In-memory implementation of RoomTypeRepository"""

    def __init__(self):
        self._storage: Dict[UUID, RoomType] = {}

    async def save(self, room_type: RoomType) -> RoomType:
        self._storage[room_type.room_type_id] = room_type
        return room_type

    async def find_by_id(self, room_type_id: UUID) -> Optional[RoomType]:
        return self._storage.get(room_type_id)

    async def find_by_property(self, property_id: UUID) -> List[RoomType]:
        return [rt for rt in self._storage.values() if rt.property_id == property_id]

    async def delete(self, room_type_id: UUID) -> bool:
        if room_type_id in self._storage:
            del self._storage[room_type_id]
            return True
        return False


class InMemoryRoomRepository(RoomRepository):
    """In-memory implementation of RoomRepository"""

    def __init__(self):
        self._storage: Dict[UUID, Room] = {}

    async def save(self, room: Room) -> Room:
        self._storage[room.room_id] = room
        return room

    async def find_by_id(self, room_id: UUID) -> Optional[Room]:
        return self._storage.get(room_id)

    async def find_by_room_type(self, room_type_id: UUID) -> List[Room]:
        rooms = [r for r in self._storage.values() if r.room_type_id == room_type_id]
        return sorted(rooms, key=lambda r: (r.created_at, r.number))

    async def find_by_property(self, property_id: UUID) -> List[Room]:
        rooms = [r for r in self._storage.values() if r.property_id == property_id]
        return sorted(rooms, key=lambda r: (r.created_at, r.number))


class InMemorySurchargeRuleRepository(SurchargeRuleRepository):
    """In-memory implementation of SurchargeRuleRepository"""

    def __init__(self):
        self._storage: Dict[UUID, SurchargeRule] = {}

    async def save(self, rule: SurchargeRule) -> SurchargeRule:
        self._storage[rule.rule_id] = rule
        return rule

    async def find_active_by_property(self, property_id: UUID) -> List[SurchargeRule]:
        return [r for r in self._storage.values() if r.property_id == property_id and r.is_active]


class InMemoryPromotionRepository(PromotionRepository):
    """In-memory implementation of PromotionRepository"""

    def __init__(self):
        self._storage: Dict[UUID, Promotion] = {}

    async def save(self, promotion: Promotion) -> Promotion:
        self._storage[promotion.promotion_id] = promotion
        return promotion

    async def find_by_id(self, promotion_id: UUID) -> Optional[Promotion]:
        return self._storage.get(promotion_id)

    async def find_by_code(self, property_id: UUID, code: str) -> Optional[Promotion]:
        wanted = code.strip().upper()
        for promotion in self._storage.values():
            if promotion.property_id == property_id and promotion.code.upper() == wanted:
                return promotion
        return None

    async def find_by_property(self, property_id: UUID) -> List[Promotion]:
        return [p for p in self._storage.values() if p.property_id == property_id]


class InMemoryMinibarItemRepository(MinibarItemRepository):
    """In-memory implementation of MinibarItemRepository"""

    def __init__(self):
        self._storage: Dict[UUID, MinibarItem] = {}

    async def save(self, item: MinibarItem) -> MinibarItem:
        self._storage[item.item_id] = item
        return item

    async def find_by_id(self, item_id: UUID) -> Optional[MinibarItem]:
        return self._storage.get(item_id)


class InMemoryGuestRepository(GuestRepository):
    """In-memory implementation of GuestRepository"""

    def __init__(self):
        self._storage: Dict[UUID, Guest] = {}

    async def save(self, guest: Guest) -> Guest:
        self._storage[guest.guest_id] = guest
        return guest

    async def find_by_id(self, guest_id: UUID) -> Optional[Guest]:
        return self._storage.get(guest_id)

    async def find_by_phone(self, phone: str) -> Optional[Guest]:
        for guest in self._storage.values():
            if guest.phone == phone:
                return guest
        return None


class InMemoryBookingRepository(BookingRepository):
    """In-memory implementation of BookingRepository"""

    def __init__(self):
        self._storage: Dict[UUID, Booking] = {}

    async def save(self, booking: Booking) -> Booking:
        self._storage[booking.booking_id] = booking
        return booking

    async def find_by_id(self, booking_id: UUID) -> Optional[Booking]:
        return self._storage.get(booking_id)

    async def find_by_property(self, property_id: UUID) -> List[Booking]:
        return [b for b in self._storage.values() if b.property_id == property_id]

    async def find_all(self) -> List[Booking]:
        return list(self._storage.values())

    async def find_with_room_allocations(self, room_ids: List[UUID]) -> List[Booking]:
        wanted = set(room_ids)
        results = []
        for booking in self._storage.values():
            if booking.status == BookingStatus.CANCELLED:
                continue
            if any(room.room_id in wanted for room in booking.active_rooms()):
                results.append(booking)
        return results


class InMemoryOrderRepository(OrderRepository):
    """In-memory implementation of OrderRepository"""

    def __init__(self):
        self._storage: Dict[UUID, Order] = {}

    async def save(self, order: Order) -> Order:
        self._storage[order.order_id] = order
        return order

    async def find_by_id(self, order_id: UUID) -> Optional[Order]:
        return self._storage.get(order_id)


class InMemoryInvoiceRepository(InvoiceRepository):
    """In-memory implementation of InvoiceRepository"""

    def __init__(self):
        self._storage: Dict[UUID, Invoice] = {}

    async def add(self, invoice: Invoice) -> Invoice:
        if invoice.invoice_id in self._storage:
            raise ValidationError(f"Invoice {invoice.invoice_number} already exists")
        self._storage[invoice.invoice_id] = invoice
        return invoice

    async def find_by_id(self, invoice_id: UUID) -> Optional[Invoice]:
        return self._storage.get(invoice_id)

    async def find_by_booking(self, booking_id: UUID) -> List[Invoice]:
        return [i for i in self._storage.values() if i.booking_id == booking_id]

    async def find_by_property(self, property_id: UUID) -> List[Invoice]:
        return [i for i in self._storage.values() if i.property_id == property_id]


class InMemoryUnitOfWork(UnitOfWork):
    """Serializable in-memory transaction over all repositories.

    One writer at a time: entering acquires a lock with a bounded wait and
    snapshots every repository; an exception inside the block restores the
    snapshots. Re-entering from the task that already holds the lock joins the
    open transaction.
    """

    def __init__(self, timeout_seconds: float = 5.0):
        self.properties = InMemoryPropertyRepository()
        self.room_types = InMemoryRoomTypeRepository()
        self.rooms = InMemoryRoomRepository()
        self.surcharge_rules = InMemorySurchargeRuleRepository()
        self.promotions = InMemoryPromotionRepository()
        self.minibar_items = InMemoryMinibarItemRepository()
        self.guests = InMemoryGuestRepository()
        self.bookings = InMemoryBookingRepository()
        self.orders = InMemoryOrderRepository()
        self.invoices = InMemoryInvoiceRepository()

        self.timeout_seconds = timeout_seconds
        self._lock = asyncio.Lock()
        self._owner: Optional[asyncio.Task] = None
        self._depth = 0
        self._snapshot: Optional[Dict[str, dict]] = None

    def _repositories(self) -> Dict[str, object]:
        return {
            "properties": self.properties,
            "room_types": self.room_types,
            "rooms": self.rooms,
            "surcharge_rules": self.surcharge_rules,
            "promotions": self.promotions,
            "minibar_items": self.minibar_items,
            "guests": self.guests,
            "bookings": self.bookings,
            "orders": self.orders,
            "invoices": self.invoices,
        }

    @property
    def in_transaction(self) -> bool:
        return self._depth > 0

    async def __aenter__(self) -> "InMemoryUnitOfWork":
        task = asyncio.current_task()
        if self._depth > 0 and self._owner is task:
            self._depth += 1
            return self

        try:
            await asyncio.wait_for(self._lock.acquire(), timeout=self.timeout_seconds)
        except asyncio.TimeoutError:
            raise TransientStorageError("Timed out waiting for the booking store lock")

        self._owner = task
        self._depth = 1
        self._snapshot = {
            name: copy.deepcopy(repo._storage) for name, repo in self._repositories().items()
        }
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self._depth -= 1
        if self._depth > 0:
            return

        try:
            if exc_type is not None:
                self._rollback()
                logger.info("Transaction rolled back after %s", exc_type.__name__)
        finally:
            self._snapshot = None
            self._owner = None
            self._lock.release()

    def _rollback(self) -> None:
        for name, repo in self._repositories().items():
            repo._storage = self._snapshot[name]
