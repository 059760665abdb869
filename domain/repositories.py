"""Domain Repository Interfaces"""
from abc import ABC, abstractmethod
from typing import Optional, List
from uuid import UUID

from domain.entities import (
    Property, RoomType, Room, SurchargeRule, Promotion, MinibarItem,
    Guest, Booking, Order, Invoice,
)


class PropertyRepository(ABC):
    """Repository interface for Property"""

    @abstractmethod
    async def save(self, hotel: Property) -> Property:
        pass

    @abstractmethod
    async def find_by_id(self, property_id: UUID) -> Optional[Property]:
        pass

    @abstractmethod
    async def find_all(self) -> List[Property]:
        pass


class RoomTypeRepository(ABC):
    """Repository interface for RoomType and its pricing rules"""

    @abstractmethod
    async def save(self, room_type: RoomType) -> RoomType:
        pass

    @abstractmethod
    async def find_by_id(self, room_type_id: UUID) -> Optional[RoomType]:
        pass

    @abstractmethod
    async def find_by_property(self, property_id: UUID) -> List[RoomType]:
        pass

    @abstractmethod
    async def delete(self, room_type_id: UUID) -> bool:
        pass


class RoomRepository(ABC):
    """Repository interface for physical rooms"""

    @abstractmethod
    async def save(self, room: Room) -> Room:
        pass

    @abstractmethod
    async def find_by_id(self, room_id: UUID) -> Optional[Room]:
        pass

    @abstractmethod
    async def find_by_room_type(self, room_type_id: UUID) -> List[Room]:
        """Rooms of a type in allocation order"""
        pass

    @abstractmethod
    async def find_by_property(self, property_id: UUID) -> List[Room]:
        pass


class SurchargeRuleRepository(ABC):
    """Repository interface for surcharge rules"""

    @abstractmethod
    async def save(self, rule: SurchargeRule) -> SurchargeRule:
        pass

    @abstractmethod
    async def find_active_by_property(self, property_id: UUID) -> List[SurchargeRule]:
        pass


class PromotionRepository(ABC):
    """Repository interface for promotions"""

    @abstractmethod
    async def save(self, promotion: Promotion) -> Promotion:
        pass

    @abstractmethod
    async def find_by_id(self, promotion_id: UUID) -> Optional[Promotion]:
        pass

    @abstractmethod
    async def find_by_code(self, property_id: UUID, code: str) -> Optional[Promotion]:
        """Case-insensitive code lookup within a property"""
        pass

    @abstractmethod
    async def find_by_property(self, property_id: UUID) -> List[Promotion]:
        pass


class MinibarItemRepository(ABC):
    """Repository interface for minibar stock items"""

    @abstractmethod
    async def save(self, item: MinibarItem) -> MinibarItem:
        pass

    @abstractmethod
    async def find_by_id(self, item_id: UUID) -> Optional[MinibarItem]:
        pass


class GuestRepository(ABC):
    """Repository interface for guests"""

    @abstractmethod
    async def save(self, guest: Guest) -> Guest:
        pass

    @abstractmethod
    async def find_by_id(self, guest_id: UUID) -> Optional[Guest]:
        pass

    @abstractmethod
    async def find_by_phone(self, phone: str) -> Optional[Guest]:
        pass


class BookingRepository(ABC):
    """Repository interface for Booking Aggregate"""

    @abstractmethod
    async def save(self, booking: Booking) -> Booking:
        pass

    @abstractmethod
    async def find_by_id(self, booking_id: UUID) -> Optional[Booking]:
        pass

    @abstractmethod
    async def find_by_property(self, property_id: UUID) -> List[Booking]:
        pass

    @abstractmethod
    async def find_all(self) -> List[Booking]:
        pass

    @abstractmethod
    async def find_with_room_allocations(self, room_ids: List[UUID]) -> List[Booking]:
        """Bookings holding any non-cancelled allocation of the given rooms"""
        pass


class OrderRepository(ABC):
    """Repository interface for restaurant orders"""

    @abstractmethod
    async def save(self, order: Order) -> Order:
        pass

    @abstractmethod
    async def find_by_id(self, order_id: UUID) -> Optional[Order]:
        pass


class InvoiceRepository(ABC):
    """Repository interface for invoices. Invoices are append-only."""

    @abstractmethod
    async def add(self, invoice: Invoice) -> Invoice:
        pass

    @abstractmethod
    async def find_by_id(self, invoice_id: UUID) -> Optional[Invoice]:
        pass

    @abstractmethod
    async def find_by_booking(self, booking_id: UUID) -> List[Invoice]:
        pass

    @abstractmethod
    async def find_by_property(self, property_id: UUID) -> List[Invoice]:
        pass


class UnitOfWork(ABC):
    """Atomic scope over every repository.

    ``async with uow:`` opens a transaction that is committed when the block
    exits normally and rolled back when it raises.
    """

    properties: PropertyRepository
    room_types: RoomTypeRepository
    rooms: RoomRepository
    surcharge_rules: SurchargeRuleRepository
    promotions: PromotionRepository
    minibar_items: MinibarItemRepository
    guests: GuestRepository
    bookings: BookingRepository
    orders: OrderRepository
    invoices: InvoiceRepository

    @abstractmethod
    async def __aenter__(self) -> "UnitOfWork":
        pass

    @abstractmethod
    async def __aexit__(self, exc_type, exc, tb) -> None:
        pass
