"""Catalog Services - properties, room types, pricing rules and sellable items"""
import logging
from datetime import date, datetime, time
from decimal import Decimal
from typing import Awaitable, Callable, Dict, List, Optional, TypeVar
from uuid import UUID

from domain.entities import (
    Property, RoomType, DateRangePrice, Room, SurchargeRule, Promotion, MinibarItem, Order, OrderItem,
)
from domain.enums import RoomStatus, SurchargeType, PromotionScope, BookingStatus
from domain.errors import ValidationError, NotFoundError
from domain.repositories import UnitOfWork
from application.transactions import transactional
from infrastructure.config import Settings, get_settings, local_clock

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CatalogService:
    """Service for catalog setup use cases"""

    def __init__(
        self,
        uow: UnitOfWork,
        settings: Optional[Settings] = None,
        clock: Optional[Callable[[], datetime]] = None
    ):
        self.uow = uow
        self.settings = settings or get_settings()
        self.clock = clock or local_clock(self.settings.timezone)

    async def _run(self, work: Callable[[], Awaitable[T]]) -> T:
        return await transactional(
            self.uow, work,
            retries=self.settings.transaction_retries,
            backoff_seconds=self.settings.transaction_retry_backoff_seconds
        )

    # ==================== PROPERTIES ====================
    async def create_property(
        self,
        code: str,
        name: str,
        vat_rate: Decimal = Decimal("10"),
        check_in_time: time = time(14, 0),
        check_out_time: time = time(12, 0)
    ) -> Property:
        async def work() -> Property:
            for existing in await self.uow.properties.find_all():
                if existing.code.upper() == code.upper():
                    raise ValidationError(f"Property code {code} already exists")
            hotel = Property(
                code=code,
                name=name,
                vat_rate=vat_rate,
                check_in_time=check_in_time,
                check_out_time=check_out_time,
                created_at=self.clock()
            )
            logger.info("Property %s created", code)
            return await self.uow.properties.save(hotel)

        return await self._run(work)

    async def get_property(self, property_id: UUID) -> Property:
        hotel = await self.uow.properties.find_by_id(property_id)
        if not hotel:
            raise NotFoundError(f"Property {property_id} not found")
        return hotel

    # ==================== ROOM TYPES & PRICING ====================
    async def create_room_type(
        self,
        property_id: UUID,
        name: str,
        capacity: int,
        base_price_from: Optional[Decimal] = None,
        base_price_to: Optional[Decimal] = None
    ) -> RoomType:
        async def work() -> RoomType:
            await self.get_property(property_id)
            if capacity < 1:
                raise ValidationError("Capacity must be at least 1")
            room_type = RoomType(property_id=property_id, name=name, capacity=capacity, created_at=self.clock())
            if base_price_from is not None:
                room_type.set_base_price(base_price_from, base_price_to)
            return await self.uow.room_types.save(room_type)

        return await self._run(work)

    async def get_room_type(self, room_type_id: UUID) -> RoomType:
        room_type = await self.uow.room_types.find_by_id(room_type_id)
        if not room_type:
            raise NotFoundError(f"Room type {room_type_id} not found")
        return room_type

    async def list_room_types(self, property_id: UUID) -> List[RoomType]:
        return await self.uow.room_types.find_by_property(property_id)

    async def delete_room_type(self, room_type_id: UUID) -> bool:
        """Delete a room type no open booking refers to"""

        async def work() -> bool:
            room_type = await self.get_room_type(room_type_id)
            for booking in await self.uow.bookings.find_by_property(room_type.property_id):
                if booking.status in (BookingStatus.CANCELLED, BookingStatus.CHECKED_OUT):
                    continue
                if any(line.room_type_id == room_type_id for line in booking.room_types):
                    raise ValidationError(f"Room type {room_type.name} is used by an active booking")
            return await self.uow.room_types.delete(room_type_id)

        return await self._run(work)

    async def set_base_price(
        self, room_type_id: UUID, price_from: Decimal, price_to: Optional[Decimal] = None
    ) -> RoomType:
        async def work() -> RoomType:
            room_type = await self.get_room_type(room_type_id)
            room_type.set_base_price(price_from, price_to)
            return await self.uow.room_types.save(room_type)

        return await self._run(work)

    async def set_day_of_week_price(self, room_type_id: UUID, day_of_week: int, price: Decimal) -> RoomType:
        return await self.set_day_of_week_prices(room_type_id, {day_of_week: price})

    async def set_day_of_week_prices(self, room_type_id: UUID, prices: Dict[int, Decimal]) -> RoomType:
        """Bulk update; all entries are applied or none"""

        async def work() -> RoomType:
            room_type = await self.get_room_type(room_type_id)
            for day_of_week, price in prices.items():
                room_type.set_day_of_week_price(day_of_week, price)
            return await self.uow.room_types.save(room_type)

        return await self._run(work)

    async def add_date_range_price(
        self,
        room_type_id: UUID,
        start_date: date,
        end_date: date,
        price: Decimal,
        description: str = ""
    ) -> DateRangePrice:
        async def work() -> DateRangePrice:
            room_type = await self.get_room_type(room_type_id)
            rule = room_type.add_date_range_price(start_date, end_date, price, description, self.clock())
            overlapping = [
                other for other in room_type.date_range_prices
                if other.is_active and other.rule_id != rule.rule_id
                and other.start_date <= end_date and start_date <= other.end_date
            ]
            if overlapping:
                logger.warning(
                    "Date range price %s on room type %s overlaps %d active rule(s)",
                    rule.rule_id, room_type.name, len(overlapping)
                )
            await self.uow.room_types.save(room_type)
            return rule

        return await self._run(work)

    async def deactivate_date_range_price(self, room_type_id: UUID, rule_id: UUID) -> RoomType:
        async def work() -> RoomType:
            room_type = await self.get_room_type(room_type_id)
            room_type.deactivate_date_range_price(rule_id)
            return await self.uow.room_types.save(room_type)

        return await self._run(work)

    # ==================== ROOMS ====================
    async def create_room(self, room_type_id: UUID, number: str, floor: int = 1) -> Room:
        async def work() -> Room:
            room_type = await self.get_room_type(room_type_id)
            for existing in await self.uow.rooms.find_by_property(room_type.property_id):
                if existing.number == number:
                    raise ValidationError(f"Room number {number} already exists")
            room = Room(
                property_id=room_type.property_id,
                room_type_id=room_type_id,
                number=number,
                floor=floor,
                created_at=self.clock()
            )
            return await self.uow.rooms.save(room)

        return await self._run(work)

    async def set_room_status(self, room_id: UUID, status: RoomStatus) -> Room:
        """Housekeeping and maintenance status, independent of bookings"""

        async def work() -> Room:
            room = await self.uow.rooms.find_by_id(room_id)
            if not room:
                raise NotFoundError(f"Room {room_id} not found")
            room.change_status(status)
            logger.info("Room %s is now %s", room.number, status.value)
            return await self.uow.rooms.save(room)

        return await self._run(work)

    async def list_rooms(self, property_id: UUID) -> List[Room]:
        return await self.uow.rooms.find_by_property(property_id)

    # ==================== SURCHARGES & PROMOTIONS ====================
    async def create_surcharge_rule(
        self,
        property_id: UUID,
        surcharge_type: SurchargeType,
        amount: Decimal,
        is_percentage: bool = False
    ) -> SurchargeRule:
        async def work() -> SurchargeRule:
            await self.get_property(property_id)
            if amount < 0:
                raise ValidationError("Surcharge amount cannot be negative")
            if is_percentage and amount > 100:
                raise ValidationError("Percentage surcharge cannot exceed 100")
            rule = SurchargeRule(
                property_id=property_id,
                surcharge_type=surcharge_type,
                amount=amount,
                is_percentage=is_percentage
            )
            return await self.uow.surcharge_rules.save(rule)

        return await self._run(work)

    async def create_promotion(
        self,
        property_id: UUID,
        code: str,
        value: Decimal,
        start_date: datetime,
        end_date: datetime,
        scope: Optional[str] = None,
        description: str = ""
    ) -> Promotion:
        """Create a discount code; scope defaults to booking"""

        async def work() -> Promotion:
            await self.get_property(property_id)
            normalized = (code or "").strip()
            if not normalized:
                raise ValidationError("Code is required")
            if value <= 0 or value > 100:
                raise ValidationError("Value must be greater than 0 and at most 100")
            if start_date > end_date:
                raise ValidationError("Start date must not be after end date")

            scope_value = (scope or PromotionScope.BOOKING.value).strip().lower()
            if scope_value not in {s.value for s in PromotionScope}:
                raise ValidationError("Scope must be 'booking' or 'food'")

            if await self.uow.promotions.find_by_code(property_id, normalized):
                raise ValidationError(f"Code {normalized} already exists for this property")

            promotion = Promotion(
                property_id=property_id,
                code=normalized.upper(),
                description=description,
                scope=PromotionScope(scope_value),
                value=value,
                start_date=start_date,
                end_date=end_date,
                created_at=self.clock()
            )
            return await self.uow.promotions.save(promotion)

        return await self._run(work)

    async def get_promotion(self, promotion_id: UUID) -> Promotion:
        promotion = await self.uow.promotions.find_by_id(promotion_id)
        if not promotion:
            raise NotFoundError(f"Promotion {promotion_id} not found")
        return promotion

    async def list_promotions(self, property_id: UUID) -> List[Promotion]:
        """Discount codes of a property, newest first"""
        promotions = await self.uow.promotions.find_by_property(property_id)
        return sorted(promotions, key=lambda p: p.created_at, reverse=True)

    async def deactivate_promotion(self, promotion_id: UUID) -> Promotion:
        """Withdraw a discount code; it stays on record and is refused from now on"""

        async def work() -> Promotion:
            promotion = await self.get_promotion(promotion_id)
            promotion.deactivate()
            logger.info("Promotion %s deactivated", promotion.code)
            return await self.uow.promotions.save(promotion)

        return await self._run(work)

    # ==================== MINIBAR & ORDERS ====================
    async def create_minibar_item(self, property_id: UUID, name: str, unit_price: Decimal) -> MinibarItem:
        async def work() -> MinibarItem:
            await self.get_property(property_id)
            if unit_price < 0:
                raise ValidationError("Unit price cannot be negative")
            return await self.uow.minibar_items.save(
                MinibarItem(property_id=property_id, name=name, unit_price=unit_price)
            )

        return await self._run(work)

    async def create_walk_in_order(
        self,
        property_id: UUID,
        items: List[OrderItem],
        customer_name: str = "Walk-in guest"
    ) -> Order:
        async def work() -> Order:
            await self.get_property(property_id)
            if not items:
                raise ValidationError("Order must contain at least one item")
            order = Order(
                property_id=property_id,
                customer_name=customer_name,
                items=list(items),
                created_at=self.clock()
            )
            return await self.uow.orders.save(order)

        return await self._run(work)
