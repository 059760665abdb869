"""Domain Entities - Aggregates"""
from pydantic import BaseModel, Field
from uuid import UUID, uuid4
from datetime import datetime, date, time, timedelta
from typing import Optional, List, Dict, Tuple
from decimal import Decimal

from domain.enums import (
    BookingStatus, BookingRoomStatus, RoomStatus, SurchargeType, PromotionScope,
    PaymentType, PropertyStatus, InvoiceLineSourceType, UNALLOCATABLE_ROOM_STATUSES,
)
from domain.errors import ValidationError, NotFoundError, InvalidStateTransitionError
from domain.state_machine import (
    ensure_booking_transition, ensure_room_transition, derive_booking_status,
    MUTABLE_BOOKING_STATUSES,
)
from domain.value_objects import DateRange, ChargeLine, to_money


# ============================================================================
# CATALOG
# ============================================================================

class Property(BaseModel):
    """Hotel property.

    Stay timestamps (check-in, check-out, payments, promotion windows) are naive
    datetimes in the property's local wall-clock time, the same clock as
    ``check_in_time`` and ``check_out_time``.
    """
    property_id: UUID = Field(default_factory=uuid4)
    code: str = Field(min_length=1)
    name: str
    vat_rate: Decimal = Field(ge=0, le=100, default=Decimal("10"))
    check_in_time: time = time(14, 0)
    check_out_time: time = time(12, 0)
    status: PropertyStatus = PropertyStatus.ACTIVE
    created_at: datetime = Field(default_factory=datetime.utcnow)

    class Config:
        from_attributes = True

    def is_early_check_in(self, checked_in_at: datetime, start_date: date) -> bool:
        """Arrived before the standard check-in time of the first night"""
        return checked_in_at < datetime.combine(start_date, self.check_in_time)

    def is_late_check_out(self, checked_out_at: datetime, end_date: date) -> bool:
        """Left after the standard check-out time of the planned departure day"""
        return checked_out_at > datetime.combine(end_date, self.check_out_time)


class DateRangePrice(BaseModel):
    """Price override for an inclusive window of nights (holidays, events)"""
    rule_id: UUID = Field(default_factory=uuid4)
    start_date: date
    end_date: date
    price: Decimal = Field(gt=0)
    description: str = ""
    is_active: bool = True
    created_at: datetime = Field(default_factory=datetime.utcnow)

    class Config:
        from_attributes = True

    def contains(self, night: date) -> bool:
        return self.is_active and self.start_date <= night <= self.end_date


class RoomType(BaseModel):
    """Room type with its pricing rule set"""
    room_type_id: UUID = Field(default_factory=uuid4)
    property_id: UUID
    name: str
    capacity: int = Field(ge=1)
    base_price_from: Optional[Decimal] = None
    base_price_to: Optional[Decimal] = None
    # 0 = Sunday ... 6 = Saturday
    day_of_week_prices: Dict[int, Decimal] = {}
    date_range_prices: List[DateRangePrice] = []
    created_at: datetime = Field(default_factory=datetime.utcnow)

    class Config:
        from_attributes = True

    def set_base_price(self, price_from: Decimal, price_to: Optional[Decimal] = None) -> None:
        if price_from <= 0:
            raise ValidationError("Base price must be greater than 0")
        if price_to is not None and price_to < price_from:
            raise ValidationError("Upper base price must not be below the lower base price")
        self.base_price_from = to_money(price_from)
        self.base_price_to = to_money(price_to) if price_to is not None else None

    def set_day_of_week_price(self, day_of_week: int, price: Decimal) -> None:
        if day_of_week < 0 or day_of_week > 6:
            raise ValidationError("Day of week must be between 0 (Sunday) and 6 (Saturday)")
        if price <= 0:
            raise ValidationError("Price must be greater than 0")
        self.day_of_week_prices[day_of_week] = to_money(price)

    def add_date_range_price(
        self,
        start_date: date,
        end_date: date,
        price: Decimal,
        description: str = "",
        created_at: Optional[datetime] = None
    ) -> DateRangePrice:
        if end_date < start_date:
            raise ValidationError("End date must not be before start date")
        if price <= 0:
            raise ValidationError("Price must be greater than 0")

        rule = DateRangePrice(
            start_date=start_date,
            end_date=end_date,
            price=to_money(price),
            description=description,
            created_at=created_at or datetime.utcnow()
        )
        self.date_range_prices.append(rule)
        return rule

    def deactivate_date_range_price(self, rule_id: UUID) -> None:
        for rule in self.date_range_prices:
            if rule.rule_id == rule_id:
                rule.is_active = False
                return
        raise NotFoundError(f"Date range price {rule_id} not found")

    def date_range_prices_for(self, night: date) -> List[DateRangePrice]:
        """Active overrides containing the night, most recently created first"""
        matches = [rule for rule in self.date_range_prices if rule.contains(night)]
        return sorted(matches, key=lambda rule: rule.created_at, reverse=True)


class Room(BaseModel):
    """Physical room"""
    room_id: UUID = Field(default_factory=uuid4)
    property_id: UUID
    room_type_id: UUID
    number: str
    floor: int = 1
    status: RoomStatus = RoomStatus.AVAILABLE
    created_at: datetime = Field(default_factory=datetime.utcnow)

    class Config:
        from_attributes = True

    @property
    def is_allocatable(self) -> bool:
        return self.status not in UNALLOCATABLE_ROOM_STATUSES

    def change_status(self, new_status: RoomStatus) -> None:
        self.status = new_status


class SurchargeRule(BaseModel):
    """Property-level surcharge"""
    rule_id: UUID = Field(default_factory=uuid4)
    property_id: UUID
    surcharge_type: SurchargeType
    amount: Decimal = Field(ge=0)
    is_percentage: bool = False
    is_active: bool = True

    class Config:
        from_attributes = True

    def calculate(self, subtotal: Decimal) -> Decimal:
        if self.is_percentage:
            return to_money(subtotal * self.amount / 100)
        return to_money(self.amount)


class Promotion(BaseModel):
    """Discount code"""
    promotion_id: UUID = Field(default_factory=uuid4)
    property_id: UUID
    code: str = Field(min_length=1)
    description: str = ""
    scope: PromotionScope = PromotionScope.BOOKING
    value: Decimal = Field(gt=0, le=100)
    start_date: datetime
    end_date: datetime
    is_active: bool = True
    created_at: datetime = Field(default_factory=datetime.utcnow)

    class Config:
        from_attributes = True

    def is_valid_at(self, as_of: datetime) -> bool:
        return self.is_active and self.start_date <= as_of <= self.end_date

    def deactivate(self) -> None:
        self.is_active = False


class MinibarItem(BaseModel):
    """Minibar stock item"""
    item_id: UUID = Field(default_factory=uuid4)
    property_id: UUID
    name: str
    unit_price: Decimal = Field(ge=0)

    class Config:
        from_attributes = True


class Guest(BaseModel):
    """Guest record"""
    guest_id: UUID = Field(default_factory=uuid4)
    full_name: str
    phone: str
    email: Optional[str] = None
    id_card_image_url: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)

    class Config:
        from_attributes = True


# ============================================================================
# BOOKING AGGREGATE
# ============================================================================

class Payment(BaseModel):
    """Money received against a booking"""
    payment_id: UUID = Field(default_factory=uuid4)
    amount: Decimal = Field(gt=0)
    payment_type: PaymentType = PaymentType.CASH
    timestamp: datetime = Field(default_factory=datetime.utcnow)
    note: Optional[str] = None

    class Config:
        from_attributes = True


class MinibarBooking(BaseModel):
    """Minibar consumption recorded against a booking"""
    minibar_booking_id: UUID = Field(default_factory=uuid4)
    item_id: UUID
    item_name: str
    unit_price: Decimal = Field(ge=0)
    original_quantity: int = Field(ge=0)
    consumed_quantity: int = Field(ge=0, default=0)

    class Config:
        from_attributes = True

    @property
    def amount(self) -> Decimal:
        return to_money(self.unit_price * self.consumed_quantity)


class BookingRoom(BaseModel):
    """One physical room allocated under a booking line"""
    booking_room_id: UUID = Field(default_factory=uuid4)
    booking_room_type_id: UUID
    room_id: UUID
    room_number: str
    start_date: date
    end_date: date
    actual_check_in_at: Optional[datetime] = None
    actual_check_out_at: Optional[datetime] = None
    status: BookingRoomStatus = BookingRoomStatus.PENDING

    class Config:
        from_attributes = True

    @property
    def is_active(self) -> bool:
        return self.status != BookingRoomStatus.CANCELLED

    def billable_end_date(self) -> date:
        """Actual departure day when known, otherwise the planned end.

        Never past the planned end: staying on requires extending the allocation;
        a late departure on the last day is a LATE_CHECK_OUT surcharge.
        """
        end = self.end_date
        if self.actual_check_out_at:
            end = min(self.actual_check_out_at.date(), self.end_date)
        if end <= self.start_date:
            end = self.start_date + timedelta(days=1)
        return end

    def billable_range(self) -> DateRange:
        return DateRange(start_date=self.start_date, end_date=self.billable_end_date())

    def occupied_range(self) -> Optional[DateRange]:
        """Interval this allocation blocks the room for; None once cancelled"""
        if not self.is_active:
            return None
        if self.status == BookingRoomStatus.CHECKED_OUT:
            return self.billable_range()
        return DateRange(start_date=self.start_date, end_date=self.end_date)

    def check_in(self, at: datetime) -> None:
        ensure_room_transition(self.status, BookingRoomStatus.CHECKED_IN)
        self.status = BookingRoomStatus.CHECKED_IN
        self.actual_check_in_at = at

    def check_out(self, at: datetime) -> None:
        ensure_room_transition(self.status, BookingRoomStatus.CHECKED_OUT)
        if self.actual_check_in_at and at < self.actual_check_in_at:
            raise ValidationError(
                f"Room {self.room_number} cannot check out at {at} before its check-in at {self.actual_check_in_at}"
            )
        self.status = BookingRoomStatus.CHECKED_OUT
        self.actual_check_out_at = at

    def cancel(self) -> None:
        ensure_room_transition(self.status, BookingRoomStatus.CANCELLED)
        self.status = BookingRoomStatus.CANCELLED


class BookingRoomType(BaseModel):
    """Request for N rooms of one room type at an agreed price"""
    booking_room_type_id: UUID = Field(default_factory=uuid4)
    room_type_id: UUID
    room_type_name: str
    start_date: date
    end_date: date
    total_room: int = Field(ge=1)
    # Agreed nightly price and the per-night rates it was derived from
    price: Decimal
    nightly_rates: Dict[date, Decimal] = {}
    rooms: List[BookingRoom] = []

    class Config:
        from_attributes = True

    def active_rooms(self) -> List[BookingRoom]:
        return [room for room in self.rooms if room.is_active]

    def rate_for(self, night: date) -> Optional[Decimal]:
        return self.nightly_rates.get(night)

    def capture_rates(self, rates: Dict[date, Decimal]) -> None:
        """Record quoted rates for nights not already agreed"""
        for night, price in rates.items():
            self.nightly_rates.setdefault(night, to_money(price))

    def quoted_room_total(self, room: BookingRoom) -> Decimal:
        """Quoted charge for one allocation over its planned nights"""
        total = Decimal("0")
        for night in DateRange(start_date=room.start_date, end_date=room.end_date).dates():
            total += self.nightly_rates.get(night, self.price)
        return to_money(total)


class Booking(BaseModel):
    """Booking Aggregate Root Entity"""

    # Identity
    booking_id: UUID = Field(default_factory=uuid4)
    confirmation_code: str

    # References to other aggregates
    property_id: UUID
    primary_guest_id: UUID
    guest_ids: List[UUID] = []

    # Status
    status: BookingStatus = BookingStatus.PENDING

    # Money
    deposit_amount: Decimal = Decimal("0.00")
    discount_amount: Decimal = Decimal("0.00")
    additional_amount: Decimal = Decimal("0.00")
    additional_notes: Optional[str] = None
    total_amount: Decimal = Decimal("0.00")
    left_amount: Decimal = Decimal("0.00")
    discount_code: Optional[str] = None

    # Child entities
    room_types: List[BookingRoomType] = []
    payments: List[Payment] = []
    minibar: List[MinibarBooking] = []

    # Lifecycle details
    notes: Optional[str] = None
    cancellation_reason: Optional[str] = None
    cancelled_at: Optional[datetime] = None
    checked_out_at: Optional[datetime] = None
    invoice_id: Optional[UUID] = None

    # Metadata
    created_at: datetime = Field(default_factory=datetime.utcnow)
    modified_at: datetime = Field(default_factory=datetime.utcnow)
    version: int = 1

    class Config:
        from_attributes = True

    # ==================== FACTORY METHOD ====================
    @staticmethod
    def create(
        property_id: UUID,
        primary_guest_id: UUID,
        guest_ids: Optional[List[UUID]] = None,
        notes: Optional[str] = None,
        created_at: Optional[datetime] = None
    ) -> "Booking":
        """Create a new pending booking without lines"""
        now = created_at or datetime.utcnow()
        return Booking(
            confirmation_code=Booking._generate_confirmation_code(),
            property_id=property_id,
            primary_guest_id=primary_guest_id,
            guest_ids=list(guest_ids or []),
            notes=notes,
            status=BookingStatus.PENDING,
            created_at=now,
            modified_at=now
        )

    # ==================== QUERY METHODS ====================
    def all_rooms(self) -> List[BookingRoom]:
        return [room for line in self.room_types for room in line.rooms]

    def active_rooms(self) -> List[BookingRoom]:
        return [room for room in self.all_rooms() if room.is_active]

    def find_room(self, booking_room_id: UUID) -> Tuple[BookingRoomType, BookingRoom]:
        for line in self.room_types:
            for room in line.rooms:
                if room.booking_room_id == booking_room_id:
                    return line, room
        raise NotFoundError(f"Booked room {booking_room_id} not found in booking {self.booking_id}")

    def guest_count(self) -> int:
        return 1 + len(self.guest_ids)

    def total_paid(self) -> Decimal:
        return to_money(sum((p.amount for p in self.payments), Decimal("0")))

    def is_mutable(self) -> bool:
        return self.status in MUTABLE_BOOKING_STATUSES

    # ==================== MODIFICATION METHODS ====================
    def add_line(self, line: BookingRoomType) -> None:
        self._ensure_mutable()
        self.room_types.append(line)
        self.recalculate_totals()

    def record_payment(self, payment: Payment) -> None:
        """Record a deposit or interim payment"""
        self._ensure_mutable()
        self.payments.append(payment)
        self.deposit_amount = to_money(self.deposit_amount + payment.amount)
        self.recalculate_totals()

    def record_minibar(self, item: MinibarItem, original_quantity: int, consumed_quantity: int) -> MinibarBooking:
        """Set minibar consumption for an item, replacing any earlier count"""
        self._ensure_mutable()
        if consumed_quantity > original_quantity:
            raise ValidationError("Consumed quantity cannot exceed the original quantity")

        for entry in self.minibar:
            if entry.item_id == item.item_id:
                entry.original_quantity = original_quantity
                entry.consumed_quantity = consumed_quantity
                self._touch()
                return entry

        entry = MinibarBooking(
            item_id=item.item_id,
            item_name=item.name,
            unit_price=item.unit_price,
            original_quantity=original_quantity,
            consumed_quantity=consumed_quantity
        )
        self.minibar.append(entry)
        self._touch()
        return entry

    def recalculate_totals(self) -> None:
        """Quoted total of all active allocations, before checkout adjustments"""
        total = Decimal("0")
        for line in self.room_types:
            for room in line.active_rooms():
                total += line.quoted_room_total(room)
        self.total_amount = to_money(total)
        self.left_amount = to_money(max(Decimal("0"), self.total_amount - self.total_paid()))
        self._touch()

    # ==================== STATE TRANSITION METHODS ====================
    def confirm(self, minimum_deposit: Decimal) -> None:
        """Confirm booking once the deposit covers the minimum"""
        ensure_booking_transition(self.status, BookingStatus.CONFIRMED)
        self.ensure_allocation_complete()

        if self.deposit_amount < minimum_deposit:
            raise ValidationError(
                f"Deposit {self.deposit_amount} is below the required minimum {to_money(minimum_deposit)}"
            )

        self.status = BookingStatus.CONFIRMED
        self._touch()

    def check_in_room(self, booking_room_id: UUID, at: datetime) -> BookingRoom:
        """Check one allocated room in"""
        if self.status not in (BookingStatus.CONFIRMED, BookingStatus.CHECKED_IN):
            raise InvalidStateTransitionError(
                f"Cannot check in a room of a booking with status {self.status.value}"
            )

        _, room = self.find_room(booking_room_id)
        room.check_in(at)
        self.status = derive_booking_status(self.status, (r.status for r in self.all_rooms()))
        self._touch()
        return room

    def check_out_room(self, booking_room_id: UUID, at: datetime) -> BookingRoom:
        """Check one room out ahead of the final checkout"""
        if self.status != BookingStatus.CHECKED_IN:
            raise InvalidStateTransitionError(
                f"Cannot check out a room of a booking with status {self.status.value}"
            )

        _, room = self.find_room(booking_room_id)
        room.check_out(at)
        self._touch()
        return room

    def cancel(self, reason: str, at: datetime) -> None:
        """Cancel booking and release every allocation"""
        ensure_booking_transition(self.status, BookingStatus.CANCELLED)

        for room in self.active_rooms():
            room.cancel()

        self.status = BookingStatus.CANCELLED
        self.cancellation_reason = reason
        self.cancelled_at = at
        self._touch()

    def ensure_ready_for_checkout(self) -> None:
        ensure_booking_transition(self.status, BookingStatus.CHECKED_OUT)

        pending = [r.room_number for r in self.active_rooms() if r.status == BookingRoomStatus.PENDING]
        if pending:
            raise InvalidStateTransitionError(
                f"Rooms not checked in yet: {', '.join(pending)}"
            )

    def finalize_checkout(
        self,
        total_amount: Decimal,
        discount_amount: Decimal,
        additional_amount: Decimal,
        additional_notes: Optional[str],
        discount_code: Optional[str],
        invoice_id: UUID,
        at: datetime
    ) -> None:
        """Freeze money fields and close the booking"""
        self.ensure_ready_for_checkout()

        self.total_amount = to_money(total_amount)
        self.discount_amount = to_money(discount_amount)
        self.additional_amount = to_money(additional_amount)
        self.additional_notes = additional_notes
        self.discount_code = discount_code
        self.left_amount = to_money(max(Decimal("0"), self.total_amount - self.total_paid()))
        self.invoice_id = invoice_id
        self.checked_out_at = at
        self.status = BookingStatus.CHECKED_OUT
        self._touch()

    # ==================== INVARIANTS ====================
    def ensure_allocation_complete(self) -> None:
        """Every line must hold exactly total_room active allocations"""
        for line in self.room_types:
            allocated = len(line.active_rooms())
            if allocated != line.total_room:
                raise ValidationError(
                    f"Line {line.room_type_name} expects {line.total_room} rooms but has {allocated}"
                )

    # ==================== PRIVATE METHODS ====================
    def _ensure_mutable(self) -> None:
        if not self.is_mutable():
            raise InvalidStateTransitionError(
                f"Booking with status {self.status.value} can no longer be changed"
            )

    def _touch(self) -> None:
        self.modified_at = datetime.utcnow()
        self.version += 1

    @staticmethod
    def _generate_confirmation_code() -> str:
        """Generate unique confirmation code"""
        import random
        import string
        return ''.join(random.choices(string.ascii_uppercase + string.digits, k=8))


# ============================================================================
# ORDERS & INVOICES
# ============================================================================

class OrderItem(BaseModel):
    """Food or beverage line of an order"""
    order_item_id: UUID = Field(default_factory=uuid4)
    name: str
    quantity: int = Field(ge=1)
    unit_price: Decimal = Field(ge=0)

    class Config:
        from_attributes = True

    @property
    def amount(self) -> Decimal:
        return to_money(self.unit_price * self.quantity)


class Order(BaseModel):
    """Restaurant order; walk-in orders are not tied to a booking"""
    order_id: UUID = Field(default_factory=uuid4)
    property_id: UUID
    customer_name: str = "Walk-in guest"
    is_walk_in: bool = True
    booking_id: Optional[UUID] = None
    items: List[OrderItem] = []
    invoice_id: Optional[UUID] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)

    class Config:
        from_attributes = True


class InvoiceLine(BaseModel):
    """Immutable invoice line"""
    line_id: UUID = Field(default_factory=uuid4)
    source_type: InvoiceLineSourceType
    description: str
    amount: Decimal
    source_id: Optional[UUID] = None

    class Config:
        frozen = True
        from_attributes = True


class Invoice(BaseModel):
    """Immutable invoice emitted at checkout or for a walk-in order"""
    invoice_id: UUID = Field(default_factory=uuid4)
    invoice_number: str
    property_id: UUID
    booking_id: Optional[UUID] = None
    order_id: Optional[UUID] = None
    is_walk_in: bool = False
    lines: Tuple[InvoiceLine, ...]
    subtotal: Decimal
    discount_amount: Decimal
    total_amount: Decimal
    # VAT contained in total_amount, for information only
    tax_amount: Decimal = Decimal("0.00")
    notes: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)

    class Config:
        frozen = True
        from_attributes = True

    @staticmethod
    def build(
        property_id: UUID,
        charges: List[ChargeLine],
        booking_id: Optional[UUID] = None,
        order_id: Optional[UUID] = None,
        is_walk_in: bool = False,
        notes: Optional[str] = None,
        created_at: Optional[datetime] = None,
        vat_rate: Decimal = Decimal("0")
    ) -> "Invoice":
        """Build an invoice whose totals are derived from its lines.

        Prices are VAT-inclusive: ``vat_rate`` only splits the tax share out of
        the total and never changes it.
        """
        now = created_at or datetime.utcnow()
        lines = tuple(
            InvoiceLine(
                source_type=charge.source_type,
                description=charge.description,
                amount=to_money(charge.amount),
                source_id=charge.source_id
            )
            for charge in charges
        )

        discount = abs(sum(
            (l.amount for l in lines if l.source_type == InvoiceLineSourceType.DISCOUNT), Decimal("0")
        ))
        subtotal = sum(
            (l.amount for l in lines if l.source_type != InvoiceLineSourceType.DISCOUNT), Decimal("0")
        )
        total = max(Decimal("0"), subtotal - discount)
        tax = total * vat_rate / (100 + vat_rate)

        return Invoice(
            invoice_number=Invoice._generate_invoice_number(now),
            property_id=property_id,
            booking_id=booking_id,
            order_id=order_id,
            is_walk_in=is_walk_in,
            lines=lines,
            subtotal=to_money(subtotal),
            discount_amount=to_money(discount),
            total_amount=to_money(total),
            tax_amount=to_money(tax),
            notes=notes,
            created_at=now
        )

    def lines_of(self, source_type: InvoiceLineSourceType) -> List[InvoiceLine]:
        return [line for line in self.lines if line.source_type == source_type]

    @staticmethod
    def _generate_invoice_number(now: datetime) -> str:
        """Format: INV-{YearMonth}-{Random6Digits}"""
        import random
        return f"INV-{now:%y%m}-{random.randint(100000, 999999)}"
