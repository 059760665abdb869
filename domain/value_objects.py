"""Domain Value Objects"""
from pydantic import BaseModel, Field, validator
from datetime import date, datetime, timedelta
from decimal import Decimal, ROUND_HALF_UP
from uuid import UUID
from typing import Optional, List, Iterator

from domain.enums import BookingRoomStatus, InvoiceLineSourceType, RoomStatus
from domain.errors import ValidationError as DomainValidationError

CENT = Decimal("0.01")


def to_money(value) -> Decimal:
    """Quantize an amount to two decimal places, rounding half up"""
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


class DateRange(BaseModel):
    """Value Object for half-open night ranges [start_date, end_date)"""
    start_date: date
    end_date: date

    @validator('end_date')
    def end_after_start(cls, v, values):
        if 'start_date' in values and v <= values['start_date']:
            raise ValueError('End date must be after start date')
        return v

    @staticmethod
    def between(start_date: date, end_date: date) -> "DateRange":
        """Build a range from caller input, reporting bad dates as a domain error"""
        if end_date <= start_date:
            raise DomainValidationError("End date must be after start date")
        return DateRange(start_date=start_date, end_date=end_date)

    def nights(self) -> int:
        """Calculate number of nights"""
        return (self.end_date - self.start_date).days

    def dates(self) -> Iterator[date]:
        """Yield every night of the range"""
        cursor = self.start_date
        while cursor < self.end_date:
            yield cursor
            cursor += timedelta(days=1)

    def overlaps(self, other: "DateRange") -> bool:
        return self.start_date < other.end_date and other.start_date < self.end_date

    class Config:
        frozen = True


class GuestInfo(BaseModel):
    """Guest details supplied with a booking request"""
    full_name: str = Field(min_length=1)
    phone: str = Field(min_length=1)
    email: Optional[str] = None
    id_card_image_url: Optional[str] = None

    class Config:
        frozen = True


class ChargeLine(BaseModel):
    """One priced component of a bill; negative for discounts"""
    source_type: InvoiceLineSourceType
    description: str
    amount: Decimal
    source_id: Optional[UUID] = None

    class Config:
        frozen = True


class SurchargeContext(BaseModel):
    """Conditions a stay met, evaluated against the room subtotal"""
    subtotal: Decimal = Field(ge=0)
    is_early_check_in: bool = False
    is_late_check_out: bool = False
    extra_guest_count: int = Field(ge=0, default=0)

    class Config:
        frozen = True


class NightlyRate(BaseModel):
    """Resolved price of one room for one night"""
    night: date
    price: Decimal
    source: str
    rule_id: Optional[UUID] = None
    conflicting_rule_ids: List[UUID] = []

    @property
    def is_ambiguous(self) -> bool:
        return len(self.conflicting_rule_ids) > 0

    class Config:
        frozen = True


class PriceQuote(BaseModel):
    """Per-night breakdown of a stay for one room"""
    room_type_id: UUID
    items: List[NightlyRate]
    total: Decimal
    warnings: List[str] = []

    class Config:
        frozen = True


class RoomAssignment(BaseModel):
    """A concrete room handed out by the allocator"""
    booking_room_type_id: UUID
    room_id: UUID
    room_number: str
    start_date: date
    end_date: date

    class Config:
        frozen = True


class BookingInterval(BaseModel):
    """Nights one allocation blocks a room for"""
    booking_id: UUID
    booking_room_id: UUID
    confirmation_code: str
    status: BookingRoomStatus
    start_date: date
    end_date: date

    class Config:
        frozen = True


class RoomAvailability(BaseModel):
    """A room with the allocations it holds inside a query window"""
    room_id: UUID
    room_type_id: UUID
    room_number: str
    floor: int
    status: RoomStatus
    intervals: List[BookingInterval] = []

    @property
    def is_free(self) -> bool:
        return not self.intervals

    class Config:
        frozen = True


class CancellationPolicy(BaseModel):
    """Value Object for cancellation policy"""
    policy_name: str
    refund_percentage: Decimal = Field(ge=0, le=100)
    deadline_hours: int = Field(ge=0)

    def calculate_refund(self, deposit: Decimal, start_date: date, cancelled_at: datetime) -> Decimal:
        """Full refund before the deadline, otherwise the policy percentage"""
        checkin_datetime = datetime.combine(start_date, datetime.min.time())
        hours_until_checkin = (checkin_datetime - cancelled_at).total_seconds() / 3600

        if hours_until_checkin >= self.deadline_hours:
            return to_money(deposit)
        return to_money(deposit * self.refund_percentage / 100)

    class Config:
        frozen = True
