"""Application DTOs - inbound requests and operation results"""
from pydantic import BaseModel, Field, validator
from datetime import date, datetime
from decimal import Decimal
from uuid import UUID
from typing import List, Optional

from domain.entities import Booking, Invoice
from domain.enums import PaymentType
from domain.value_objects import GuestInfo


class RoomTypeLineRequest(BaseModel):
    """Extra room type requested on the same booking and dates"""
    room_type_id: UUID
    room_count: int = Field(ge=1)


class CreateBookingRequest(BaseModel):
    """Create booking request"""
    hotel_id: UUID
    guest_info: GuestInfo
    room_type_id: UUID
    room_count: int = Field(ge=1)
    start_date: date
    end_date: date
    deposit_amount: Decimal = Field(ge=0, default=Decimal("0"))
    payment_type: PaymentType = PaymentType.CASH
    additional_guests: List[GuestInfo] = []
    extra_lines: List[RoomTypeLineRequest] = []
    notes: Optional[str] = None

    @validator('payment_type')
    def deposit_cannot_be_refund(cls, v):
        if v == PaymentType.REFUND:
            raise ValueError('Deposit cannot use the refund payment type')
        return v


class CheckoutRequest(BaseModel):
    """Checkout request; surcharge flags override the ones derived from stay times"""
    final_payment: Decimal = Field(ge=0, default=Decimal("0"))
    payment_type: PaymentType = PaymentType.CASH
    checkout_time: Optional[datetime] = None
    additional_amount: Decimal = Field(ge=0, default=Decimal("0"))
    discount_code: Optional[str] = None
    notes: Optional[str] = None
    is_early_check_in: Optional[bool] = None
    is_late_check_out: Optional[bool] = None
    extra_guest_count: Optional[int] = Field(None, ge=0)


class CancelBookingRequest(BaseModel):
    """Cancel booking request"""
    reason: str = Field(min_length=1, default="Guest changed plans")


class CheckoutResult(BaseModel):
    """Checkout outcome with the emitted invoice"""
    booking: Booking
    invoice: Invoice
    room_subtotal: Decimal
    surcharge_total: Decimal
    minibar_total: Decimal
    additional_amount: Decimal
    discount_amount: Decimal
    total_amount: Decimal
    paid_amount: Decimal
    left_amount: Decimal
    refund_due: Decimal


class CancellationResult(BaseModel):
    """Cancellation outcome"""
    booking: Booking
    refund_amount: Decimal
    cancellation_fee: Decimal
    reason: str
