"""API Schemas - Request and Response DTOs"""
from pydantic import BaseModel, Field
from datetime import date, datetime, time
from decimal import Decimal
from uuid import UUID
from typing import Dict, List, Optional

from domain.enums import BookingRoomStatus, PaymentType, PropertyStatus, PromotionScope, RoomStatus, SurchargeType


# ============================================================================
# CATALOG SCHEMAS
# ============================================================================

class CreatePropertyRequest(BaseModel):
    """Create property request DTO"""
    code: str = Field(min_length=1)
    name: str = Field(min_length=1)
    vat_rate: Decimal = Field(ge=0, le=100, default=Decimal("10"))
    check_in_time: time = time(14, 0)
    check_out_time: time = time(12, 0)


class PropertyResponse(BaseModel):
    """Property response DTO"""
    property_id: UUID
    code: str
    name: str
    vat_rate: Decimal
    check_in_time: time
    check_out_time: time
    status: PropertyStatus

    class Config:
        from_attributes = True


class CreateRoomTypeRequest(BaseModel):
    """Create room type request DTO"""
    property_id: UUID
    name: str = Field(min_length=1)
    capacity: int = Field(ge=1)
    base_price_from: Optional[Decimal] = Field(None, gt=0)
    base_price_to: Optional[Decimal] = Field(None, gt=0)


class BasePriceRequest(BaseModel):
    """Base price request DTO"""
    price_from: Decimal = Field(gt=0)
    price_to: Optional[Decimal] = Field(None, gt=0)


class DayOfWeekPricesRequest(BaseModel):
    """Bulk day-of-week prices, keyed 0 (Sunday) to 6 (Saturday)"""
    prices: Dict[int, Decimal]


class DateRangePriceRequest(BaseModel):
    """Date range price request DTO"""
    start_date: date
    end_date: date
    price: Decimal = Field(gt=0)
    description: str = ""


class DateRangePriceResponse(BaseModel):
    """Date range price response DTO"""
    rule_id: UUID
    start_date: date
    end_date: date
    price: Decimal
    description: str
    is_active: bool
    created_at: datetime

    class Config:
        from_attributes = True


class RoomTypeResponse(BaseModel):
    """Room type response DTO"""
    room_type_id: UUID
    property_id: UUID
    name: str
    capacity: int
    base_price_from: Optional[Decimal] = None
    base_price_to: Optional[Decimal] = None
    day_of_week_prices: Dict[int, Decimal] = {}
    date_range_prices: List[DateRangePriceResponse] = []

    class Config:
        from_attributes = True


class CreateRoomRequest(BaseModel):
    """Create room request DTO"""
    room_type_id: UUID
    number: str = Field(min_length=1)
    floor: int = 1


class RoomStatusRequest(BaseModel):
    """Room operational status request DTO"""
    status: RoomStatus


class RoomResponse(BaseModel):
    """Room response DTO"""
    room_id: UUID
    property_id: UUID
    room_type_id: UUID
    number: str
    floor: int
    status: RoomStatus

    class Config:
        from_attributes = True


class CreateSurchargeRuleRequest(BaseModel):
    """Create surcharge rule request DTO"""
    property_id: UUID
    surcharge_type: SurchargeType
    amount: Decimal = Field(ge=0)
    is_percentage: bool = False


class SurchargeRuleResponse(BaseModel):
    """Surcharge rule response DTO"""
    rule_id: UUID
    property_id: UUID
    surcharge_type: SurchargeType
    amount: Decimal
    is_percentage: bool
    is_active: bool

    class Config:
        from_attributes = True


class CreatePromotionRequest(BaseModel):
    """Create promotion request DTO"""
    property_id: UUID
    code: str
    value: Decimal
    start_date: datetime
    end_date: datetime
    scope: Optional[str] = Field(None, description="booking or food; defaults to booking")
    description: str = ""


class PromotionResponse(BaseModel):
    """Promotion response DTO"""
    promotion_id: UUID
    property_id: UUID
    code: str
    description: str
    scope: PromotionScope
    value: Decimal
    start_date: datetime
    end_date: datetime
    is_active: bool

    class Config:
        from_attributes = True


class CreateMinibarItemRequest(BaseModel):
    """Create minibar item request DTO"""
    property_id: UUID
    name: str = Field(min_length=1)
    unit_price: Decimal = Field(ge=0)


class MinibarItemResponse(BaseModel):
    """Minibar item response DTO"""
    item_id: UUID
    property_id: UUID
    name: str
    unit_price: Decimal

    class Config:
        from_attributes = True


# ============================================================================
# PRICING SCHEMAS
# ============================================================================

class QuoteItemResponse(BaseModel):
    """One night of a quote"""
    night: date
    price: Decimal
    source: str
    rule_id: Optional[UUID] = None


class QuoteResponse(BaseModel):
    """Quote response DTO"""
    room_type_id: UUID
    nights: int
    items: List[QuoteItemResponse]
    total: Decimal
    warnings: List[str] = []


# ============================================================================
# BOOKING SCHEMAS
# ============================================================================

class PaymentRequest(BaseModel):
    """Record payment request DTO"""
    amount: Decimal = Field(gt=0)
    payment_type: PaymentType = PaymentType.CASH
    note: Optional[str] = None


class CheckInRequest(BaseModel):
    """Check-in request DTO"""
    booking_room_id: UUID
    checked_in_at: Optional[datetime] = None


class CheckOutRoomRequest(BaseModel):
    """Single room checkout request DTO"""
    booking_room_id: UUID
    checked_out_at: Optional[datetime] = None


class ChangeRoomRequest(BaseModel):
    """Change room request DTO"""
    booking_room_id: UUID
    new_room_id: UUID


class ExtendStayRequest(BaseModel):
    """Extend stay request DTO"""
    booking_room_id: UUID
    new_end_date: date


class MinibarConsumptionRequest(BaseModel):
    """Minibar consumption request DTO"""
    item_id: UUID
    original_quantity: int = Field(ge=0)
    consumed_quantity: int = Field(ge=0)


class PaymentResponse(BaseModel):
    """Payment response DTO"""
    payment_id: UUID
    amount: Decimal
    payment_type: str
    timestamp: datetime
    note: Optional[str] = None


class BookingRoomResponse(BaseModel):
    """Booked room response DTO"""
    booking_room_id: UUID
    room_id: UUID
    room_number: str
    start_date: date
    end_date: date
    actual_check_in_at: Optional[datetime] = None
    actual_check_out_at: Optional[datetime] = None
    status: str


class BookingRoomTypeResponse(BaseModel):
    """Booking line response DTO"""
    booking_room_type_id: UUID
    room_type_id: UUID
    room_type_name: str
    start_date: date
    end_date: date
    total_room: int
    price: Decimal
    rooms: List[BookingRoomResponse]


class MinibarBookingResponse(BaseModel):
    """Minibar consumption response DTO"""
    item_id: UUID
    item_name: str
    unit_price: Decimal
    original_quantity: int
    consumed_quantity: int
    amount: Decimal


class BookingIntervalResponse(BaseModel):
    """Booked interval of a room response DTO"""
    booking_id: UUID
    booking_room_id: UUID
    confirmation_code: str
    status: BookingRoomStatus
    start_date: date
    end_date: date

    class Config:
        from_attributes = True


class RoomAvailabilityResponse(BaseModel):
    """Room availability response DTO"""
    room_id: UUID
    room_type_id: UUID
    room_number: str
    floor: int
    status: RoomStatus
    is_free: bool
    intervals: List[BookingIntervalResponse]


class BookingResponse(BaseModel):
    """Booking response DTO"""
    booking_id: UUID
    confirmation_code: str
    property_id: UUID
    primary_guest_id: UUID
    guest_ids: List[UUID]
    status: str
    deposit_amount: Decimal
    discount_amount: Decimal
    additional_amount: Decimal
    additional_notes: Optional[str] = None
    total_amount: Decimal
    left_amount: Decimal
    discount_code: Optional[str] = None
    room_types: List[BookingRoomTypeResponse]
    payments: List[PaymentResponse]
    minibar: List[MinibarBookingResponse]
    notes: Optional[str] = None
    cancellation_reason: Optional[str] = None
    invoice_id: Optional[UUID] = None
    created_at: datetime
    modified_at: datetime


# ============================================================================
# INVOICE SCHEMAS
# ============================================================================

class InvoiceLineResponse(BaseModel):
    """Invoice line response DTO"""
    line_id: UUID
    source_type: str
    description: str
    amount: Decimal
    source_id: Optional[UUID] = None


class InvoiceResponse(BaseModel):
    """Invoice response DTO"""
    invoice_id: UUID
    invoice_number: str
    property_id: UUID
    booking_id: Optional[UUID] = None
    order_id: Optional[UUID] = None
    is_walk_in: bool
    lines: List[InvoiceLineResponse]
    subtotal: Decimal
    discount_amount: Decimal
    total_amount: Decimal
    tax_amount: Decimal = Decimal("0.00")
    notes: Optional[str] = None
    created_at: datetime


class CheckoutResponse(BaseModel):
    """Checkout response DTO"""
    booking: BookingResponse
    invoice: InvoiceResponse
    room_subtotal: Decimal
    surcharge_total: Decimal
    minibar_total: Decimal
    additional_amount: Decimal
    discount_amount: Decimal
    total_amount: Decimal
    paid_amount: Decimal
    left_amount: Decimal
    refund_due: Decimal


class CancellationResponse(BaseModel):
    """Cancellation response DTO"""
    booking: BookingResponse
    refund_amount: Decimal
    cancellation_fee: Decimal
    reason: str


class OrderItemRequest(BaseModel):
    """Order item request DTO"""
    name: str = Field(min_length=1)
    quantity: int = Field(ge=1)
    unit_price: Decimal = Field(ge=0)


class CreateOrderRequest(BaseModel):
    """Walk-in order request DTO"""
    property_id: UUID
    customer_name: str = "Walk-in guest"
    items: List[OrderItemRequest] = Field(min_length=1)


class OrderItemResponse(BaseModel):
    """Order item response DTO"""
    order_item_id: UUID
    name: str
    quantity: int
    unit_price: Decimal
    amount: Decimal


class OrderResponse(BaseModel):
    """Order response DTO"""
    order_id: UUID
    property_id: UUID
    customer_name: str
    is_walk_in: bool
    items: List[OrderItemResponse]
    invoice_id: Optional[UUID] = None
    created_at: datetime


class WalkInInvoiceRequest(BaseModel):
    """Walk-in invoice request DTO"""
    order_id: UUID
    discount_code: Optional[str] = None
