import logging
from datetime import date
from typing import List, Optional
from uuid import UUID

import pydantic
from fastapi import FastAPI, Depends, Request
from fastapi.responses import JSONResponse

from api.schemas import (
    # Catalog
    CreatePropertyRequest, PropertyResponse, CreateRoomTypeRequest, RoomTypeResponse,
    BasePriceRequest, DayOfWeekPricesRequest, DateRangePriceRequest, DateRangePriceResponse,
    CreateRoomRequest, RoomStatusRequest, RoomResponse, CreateSurchargeRuleRequest,
    SurchargeRuleResponse, CreatePromotionRequest, PromotionResponse, CreateMinibarItemRequest,
    MinibarItemResponse,
    # Pricing
    QuoteResponse, QuoteItemResponse,
    # Booking
    PaymentRequest, CheckInRequest, CheckOutRoomRequest, ChangeRoomRequest, ExtendStayRequest,
    MinibarConsumptionRequest, BookingResponse, BookingRoomTypeResponse, BookingRoomResponse,
    PaymentResponse, MinibarBookingResponse, CheckoutResponse, CancellationResponse,
    BookingIntervalResponse, RoomAvailabilityResponse,
    # Orders & invoices
    CreateOrderRequest, OrderResponse, OrderItemResponse, WalkInInvoiceRequest,
    InvoiceResponse, InvoiceLineResponse,
)
from api.dependencies import (
    get_catalog_service, get_rate_resolver, get_booking_service, get_invoice_service,
)
from application.catalog import CatalogService
from application.dto import CreateBookingRequest, CheckoutRequest, CancelBookingRequest
from application.invoicing import InvoiceService
from application.pricing import RateResolver
from application.services import BookingLifecycle
from domain.entities import Booking, Invoice, Order, OrderItem
from domain.enums import BookingStatus, RoomStatus, PromotionScope
from domain.errors import BookingEngineError
from infrastructure.config import get_settings

settings = get_settings()

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s %(levelname)-8s [%(name)s] %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Hotel Booking API",
    description="Booking & pricing resolution engine for hotel reservations and restaurant orders",
    version=settings.app_version
)


@app.exception_handler(BookingEngineError)
async def booking_engine_error_handler(request: Request, exc: BookingEngineError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(pydantic.ValidationError)
async def model_validation_error_handler(request: Request, exc: pydantic.ValidationError):
    return JSONResponse(status_code=400, content={"code": "VALIDATION_ERROR", "message": str(exc)})


# ============================================================================
# HEALTH & ENUM REFERENCE ENDPOINTS
# ============================================================================

@app.get("/api/health", tags=["Health"])
async def health_check():
    """Health check endpoint"""
    return {"status": "healthy", "message": "API is running"}


@app.get("/api/enums/booking-status", tags=["Enum Reference"])
async def get_booking_statuses():
    """Get all BookingStatus enum values"""
    return {"values": [item.value for item in BookingStatus]}


@app.get("/api/enums/room-status", tags=["Enum Reference"])
async def get_room_statuses():
    """Get all RoomStatus enum values"""
    return {"values": [item.value for item in RoomStatus]}


@app.get("/api/enums/promotion-scope", tags=["Enum Reference"])
async def get_promotion_scopes():
    """Get all PromotionScope enum values"""
    return {"values": [item.value for item in PromotionScope]}


# ============================================================================
# CATALOG ENDPOINTS
# ============================================================================

@app.post("/api/properties", response_model=PropertyResponse, status_code=201, tags=["Catalog"])
async def create_property(request: CreatePropertyRequest, service: CatalogService = Depends(get_catalog_service)):
    hotel = await service.create_property(
        code=request.code,
        name=request.name,
        vat_rate=request.vat_rate,
        check_in_time=request.check_in_time,
        check_out_time=request.check_out_time
    )
    return PropertyResponse.model_validate(hotel)


@app.get("/api/properties/{property_id}", response_model=PropertyResponse, tags=["Catalog"])
async def get_property(property_id: UUID, service: CatalogService = Depends(get_catalog_service)):
    return PropertyResponse.model_validate(await service.get_property(property_id))


@app.post("/api/room-types", response_model=RoomTypeResponse, status_code=201, tags=["Catalog"])
async def create_room_type(request: CreateRoomTypeRequest, service: CatalogService = Depends(get_catalog_service)):
    room_type = await service.create_room_type(
        property_id=request.property_id,
        name=request.name,
        capacity=request.capacity,
        base_price_from=request.base_price_from,
        base_price_to=request.base_price_to
    )
    return RoomTypeResponse.model_validate(room_type)


@app.get("/api/properties/{property_id}/room-types", response_model=List[RoomTypeResponse], tags=["Catalog"])
async def list_room_types(property_id: UUID, service: CatalogService = Depends(get_catalog_service)):
    return [RoomTypeResponse.model_validate(rt) for rt in await service.list_room_types(property_id)]


@app.get("/api/room-types/{room_type_id}", response_model=RoomTypeResponse, tags=["Catalog"])
async def get_room_type(room_type_id: UUID, service: CatalogService = Depends(get_catalog_service)):
    return RoomTypeResponse.model_validate(await service.get_room_type(room_type_id))


@app.delete("/api/room-types/{room_type_id}", tags=["Catalog"])
async def delete_room_type(room_type_id: UUID, service: CatalogService = Depends(get_catalog_service)):
    return {"deleted": await service.delete_room_type(room_type_id)}


@app.put("/api/room-types/{room_type_id}/base-price", response_model=RoomTypeResponse, tags=["Catalog"])
async def set_base_price(
    room_type_id: UUID,
    request: BasePriceRequest,
    service: CatalogService = Depends(get_catalog_service)
):
    room_type = await service.set_base_price(room_type_id, request.price_from, request.price_to)
    return RoomTypeResponse.model_validate(room_type)


@app.put("/api/room-types/{room_type_id}/day-of-week-prices", response_model=RoomTypeResponse, tags=["Catalog"])
async def set_day_of_week_prices(
    room_type_id: UUID,
    request: DayOfWeekPricesRequest,
    service: CatalogService = Depends(get_catalog_service)
):
    room_type = await service.set_day_of_week_prices(room_type_id, request.prices)
    return RoomTypeResponse.model_validate(room_type)


@app.post(
    "/api/room-types/{room_type_id}/date-range-prices",
    response_model=DateRangePriceResponse, status_code=201, tags=["Catalog"]
)
async def add_date_range_price(
    room_type_id: UUID,
    request: DateRangePriceRequest,
    service: CatalogService = Depends(get_catalog_service)
):
    rule = await service.add_date_range_price(
        room_type_id, request.start_date, request.end_date, request.price, request.description
    )
    return DateRangePriceResponse.model_validate(rule)


@app.post(
    "/api/room-types/{room_type_id}/date-range-prices/{rule_id}/deactivate",
    response_model=RoomTypeResponse, tags=["Catalog"]
)
async def deactivate_date_range_price(
    room_type_id: UUID,
    rule_id: UUID,
    service: CatalogService = Depends(get_catalog_service)
):
    return RoomTypeResponse.model_validate(await service.deactivate_date_range_price(room_type_id, rule_id))


@app.post("/api/rooms", response_model=RoomResponse, status_code=201, tags=["Catalog"])
async def create_room(request: CreateRoomRequest, service: CatalogService = Depends(get_catalog_service)):
    room = await service.create_room(request.room_type_id, request.number, request.floor)
    return RoomResponse.model_validate(room)


@app.get("/api/properties/{property_id}/rooms", response_model=List[RoomResponse], tags=["Catalog"])
async def list_rooms(property_id: UUID, service: CatalogService = Depends(get_catalog_service)):
    return [RoomResponse.model_validate(r) for r in await service.list_rooms(property_id)]


@app.put("/api/rooms/{room_id}/status", response_model=RoomResponse, tags=["Catalog"])
async def set_room_status(
    room_id: UUID,
    request: RoomStatusRequest,
    service: CatalogService = Depends(get_catalog_service)
):
    return RoomResponse.model_validate(await service.set_room_status(room_id, request.status))


@app.post("/api/surcharge-rules", response_model=SurchargeRuleResponse, status_code=201, tags=["Catalog"])
async def create_surcharge_rule(
    request: CreateSurchargeRuleRequest,
    service: CatalogService = Depends(get_catalog_service)
):
    rule = await service.create_surcharge_rule(
        request.property_id, request.surcharge_type, request.amount, request.is_percentage
    )
    return SurchargeRuleResponse.model_validate(rule)


@app.post("/api/promotions", response_model=PromotionResponse, status_code=201, tags=["Catalog"])
async def create_promotion(request: CreatePromotionRequest, service: CatalogService = Depends(get_catalog_service)):
    promotion = await service.create_promotion(
        property_id=request.property_id,
        code=request.code,
        value=request.value,
        start_date=request.start_date,
        end_date=request.end_date,
        scope=request.scope,
        description=request.description
    )
    return PromotionResponse.model_validate(promotion)


@app.get("/api/properties/{property_id}/promotions", response_model=List[PromotionResponse], tags=["Catalog"])
async def list_promotions(property_id: UUID, service: CatalogService = Depends(get_catalog_service)):
    return [PromotionResponse.model_validate(p) for p in await service.list_promotions(property_id)]


@app.get("/api/promotions/{promotion_id}", response_model=PromotionResponse, tags=["Catalog"])
async def get_promotion(promotion_id: UUID, service: CatalogService = Depends(get_catalog_service)):
    return PromotionResponse.model_validate(await service.get_promotion(promotion_id))


@app.post("/api/promotions/{promotion_id}/deactivate", response_model=PromotionResponse, tags=["Catalog"])
async def deactivate_promotion(promotion_id: UUID, service: CatalogService = Depends(get_catalog_service)):
    return PromotionResponse.model_validate(await service.deactivate_promotion(promotion_id))


@app.post("/api/minibar-items", response_model=MinibarItemResponse, status_code=201, tags=["Catalog"])
async def create_minibar_item(
    request: CreateMinibarItemRequest,
    service: CatalogService = Depends(get_catalog_service)
):
    item = await service.create_minibar_item(request.property_id, request.name, request.unit_price)
    return MinibarItemResponse.model_validate(item)


# ============================================================================
# PRICING ENDPOINTS
# ============================================================================

@app.get("/api/pricing/quote", response_model=QuoteResponse, tags=["Pricing"])
async def quote(
    property_id: UUID,
    room_type_id: UUID,
    check_in: date,
    check_out: date,
    resolver: RateResolver = Depends(get_rate_resolver)
):
    """Per-night price breakdown for one room"""
    result = await resolver.quote(property_id, room_type_id, check_in, check_out)
    return QuoteResponse(
        room_type_id=result.room_type_id,
        nights=len(result.items),
        items=[
            QuoteItemResponse(night=i.night, price=i.price, source=i.source, rule_id=i.rule_id)
            for i in result.items
        ],
        total=result.total,
        warnings=result.warnings
    )


# ============================================================================
# BOOKING ENDPOINTS
# ============================================================================

@app.post("/api/bookings", response_model=BookingResponse, status_code=201, tags=["Bookings"])
async def create_booking(request: CreateBookingRequest, service: BookingLifecycle = Depends(get_booking_service)):
    """Create a pending booking and allocate rooms"""
    return _booking_to_response(await service.create(request))


@app.get("/api/bookings", response_model=List[BookingResponse], tags=["Bookings"])
async def list_bookings(
    property_id: Optional[UUID] = None,
    status: Optional[BookingStatus] = None,
    service: BookingLifecycle = Depends(get_booking_service)
):
    return [_booking_to_response(b) for b in await service.list_bookings(property_id, status)]


@app.get("/api/bookings/{booking_id}", response_model=BookingResponse, tags=["Bookings"])
async def get_booking(booking_id: UUID, service: BookingLifecycle = Depends(get_booking_service)):
    return _booking_to_response(await service.get_booking(booking_id))


@app.get(
    "/api/properties/{property_id}/room-availability",
    response_model=List[RoomAvailabilityResponse],
    tags=["Bookings"]
)
async def room_availability(
    property_id: UUID,
    from_date: date,
    to_date: date,
    service: BookingLifecycle = Depends(get_booking_service)
):
    """Every room of a property with the bookings holding it in [from_date, to_date)"""
    return [
        RoomAvailabilityResponse(
            room_id=r.room_id,
            room_type_id=r.room_type_id,
            room_number=r.room_number,
            floor=r.floor,
            status=r.status,
            is_free=r.is_free,
            intervals=[BookingIntervalResponse.model_validate(i) for i in r.intervals]
        )
        for r in await service.room_availability(property_id, from_date, to_date)
    ]


@app.get("/api/rooms/{room_id}/schedule", response_model=List[BookingIntervalResponse], tags=["Bookings"])
async def room_schedule(
    room_id: UUID,
    from_date: date,
    to_date: date,
    service: BookingLifecycle = Depends(get_booking_service)
):
    return [BookingIntervalResponse.model_validate(i) for i in await service.room_schedule(room_id, from_date, to_date)]


@app.post("/api/bookings/{booking_id}/payments", response_model=BookingResponse, tags=["Bookings"])
async def record_payment(
    booking_id: UUID,
    request: PaymentRequest,
    service: BookingLifecycle = Depends(get_booking_service)
):
    booking = await service.record_payment(booking_id, request.amount, request.payment_type, request.note)
    return _booking_to_response(booking)


@app.post("/api/bookings/{booking_id}/confirm", response_model=BookingResponse, tags=["Bookings"])
async def confirm_booking(booking_id: UUID, service: BookingLifecycle = Depends(get_booking_service)):
    return _booking_to_response(await service.confirm(booking_id))


@app.post("/api/bookings/{booking_id}/check-in", response_model=BookingResponse, tags=["Bookings"])
async def check_in(
    booking_id: UUID,
    request: CheckInRequest,
    service: BookingLifecycle = Depends(get_booking_service)
):
    booking = await service.check_in(booking_id, request.booking_room_id, request.checked_in_at)
    return _booking_to_response(booking)


@app.post("/api/bookings/{booking_id}/check-out-room", response_model=BookingResponse, tags=["Bookings"])
async def check_out_room(
    booking_id: UUID,
    request: CheckOutRoomRequest,
    service: BookingLifecycle = Depends(get_booking_service)
):
    booking = await service.check_out_room(booking_id, request.booking_room_id, request.checked_out_at)
    return _booking_to_response(booking)


@app.post("/api/bookings/{booking_id}/check-out", response_model=CheckoutResponse, tags=["Bookings"])
async def check_out(
    booking_id: UUID,
    request: CheckoutRequest,
    service: BookingLifecycle = Depends(get_booking_service)
):
    """Final checkout; emits the invoice"""
    result = await service.check_out(booking_id, request)
    return CheckoutResponse(
        booking=_booking_to_response(result.booking),
        invoice=_invoice_to_response(result.invoice),
        room_subtotal=result.room_subtotal,
        surcharge_total=result.surcharge_total,
        minibar_total=result.minibar_total,
        additional_amount=result.additional_amount,
        discount_amount=result.discount_amount,
        total_amount=result.total_amount,
        paid_amount=result.paid_amount,
        left_amount=result.left_amount,
        refund_due=result.refund_due
    )


@app.post("/api/bookings/{booking_id}/cancel", response_model=CancellationResponse, tags=["Bookings"])
async def cancel_booking(
    booking_id: UUID,
    request: CancelBookingRequest,
    service: BookingLifecycle = Depends(get_booking_service)
):
    result = await service.cancel(booking_id, request)
    return CancellationResponse(
        booking=_booking_to_response(result.booking),
        refund_amount=result.refund_amount,
        cancellation_fee=result.cancellation_fee,
        reason=result.reason
    )


@app.post("/api/bookings/{booking_id}/change-room", response_model=BookingResponse, tags=["Bookings"])
async def change_room(
    booking_id: UUID,
    request: ChangeRoomRequest,
    service: BookingLifecycle = Depends(get_booking_service)
):
    booking = await service.change_room(booking_id, request.booking_room_id, request.new_room_id)
    return _booking_to_response(booking)


@app.post("/api/bookings/{booking_id}/extend-stay", response_model=BookingResponse, tags=["Bookings"])
async def extend_stay(
    booking_id: UUID,
    request: ExtendStayRequest,
    service: BookingLifecycle = Depends(get_booking_service)
):
    booking = await service.extend_stay(booking_id, request.booking_room_id, request.new_end_date)
    return _booking_to_response(booking)


@app.put("/api/bookings/{booking_id}/minibar", response_model=BookingResponse, tags=["Bookings"])
async def record_minibar(
    booking_id: UUID,
    request: MinibarConsumptionRequest,
    service: BookingLifecycle = Depends(get_booking_service)
):
    booking = await service.record_minibar_consumption(
        booking_id, request.item_id, request.original_quantity, request.consumed_quantity
    )
    return _booking_to_response(booking)


@app.get("/api/bookings/{booking_id}/invoices", response_model=List[InvoiceResponse], tags=["Invoices"])
async def list_booking_invoices(booking_id: UUID, service: InvoiceService = Depends(get_invoice_service)):
    return [_invoice_to_response(i) for i in await service.list_invoices_for_booking(booking_id)]


# ============================================================================
# ORDER & INVOICE ENDPOINTS
# ============================================================================

@app.post("/api/orders", response_model=OrderResponse, status_code=201, tags=["Orders"])
async def create_order(request: CreateOrderRequest, service: CatalogService = Depends(get_catalog_service)):
    order = await service.create_walk_in_order(
        property_id=request.property_id,
        items=[OrderItem(name=i.name, quantity=i.quantity, unit_price=i.unit_price) for i in request.items],
        customer_name=request.customer_name
    )
    return _order_to_response(order)


@app.post("/api/invoices/walk-in", response_model=InvoiceResponse, status_code=201, tags=["Invoices"])
async def create_walk_in_invoice(
    request: WalkInInvoiceRequest,
    service: InvoiceService = Depends(get_invoice_service)
):
    invoice = await service.create_walk_in_invoice(request.order_id, request.discount_code)
    return _invoice_to_response(invoice)


@app.get("/api/invoices/{invoice_id}", response_model=InvoiceResponse, tags=["Invoices"])
async def get_invoice(invoice_id: UUID, service: InvoiceService = Depends(get_invoice_service)):
    return _invoice_to_response(await service.get_invoice(invoice_id))


# ============================================================================
# HELPER FUNCTIONS
# ============================================================================

def _booking_to_response(booking: Booking) -> BookingResponse:
    """Convert domain entity to response DTO"""
    return BookingResponse(
        booking_id=booking.booking_id,
        confirmation_code=booking.confirmation_code,
        property_id=booking.property_id,
        primary_guest_id=booking.primary_guest_id,
        guest_ids=booking.guest_ids,
        status=booking.status.value,
        deposit_amount=booking.deposit_amount,
        discount_amount=booking.discount_amount,
        additional_amount=booking.additional_amount,
        additional_notes=booking.additional_notes,
        total_amount=booking.total_amount,
        left_amount=booking.left_amount,
        discount_code=booking.discount_code,
        room_types=[
            BookingRoomTypeResponse(
                booking_room_type_id=line.booking_room_type_id,
                room_type_id=line.room_type_id,
                room_type_name=line.room_type_name,
                start_date=line.start_date,
                end_date=line.end_date,
                total_room=line.total_room,
                price=line.price,
                rooms=[
                    BookingRoomResponse(
                        booking_room_id=r.booking_room_id,
                        room_id=r.room_id,
                        room_number=r.room_number,
                        start_date=r.start_date,
                        end_date=r.end_date,
                        actual_check_in_at=r.actual_check_in_at,
                        actual_check_out_at=r.actual_check_out_at,
                        status=r.status.value
                    )
                    for r in line.rooms
                ]
            )
            for line in booking.room_types
        ],
        payments=[
            PaymentResponse(
                payment_id=p.payment_id,
                amount=p.amount,
                payment_type=p.payment_type.value,
                timestamp=p.timestamp,
                note=p.note
            )
            for p in booking.payments
        ],
        minibar=[
            MinibarBookingResponse(
                item_id=m.item_id,
                item_name=m.item_name,
                unit_price=m.unit_price,
                original_quantity=m.original_quantity,
                consumed_quantity=m.consumed_quantity,
                amount=m.amount
            )
            for m in booking.minibar
        ],
        notes=booking.notes,
        cancellation_reason=booking.cancellation_reason,
        invoice_id=booking.invoice_id,
        created_at=booking.created_at,
        modified_at=booking.modified_at
    )


def _invoice_to_response(invoice: Invoice) -> InvoiceResponse:
    """Convert domain entity to response DTO"""
    return InvoiceResponse(
        invoice_id=invoice.invoice_id,
        invoice_number=invoice.invoice_number,
        property_id=invoice.property_id,
        booking_id=invoice.booking_id,
        order_id=invoice.order_id,
        is_walk_in=invoice.is_walk_in,
        lines=[
            InvoiceLineResponse(
                line_id=l.line_id,
                source_type=l.source_type.value,
                description=l.description,
                amount=l.amount,
                source_id=l.source_id
            )
            for l in invoice.lines
        ],
        subtotal=invoice.subtotal,
        discount_amount=invoice.discount_amount,
        total_amount=invoice.total_amount,
        tax_amount=invoice.tax_amount,
        notes=invoice.notes,
        created_at=invoice.created_at
    )


def _order_to_response(order: Order) -> OrderResponse:
    """Convert domain entity to response DTO"""
    return OrderResponse(
        order_id=order.order_id,
        property_id=order.property_id,
        customer_name=order.customer_name,
        is_walk_in=order.is_walk_in,
        items=[
            OrderItemResponse(
                order_item_id=i.order_item_id,
                name=i.name,
                quantity=i.quantity,
                unit_price=i.unit_price,
                amount=i.amount
            )
            for i in order.items
        ],
        invoice_id=order.invoice_id,
        created_at=order.created_at
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
