"""Checkout - final bill and invoice for a stay"""
import logging
from datetime import datetime
from decimal import Decimal
from typing import Callable, Dict, List, Optional
from uuid import UUID

from domain.entities import Booking, BookingRoom, BookingRoomType, Invoice, Payment, Property, RoomType
from domain.enums import BookingRoomStatus, InvoiceLineSourceType, PromotionScope, RoomStatus
from domain.errors import NotFoundError
from domain.repositories import UnitOfWork
from domain.value_objects import ChargeLine, SurchargeContext, to_money
from application.dto import CheckoutRequest, CheckoutResult
from application.pricing import RateResolver, SurchargeEngine, DiscountEngine
from application.transactions import transactional
from infrastructure.config import Settings, get_settings, local_clock

logger = logging.getLogger(__name__)

ZERO = Decimal("0")


class CheckoutCalculator:
    """Combines room charges, surcharges, minibar, additional charges and a
    booking-scoped discount into one immutable invoice, and closes the booking
    in the same transaction.
    """

    def __init__(
        self,
        uow: UnitOfWork,
        settings: Optional[Settings] = None,
        clock: Optional[Callable[[], datetime]] = None
    ):
        self.uow = uow
        self.settings = settings or get_settings()
        self.clock = clock or local_clock(self.settings.timezone)
        self.rates = RateResolver(uow)
        self.surcharges = SurchargeEngine(uow)
        self.discounts = DiscountEngine(uow)

    async def checkout(self, booking_id: UUID, request: CheckoutRequest) -> CheckoutResult:
        async def work() -> CheckoutResult:
            return await self._checkout(booking_id, request)

        return await transactional(
            self.uow, work,
            retries=self.settings.transaction_retries,
            backoff_seconds=self.settings.transaction_retry_backoff_seconds
        )

    async def _checkout(self, booking_id: UUID, request: CheckoutRequest) -> CheckoutResult:
        booking = await self.uow.bookings.find_by_id(booking_id)
        if not booking:
            raise NotFoundError(f"Booking {booking_id} not found")

        # Guards run before anything is touched so a refused checkout mutates nothing
        booking.ensure_ready_for_checkout()

        now = request.checkout_time or self.clock()
        hotel = await self.uow.properties.find_by_id(booking.property_id)
        if not hotel:
            raise NotFoundError(f"Property {booking.property_id} not found")
        room_types = await self._room_types(booking)

        await self._close_rooms(booking, now)

        room_lines = self._room_charges(booking, room_types)
        room_subtotal = self._sum(room_lines)

        minibar_lines = [
            ChargeLine(
                source_type=InvoiceLineSourceType.MINIBAR,
                description=f"{entry.item_name} x{entry.consumed_quantity}",
                amount=entry.amount,
                source_id=entry.minibar_booking_id
            )
            for entry in booking.minibar if entry.consumed_quantity > 0
        ]

        context = self._surcharge_context(booking, hotel, room_types, room_subtotal, request)
        surcharge_lines = await self.surcharges.apply_surcharges(booking.property_id, context)

        additional_lines = []
        if request.additional_amount > 0:
            additional_lines.append(ChargeLine(
                source_type=InvoiceLineSourceType.ADDITIONAL,
                description=request.notes or "Additional charges",
                amount=to_money(request.additional_amount)
            ))

        discount_lines = []
        if request.discount_code:
            discount_lines.append(await self.discounts.validate_and_apply(
                booking.property_id,
                request.discount_code,
                PromotionScope.BOOKING,
                DiscountEngine.discountable_subtotal(PromotionScope.BOOKING, room_lines),
                now
            ))

        invoice = Invoice.build(
            property_id=booking.property_id,
            charges=room_lines + surcharge_lines + minibar_lines + additional_lines + discount_lines,
            booking_id=booking.booking_id,
            notes=request.notes,
            created_at=now,
            vat_rate=hotel.vat_rate
        )

        if request.final_payment > 0:
            booking.record_payment(Payment(
                amount=request.final_payment,
                payment_type=request.payment_type,
                timestamp=now,
                note="Final payment"
            ))

        booking.finalize_checkout(
            total_amount=invoice.total_amount,
            discount_amount=invoice.discount_amount,
            additional_amount=request.additional_amount,
            additional_notes=request.notes,
            discount_code=request.discount_code,
            invoice_id=invoice.invoice_id,
            at=now
        )

        await self.uow.invoices.add(invoice)
        await self.uow.bookings.save(booking)

        paid = booking.total_paid()
        logger.info(
            "Booking %s checked out, invoice %s total %s",
            booking.booking_id, invoice.invoice_number, invoice.total_amount
        )

        return CheckoutResult(
            booking=booking,
            invoice=invoice,
            room_subtotal=room_subtotal,
            surcharge_total=self._sum(surcharge_lines),
            minibar_total=self._sum(minibar_lines),
            additional_amount=to_money(request.additional_amount),
            discount_amount=invoice.discount_amount,
            total_amount=invoice.total_amount,
            paid_amount=paid,
            left_amount=booking.left_amount,
            refund_due=to_money(max(ZERO, paid - invoice.total_amount))
        )

    async def _room_types(self, booking: Booking) -> Dict[UUID, RoomType]:
        room_types = {}
        for line in booking.room_types:
            room_type = await self.uow.room_types.find_by_id(line.room_type_id)
            if not room_type:
                raise NotFoundError(f"Room type {line.room_type_id} not found")
            room_types[line.room_type_id] = room_type
        return room_types

    async def _close_rooms(self, booking: Booking, now: datetime) -> None:
        """Check out every room still in and mark it dirty"""
        for booked in booking.active_rooms():
            if booked.status != BookingRoomStatus.CHECKED_IN:
                continue
            booked.check_out(now)
            room = await self.uow.rooms.find_by_id(booked.room_id)
            if room:
                room.change_status(RoomStatus.DIRTY)
                await self.uow.rooms.save(room)

    def _room_charges(self, booking: Booking, room_types: Dict[UUID, RoomType]) -> List[ChargeLine]:
        lines = []
        for line in booking.room_types:
            for booked in line.active_rooms():
                amount, nights = self._room_amount(line, booked, room_types[line.room_type_id])
                lines.append(ChargeLine(
                    source_type=InvoiceLineSourceType.ROOM_CHARGE,
                    description=f"Room {booked.room_number} ({line.room_type_name}) x{nights} night(s)",
                    amount=amount,
                    source_id=booked.booking_room_id
                ))
        return lines

    def _room_amount(self, line: BookingRoomType, booked: BookingRoom, room_type: RoomType):
        """Captured rates over the billable nights; uncaptured nights use current rules"""
        total = ZERO
        nights = 0
        for night in booked.billable_range().dates():
            price = line.rate_for(night)
            if price is None:
                price = self.rates.resolve_from_rules(room_type, night).price
            total += price
            nights += 1
        return to_money(total), nights

    def _surcharge_context(
        self,
        booking: Booking,
        hotel: Property,
        room_types: Dict[UUID, RoomType],
        room_subtotal: Decimal,
        request: CheckoutRequest
    ) -> SurchargeContext:
        rooms = booking.active_rooms()

        early = request.is_early_check_in
        if early is None:
            early = any(
                hotel.is_early_check_in(r.actual_check_in_at, r.start_date)
                for r in rooms if r.actual_check_in_at
            )

        late = request.is_late_check_out
        if late is None:
            late = any(
                hotel.is_late_check_out(r.actual_check_out_at, r.end_date)
                for r in rooms if r.actual_check_out_at
            )

        extra = request.extra_guest_count
        if extra is None:
            capacity = sum(
                room_types[line.room_type_id].capacity * len(line.active_rooms())
                for line in booking.room_types
            )
            extra = max(0, booking.guest_count() - capacity)

        return SurchargeContext(
            subtotal=room_subtotal,
            is_early_check_in=early,
            is_late_check_out=late,
            extra_guest_count=extra
        )

    @staticmethod
    def _sum(lines: List[ChargeLine]) -> Decimal:
        return to_money(sum((l.amount for l in lines), ZERO))
