"""Application Services - Booking use cases"""
import logging
from datetime import date, datetime
from decimal import Decimal
from typing import Awaitable, Callable, List, Optional, TypeVar
from uuid import UUID

from domain.entities import Booking, BookingRoom, BookingRoomType, Guest, Payment, RoomType
from domain.enums import (
    BookingStatus, BookingRoomStatus, PaymentType, PropertyStatus, RoomStatus,
    CHECK_IN_READY_ROOM_STATUSES,
)
from domain.errors import ValidationError, NotFoundError, InvalidStateTransitionError
from domain.repositories import UnitOfWork
from domain.value_objects import (
    BookingInterval, CancellationPolicy, DateRange, GuestInfo, RoomAvailability, to_money,
)
from application.allocation import RoomAllocator
from application.checkout import CheckoutCalculator
from application.dto import (
    CreateBookingRequest, CheckoutRequest, CheckoutResult, CancelBookingRequest, CancellationResult,
)
from application.pricing import RateResolver
from application.transactions import transactional
from infrastructure.config import Settings, get_settings, local_clock

logger = logging.getLogger(__name__)

T = TypeVar("T")


class BookingLifecycle:
    """Service for Booking business use cases.

    Every mutating operation runs in a single unit of work; guard violations
    surface as typed domain errors and leave storage untouched.
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
        self.allocator = RoomAllocator(uow)
        self.checkout_calculator = CheckoutCalculator(uow, self.settings, self.clock)

    async def _run(self, work: Callable[[], Awaitable[T]]) -> T:
        return await transactional(
            self.uow, work,
            retries=self.settings.transaction_retries,
            backoff_seconds=self.settings.transaction_retry_backoff_seconds
        )

    # ==================== CREATION ====================
    async def create(self, request: CreateBookingRequest) -> Booking:
        """Create a pending booking with priced lines and allocated rooms"""

        async def work() -> Booking:
            hotel = await self.uow.properties.find_by_id(request.hotel_id)
            if not hotel:
                raise NotFoundError(f"Property {request.hotel_id} not found")
            if hotel.status != PropertyStatus.ACTIVE:
                raise ValidationError(f"Property {hotel.code} is not accepting bookings")

            stay = self._validate_stay(request.start_date, request.end_date)

            lines = [(request.room_type_id, request.room_count)]
            lines += [(extra.room_type_id, extra.room_count) for extra in request.extra_lines]
            for _, count in lines:
                if count > self.settings.max_rooms_per_line:
                    raise ValidationError(
                        f"Cannot book more than {self.settings.max_rooms_per_line} rooms of one type"
                    )

            primary = await self._find_or_create_guest(request.guest_info)
            companions = [await self._find_or_create_guest(info) for info in request.additional_guests]

            booking = Booking.create(
                property_id=hotel.property_id,
                primary_guest_id=primary.guest_id,
                guest_ids=[g.guest_id for g in companions if g.guest_id != primary.guest_id],
                notes=request.notes,
                created_at=self.clock()
            )

            for room_type_id, count in lines:
                room_type = await self._get_room_type(hotel.property_id, room_type_id)
                quote = self.rates.quote_from_rules(room_type, stay)
                for warning in quote.warnings:
                    logger.warning("Booking %s: %s", booking.booking_id, warning)

                line = BookingRoomType(
                    room_type_id=room_type.room_type_id,
                    room_type_name=room_type.name,
                    start_date=stay.start_date,
                    end_date=stay.end_date,
                    total_room=count,
                    price=to_money(quote.total / stay.nights()),
                    nightly_rates={item.night: item.price for item in quote.items}
                )
                booking.add_line(line)
                # Saved before allocating so later lines see these rooms as taken
                await self.uow.bookings.save(booking)

                assignments = await self.allocator.allocate(
                    line.booking_room_type_id, room_type.room_type_id, count, stay.start_date, stay.end_date
                )
                line.rooms = [
                    BookingRoom(
                        booking_room_type_id=a.booking_room_type_id,
                        room_id=a.room_id,
                        room_number=a.room_number,
                        start_date=a.start_date,
                        end_date=a.end_date
                    )
                    for a in assignments
                ]

            booking.recalculate_totals()
            if request.deposit_amount > 0:
                booking.record_payment(Payment(
                    amount=request.deposit_amount,
                    payment_type=request.payment_type,
                    timestamp=self.clock(),
                    note="Deposit"
                ))

            await self.uow.bookings.save(booking)
            logger.info(
                "Booking %s created with %d room(s), total %s",
                booking.confirmation_code, len(booking.active_rooms()), booking.total_amount
            )
            return booking

        return await self._run(work)

    # ==================== MONEY ====================
    async def record_payment(
        self,
        booking_id: UUID,
        amount: Decimal,
        payment_type: PaymentType = PaymentType.CASH,
        note: Optional[str] = None
    ) -> Booking:
        """Record a deposit or interim payment"""
        if payment_type == PaymentType.REFUND:
            raise ValidationError("Refunds are not recorded as payments")
        if amount <= 0:
            raise ValidationError("Payment amount must be greater than 0")

        async def work() -> Booking:
            booking = await self._get(booking_id)
            booking.record_payment(Payment(
                amount=amount, payment_type=payment_type, timestamp=self.clock(), note=note
            ))
            return await self.uow.bookings.save(booking)

        return await self._run(work)

    async def record_minibar_consumption(
        self,
        booking_id: UUID,
        item_id: UUID,
        original_quantity: int,
        consumed_quantity: int
    ) -> Booking:
        async def work() -> Booking:
            booking = await self._get(booking_id)
            item = await self.uow.minibar_items.find_by_id(item_id)
            if not item or item.property_id != booking.property_id:
                raise NotFoundError(f"Minibar item {item_id} not found")
            booking.record_minibar(item, original_quantity, consumed_quantity)
            return await self.uow.bookings.save(booking)

        return await self._run(work)

    # ==================== STATE TRANSITIONS ====================
    async def confirm(self, booking_id: UUID) -> Booking:
        """Confirm once the recorded deposit covers the configured minimum"""

        async def work() -> Booking:
            booking = await self._get(booking_id)
            minimum = to_money(booking.total_amount * self.settings.min_deposit_percentage / 100)
            booking.confirm(minimum)
            logger.info("Booking %s confirmed", booking.confirmation_code)
            return await self.uow.bookings.save(booking)

        return await self._run(work)

    async def check_in(self, booking_id: UUID, booking_room_id: UUID, at: Optional[datetime] = None) -> Booking:
        """Check one allocated room in and mark it occupied"""

        async def work() -> Booking:
            booking = await self._get(booking_id)
            _, booked = booking.find_room(booking_room_id)
            now = at or self.clock()

            if now.date() < booked.start_date:
                raise ValidationError(f"Cannot check in before {booked.start_date.isoformat()}")

            room = await self.uow.rooms.find_by_id(booked.room_id)
            if not room:
                raise NotFoundError(f"Room {booked.room_id} not found")

            booking.check_in_room(booking_room_id, now)
            if room.status not in CHECK_IN_READY_ROOM_STATUSES:
                raise ValidationError(f"Room {room.number} is {room.status.value} and not ready for guests")

            room.change_status(RoomStatus.OCCUPIED)
            await self.uow.rooms.save(room)
            logger.info("Booking %s checked in room %s", booking.confirmation_code, room.number)
            return await self.uow.bookings.save(booking)

        return await self._run(work)

    async def check_out_room(self, booking_id: UUID, booking_room_id: UUID, at: Optional[datetime] = None) -> Booking:
        """Check a single room out ahead of the final checkout"""

        async def work() -> Booking:
            booking = await self._get(booking_id)
            booked = booking.check_out_room(booking_room_id, at or self.clock())

            room = await self.uow.rooms.find_by_id(booked.room_id)
            if room:
                room.change_status(RoomStatus.DIRTY)
                await self.uow.rooms.save(room)
            logger.info("Booking %s checked out room %s", booking.confirmation_code, booked.room_number)
            return await self.uow.bookings.save(booking)

        return await self._run(work)

    async def check_out(self, booking_id: UUID, request: CheckoutRequest) -> CheckoutResult:
        return await self.checkout_calculator.checkout(booking_id, request)

    async def cancel(self, booking_id: UUID, request: CancelBookingRequest) -> CancellationResult:
        """Cancel and release every allocation; refund follows the cancellation policy"""

        async def work() -> CancellationResult:
            booking = await self._get(booking_id)
            now = self.clock()

            policy = CancellationPolicy(
                policy_name=self.settings.cancellation_policy_name,
                refund_percentage=self.settings.cancellation_refund_percentage,
                deadline_hours=self.settings.cancellation_deadline_hours
            )
            first_night = min((r.start_date for r in booking.active_rooms()), default=now.date())
            paid = booking.total_paid()
            refund = policy.calculate_refund(paid, first_night, now)

            booking.cancel(request.reason, now)
            await self.uow.bookings.save(booking)
            logger.info("Booking %s cancelled: %s", booking.confirmation_code, request.reason)

            return CancellationResult(
                booking=booking,
                refund_amount=refund,
                cancellation_fee=to_money(paid - refund),
                reason=request.reason
            )

        return await self._run(work)

    # ==================== ROOM CHANGES ====================
    async def change_room(self, booking_id: UUID, booking_room_id: UUID, new_room_id: UUID) -> Booking:
        """Move an allocation to another room; a checked-in guest takes the occupancy along"""

        async def work() -> Booking:
            booking = await self._get(booking_id)
            self._ensure_mutable(booking)

            old_room = await self.allocator.change_room(booking, booking_room_id, new_room_id)
            _, booked = booking.find_room(booking_room_id)

            if booked.status == BookingRoomStatus.CHECKED_IN:
                if old_room:
                    old_room.change_status(RoomStatus.AVAILABLE)
                    await self.uow.rooms.save(old_room)
                new_room = await self.uow.rooms.find_by_id(new_room_id)
                new_room.change_status(RoomStatus.OCCUPIED)
                await self.uow.rooms.save(new_room)

            booking.recalculate_totals()
            return await self.uow.bookings.save(booking)

        return await self._run(work)

    async def extend_stay(self, booking_id: UUID, booking_room_id: UUID, new_end_date: date) -> Booking:
        """Extend one allocation and price the added nights at today's rules"""

        async def work() -> Booking:
            booking = await self._get(booking_id)
            self._ensure_mutable(booking)

            line, booked = booking.find_room(booking_room_id)
            if (new_end_date - booked.start_date).days > self.settings.max_stay_nights:
                raise ValidationError(f"Stay cannot exceed {self.settings.max_stay_nights} nights")

            extension = await self.allocator.extend_stay(booking, booking_room_id, new_end_date)
            room_type = await self._get_room_type(booking.property_id, line.room_type_id)
            quote = self.rates.quote_from_rules(room_type, extension)
            line.capture_rates({item.night: item.price for item in quote.items})

            booking.recalculate_totals()
            logger.info(
                "Booking %s room %s extended to %s",
                booking.confirmation_code, booked.room_number, new_end_date
            )
            return await self.uow.bookings.save(booking)

        return await self._run(work)

    # ==================== QUERIES ====================
    async def get_booking(self, booking_id: UUID) -> Booking:
        return await self._get(booking_id)

    async def list_bookings(
        self,
        property_id: Optional[UUID] = None,
        status: Optional[BookingStatus] = None
    ) -> List[Booking]:
        if property_id:
            bookings = await self.uow.bookings.find_by_property(property_id)
        else:
            bookings = await self.uow.bookings.find_all()
        if status:
            bookings = [b for b in bookings if b.status == status]
        return sorted(bookings, key=lambda b: b.created_at)

    async def room_availability(self, property_id: UUID, from_date: date, to_date: date) -> List[RoomAvailability]:
        return await self.allocator.room_availability(property_id, from_date, to_date)

    async def room_schedule(self, room_id: UUID, from_date: date, to_date: date) -> List[BookingInterval]:
        return await self.allocator.room_schedule(room_id, from_date, to_date)

    # ==================== HELPERS ====================
    async def _get(self, booking_id: UUID) -> Booking:
        booking = await self.uow.bookings.find_by_id(booking_id)
        if not booking:
            raise NotFoundError(f"Booking {booking_id} not found")
        return booking

    async def _get_room_type(self, property_id: UUID, room_type_id: UUID) -> RoomType:
        room_type = await self.uow.room_types.find_by_id(room_type_id)
        if not room_type or room_type.property_id != property_id:
            raise NotFoundError(f"Room type {room_type_id} not found for property {property_id}")
        return room_type

    async def _find_or_create_guest(self, info: GuestInfo) -> Guest:
        """Reuse the guest registered under the same phone number"""
        guest = await self.uow.guests.find_by_phone(info.phone)
        if guest:
            return guest
        guest = Guest(
            full_name=info.full_name,
            phone=info.phone,
            email=info.email,
            id_card_image_url=info.id_card_image_url,
            created_at=self.clock()
        )
        return await self.uow.guests.save(guest)

    def _validate_stay(self, start_date: date, end_date: date) -> DateRange:
        stay = DateRange.between(start_date, end_date)
        if start_date < self.clock().date():
            raise ValidationError("Start date cannot be in the past")
        if stay.nights() > self.settings.max_stay_nights:
            raise ValidationError(f"Stay cannot exceed {self.settings.max_stay_nights} nights")
        return stay

    @staticmethod
    def _ensure_mutable(booking: Booking) -> None:
        if not booking.is_mutable():
            raise InvalidStateTransitionError(
                f"Booking with status {booking.status.value} can no longer be changed"
            )
