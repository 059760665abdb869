"""Room allocation - assigns physical rooms without double booking"""
import logging
from datetime import date
from typing import AsyncIterator, Dict, List, Optional, Tuple
from uuid import UUID

from domain.entities import Booking, BookingRoom, Room
from domain.enums import BookingRoomStatus, CHECK_IN_READY_ROOM_STATUSES
from domain.errors import (
    ValidationError, NotFoundError, InsufficientAvailabilityError, InvalidStateTransitionError,
)
from domain.repositories import UnitOfWork
from domain.value_objects import BookingInterval, DateRange, RoomAssignment, RoomAvailability

logger = logging.getLogger(__name__)


class RoomAllocator:
    """Hands out rooms of a type for a stay.

    Must run inside the caller's unit of work: the availability check and the
    write that records the allocation have to be serialized together.
    """

    def __init__(self, uow: UnitOfWork):
        self.uow = uow

    async def allocate(
        self,
        booking_room_type_id: UUID,
        room_type_id: UUID,
        count: int,
        start_date: date,
        end_date: date
    ) -> List[RoomAssignment]:
        """First ``count`` free rooms by creation order then number; all or nothing"""
        if count < 1:
            raise ValidationError("Room count must be at least 1")
        stay = DateRange.between(start_date, end_date)

        candidates = [r for r in await self.uow.rooms.find_by_room_type(room_type_id) if r.is_allocatable]
        occupancy = await self._occupancy([r.room_id for r in candidates])

        assignments = []
        for room in candidates:
            if self._is_free(occupancy.get(room.room_id, []), stay):
                assignments.append(RoomAssignment(
                    booking_room_type_id=booking_room_type_id,
                    room_id=room.room_id,
                    room_number=room.number,
                    start_date=start_date,
                    end_date=end_date
                ))
            if len(assignments) == count:
                break

        if len(assignments) < count:
            raise InsufficientAvailabilityError(
                f"Only {len(assignments)} of {count} rooms available for {start_date} to {end_date}"
            )

        logger.info(
            "Allocated rooms %s for %s to %s",
            ", ".join(a.room_number for a in assignments), start_date, end_date
        )
        return assignments

    async def change_room(self, booking: Booking, booking_room_id: UUID, new_room_id: UUID) -> Room:
        """Move an allocation to another room of the same type for the same window.

        Returns the room that was released.
        """
        line, booked = booking.find_room(booking_room_id)
        if booked.status not in (BookingRoomStatus.PENDING, BookingRoomStatus.CHECKED_IN):
            raise InvalidStateTransitionError(
                f"Cannot change room of an allocation with status {booked.status.value}"
            )
        if booked.room_id == new_room_id:
            raise ValidationError("New room must differ from the current room")

        new_room = await self.uow.rooms.find_by_id(new_room_id)
        if not new_room or new_room.property_id != booking.property_id:
            raise NotFoundError(f"Room {new_room_id} not found for this property")
        if new_room.room_type_id != line.room_type_id:
            raise ValidationError("New room must be of the booked room type")
        if not new_room.is_allocatable:
            raise InsufficientAvailabilityError(f"Room {new_room.number} is {new_room.status.value}")
        if booked.status == BookingRoomStatus.CHECKED_IN and new_room.status not in CHECK_IN_READY_ROOM_STATUSES:
            raise InsufficientAvailabilityError(f"Room {new_room.number} is {new_room.status.value}")

        stay = DateRange(start_date=booked.start_date, end_date=booked.end_date)
        occupancy = await self._occupancy([new_room_id], exclude_booking_room_id=booking_room_id)
        if not self._is_free(occupancy.get(new_room_id, []), stay):
            raise InsufficientAvailabilityError(
                f"Room {new_room.number} is already booked for {stay.start_date} to {stay.end_date}"
            )

        old_room = await self.uow.rooms.find_by_id(booked.room_id)
        booked.room_id = new_room.room_id
        booked.room_number = new_room.number
        logger.info(
            "Booking %s moved from room %s to %s",
            booking.booking_id, old_room.number if old_room else booked.room_id, new_room.number
        )
        return old_room

    async def extend_stay(self, booking: Booking, booking_room_id: UUID, new_end_date: date) -> DateRange:
        """Push an allocation's end date out; returns the added nights"""
        line, booked = booking.find_room(booking_room_id)
        if booked.status not in (BookingRoomStatus.PENDING, BookingRoomStatus.CHECKED_IN):
            raise InvalidStateTransitionError(
                f"Cannot extend an allocation with status {booked.status.value}"
            )
        if new_end_date <= booked.end_date:
            raise ValidationError("New end date must be after current end date")

        extension = DateRange(start_date=booked.end_date, end_date=new_end_date)
        occupancy = await self._occupancy([booked.room_id], exclude_booking_room_id=booking_room_id)
        if not self._is_free(occupancy.get(booked.room_id, []), extension):
            raise InsufficientAvailabilityError(
                f"Room {booked.room_number} is already booked for the extended dates"
            )

        booked.end_date = new_end_date
        line.end_date = max(line.end_date, new_end_date)
        return extension

    async def room_availability(self, property_id: UUID, from_date: date, to_date: date) -> List[RoomAvailability]:
        """Every room of a property by number, with the allocations it holds in [from_date, to_date)"""
        window = DateRange.between(from_date, to_date)
        rooms = sorted(await self.uow.rooms.find_by_property(property_id), key=lambda r: r.number)
        schedule = await self._schedule([r.room_id for r in rooms], window)
        return [
            RoomAvailability(
                room_id=room.room_id,
                room_type_id=room.room_type_id,
                room_number=room.number,
                floor=room.floor,
                status=room.status,
                intervals=schedule.get(room.room_id, [])
            )
            for room in rooms
        ]

    async def room_schedule(self, room_id: UUID, from_date: date, to_date: date) -> List[BookingInterval]:
        """Allocations holding one room in [from_date, to_date), earliest first"""
        window = DateRange.between(from_date, to_date)
        room = await self.uow.rooms.find_by_id(room_id)
        if not room:
            raise NotFoundError(f"Room {room_id} not found")
        schedule = await self._schedule([room_id], window)
        return schedule.get(room_id, [])

    async def _schedule(self, room_ids: List[UUID], window: DateRange) -> Dict[UUID, List[BookingInterval]]:
        schedule: Dict[UUID, List[BookingInterval]] = {}
        async for booking, booked, interval in self._allocations(room_ids):
            if not interval.overlaps(window):
                continue
            schedule.setdefault(booked.room_id, []).append(BookingInterval(
                booking_id=booking.booking_id,
                booking_room_id=booked.booking_room_id,
                confirmation_code=booking.confirmation_code,
                status=booked.status,
                start_date=interval.start_date,
                end_date=interval.end_date
            ))
        for intervals in schedule.values():
            intervals.sort(key=lambda i: i.start_date)
        return schedule

    async def _occupancy(
        self,
        room_ids: List[UUID],
        exclude_booking_room_id: Optional[UUID] = None
    ) -> Dict[UUID, List[DateRange]]:
        """Intervals blocked by non-cancelled allocations, keyed by room"""
        occupancy: Dict[UUID, List[DateRange]] = {}
        async for _, booked, interval in self._allocations(room_ids):
            if booked.booking_room_id == exclude_booking_room_id:
                continue
            occupancy.setdefault(booked.room_id, []).append(interval)
        return occupancy

    async def _allocations(self, room_ids: List[UUID]) -> AsyncIterator[Tuple[Booking, BookingRoom, DateRange]]:
        wanted = set(room_ids)
        for booking in await self.uow.bookings.find_with_room_allocations(room_ids):
            for booked in booking.active_rooms():
                if booked.room_id not in wanted:
                    continue
                interval = booked.occupied_range()
                if interval is not None:
                    yield booking, booked, interval

    @staticmethod
    def _is_free(intervals: List[DateRange], stay: DateRange) -> bool:
        return not any(interval.overlaps(stay) for interval in intervals)
