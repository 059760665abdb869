"""Booking and room allocation state machines"""
from typing import Dict, FrozenSet, Iterable

from domain.enums import BookingStatus, BookingRoomStatus
from domain.errors import InvalidStateTransitionError, AlreadyCheckedOutError


BOOKING_TRANSITIONS: Dict[BookingStatus, FrozenSet[BookingStatus]] = {
    BookingStatus.PENDING: frozenset({BookingStatus.CONFIRMED, BookingStatus.CANCELLED}),
    BookingStatus.CONFIRMED: frozenset({BookingStatus.CHECKED_IN, BookingStatus.CANCELLED}),
    BookingStatus.CHECKED_IN: frozenset({BookingStatus.CHECKED_OUT}),
    BookingStatus.CHECKED_OUT: frozenset(),
    BookingStatus.CANCELLED: frozenset(),
}

BOOKING_ROOM_TRANSITIONS: Dict[BookingRoomStatus, FrozenSet[BookingRoomStatus]] = {
    BookingRoomStatus.PENDING: frozenset({BookingRoomStatus.CHECKED_IN, BookingRoomStatus.CANCELLED}),
    BookingRoomStatus.CHECKED_IN: frozenset({BookingRoomStatus.CHECKED_OUT}),
    BookingRoomStatus.CHECKED_OUT: frozenset(),
    BookingRoomStatus.CANCELLED: frozenset(),
}

# Statuses in which money fields and allocations may still change
MUTABLE_BOOKING_STATUSES = frozenset({BookingStatus.PENDING, BookingStatus.CONFIRMED, BookingStatus.CHECKED_IN})


def can_transition(current: BookingStatus, target: BookingStatus) -> bool:
    return target in BOOKING_TRANSITIONS[current]


def ensure_booking_transition(current: BookingStatus, target: BookingStatus) -> None:
    """Raise unless the booking may move from current to target"""
    if current == BookingStatus.CHECKED_OUT:
        raise AlreadyCheckedOutError("Booking is already checked out")
    if not can_transition(current, target):
        raise InvalidStateTransitionError(
            f"Cannot move booking from {current.value} to {target.value}"
        )


def ensure_room_transition(current: BookingRoomStatus, target: BookingRoomStatus) -> None:
    """Raise unless the room allocation may move from current to target"""
    if target not in BOOKING_ROOM_TRANSITIONS[current]:
        raise InvalidStateTransitionError(
            f"Cannot move booked room from {current.value} to {target.value}"
        )


def derive_booking_status(current: BookingStatus, room_statuses: Iterable[BookingRoomStatus]) -> BookingStatus:
    """Aggregate status implied by the room sub-states.

    CHECKED_IN as soon as one room is in; CHECKED_OUT is never derived here
    because it also requires the invoice, which only checkout produces.
    """
    if current in (BookingStatus.CANCELLED, BookingStatus.CHECKED_OUT):
        return current

    active = [s for s in room_statuses if s != BookingRoomStatus.CANCELLED]
    if any(s in (BookingRoomStatus.CHECKED_IN, BookingRoomStatus.CHECKED_OUT) for s in active):
        return BookingStatus.CHECKED_IN
    return current
