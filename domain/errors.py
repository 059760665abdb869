"""Domain Errors

Every failure the engine reports is one of these types. Each carries a stable
``code`` and the HTTP-equivalent ``status_code`` the API layer answers with.
"""


class BookingEngineError(Exception):
    """Base exception for booking engine errors"""

    code = "BOOKING_ENGINE_ERROR"
    status_code = 500
    retryable = False

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"code": self.code, "message": self.message}


class ValidationError(BookingEngineError, ValueError):
    """Malformed input or violated business constraint"""
    code = "VALIDATION_ERROR"
    status_code = 400


class NotFoundError(BookingEngineError, LookupError):
    """Unknown booking, room, guest or rule id"""
    code = "NOT_FOUND"
    status_code = 404


class InsufficientAvailabilityError(BookingEngineError):
    """The allocator could not satisfy a room request"""
    code = "INSUFFICIENT_AVAILABILITY"
    status_code = 409


class InvalidCodeError(BookingEngineError):
    """No promotion with the given code exists for the property"""
    code = "INVALID_DISCOUNT_CODE"
    status_code = 400


class ExpiredError(BookingEngineError):
    """Promotion is inactive or outside its validity window"""
    code = "DISCOUNT_CODE_EXPIRED"
    status_code = 400


class ScopeMismatchError(BookingEngineError):
    """Promotion scope does not cover the invoice lines it was applied to"""
    code = "DISCOUNT_SCOPE_MISMATCH"
    status_code = 400


class InvalidStateTransitionError(BookingEngineError):
    """A lifecycle guard rejected the requested transition"""
    code = "INVALID_STATE_TRANSITION"
    status_code = 409


class AlreadyCheckedOutError(InvalidStateTransitionError):
    """Checkout was requested for a booking that is already checked out"""
    code = "ALREADY_CHECKED_OUT"
    status_code = 409


class RuleNotFoundError(BookingEngineError):
    """Room type has no base price to fall back on"""
    code = "PRICING_RULE_NOT_FOUND"
    status_code = 422


class TransientStorageError(BookingEngineError):
    """Deadlock or lock timeout in the backing store"""
    code = "TRANSIENT_STORAGE_ERROR"
    status_code = 503
    retryable = True
