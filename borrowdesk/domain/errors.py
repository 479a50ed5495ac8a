"""Typed failures raised by the availability and booking engine."""

from __future__ import annotations


class BookingEngineError(Exception):
    """Base exception for booking engine failures."""


class InvalidRangeError(BookingEngineError):
    """Raised when an interval ends before it starts or starts in the past."""


class InsufficientAvailabilityError(BookingEngineError):
    """Raised when fewer instances are free than the quantity requested."""

    def __init__(self, requested: int, available: int) -> None:
        super().__init__(
            f"Requested {requested} instance(s) but only {available} available"
        )
        self.requested = requested
        self.available = available


class AlreadyInRepairError(BookingEngineError):
    """Raised when an instance cannot be sent to repair."""


class NotPendingError(BookingEngineError):
    """Raised when validating a booking that is not awaiting validation."""


class InvalidBookingStateError(BookingEngineError):
    """Raised when a status transition is not allowed from the current status."""


class LoanPolicyError(BookingEngineError):
    """Raised when a booking exceeds the loan length allowed to the requester."""


class UnknownBookingError(BookingEngineError):
    """Raised when a booking id does not exist in the calendar."""


class UnknownInstanceError(BookingEngineError):
    """Raised when an instance id does not belong to the stock."""


class UnknownResourceTypeError(BookingEngineError):
    """Raised when a resource type id has no persisted stock."""


class UnknownRequesterError(BookingEngineError):
    """Raised when a requester id has no registered role."""
