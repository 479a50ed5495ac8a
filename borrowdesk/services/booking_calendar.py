"""Per-resource-type booking history and availability computation."""

from __future__ import annotations

from datetime import date
from typing import Iterable, Optional, Sequence

from borrowdesk.domain.errors import (
    InsufficientAvailabilityError,
    InvalidBookingStateError,
    NotPendingError,
    UnknownBookingError,
    UnknownInstanceError,
)
from borrowdesk.domain.models import (
    Booking,
    BookingStatus,
    DateInterval,
    ItemInstance,
    ResourceType,
)
from borrowdesk.utils.clock import Clock, get_clock
from borrowdesk.utils.logger import get_logger


logger = get_logger(__name__)


class BookingCalendar:
    """Authoritative, append-only collection of the bookings of one resource type.

    Bookings are never removed: cancellation and completion only change the
    status so that history views stay complete. Availability is recomputed on
    every query from the booking list and the instance states.
    """

    def __init__(
        self,
        resource_type: ResourceType,
        instances: Sequence[ItemInstance],
        bookings: Optional[Iterable[Booking]] = None,
        clock: Optional[Clock] = None,
    ) -> None:
        self._resource_type = resource_type
        self._instances = instances
        self._clock = clock or get_clock()
        self._bookings: list[Booking] = []
        self._bookings_by_id: dict[int, Booking] = {}
        for booking in bookings or ():
            self._append(booking)

    @property
    def resource_type(self) -> ResourceType:
        return self._resource_type

    @property
    def bookings(self) -> list[Booking]:
        """Bookings in creation order."""
        return list(self._bookings)

    def _append(self, booking: Booking) -> None:
        if booking.id in self._bookings_by_id:
            raise ValueError(f"Duplicate booking id {booking.id}")
        self._bookings.append(booking)
        self._bookings_by_id[booking.id] = booking

    def _next_booking_id(self) -> int:
        return max(self._bookings_by_id, default=0) + 1

    def get(self, booking_id: int) -> Booking:
        booking = self._bookings_by_id.get(booking_id)
        if booking is None:
            raise UnknownBookingError(
                f"Booking {booking_id} does not exist for resource type {self._resource_type.id}"
            )
        return booking

    # ---------- availability ----------

    def unavailable_instances_on(self, day: date) -> set[int]:
        unavailable: set[int] = set()
        for booking in self._bookings:
            if booking.is_active(day):
                unavailable.update(booking.instance_ids)
        for instance in self._instances:
            if not instance.is_available(day):
                unavailable.add(instance.id)
        return unavailable

    def unavailable_instances(self, interval: DateInterval) -> set[int]:
        # One conflicting day removes the instance for the whole range.
        unavailable: set[int] = set()
        for day in interval.days():
            unavailable.update(self.unavailable_instances_on(day))
        return unavailable

    # ---------- mutations ----------

    def book(
        self,
        requester_id: int,
        candidates: Sequence[ItemInstance],
        quantity: int,
        interval: DateInterval,
        reason: str,
        requires_validation: bool = False,
    ) -> Booking:
        """Allocate the first ``quantity`` candidates to a new booking.

        Candidates are expected to be pre-filtered to instances free over
        ``interval``; the chosen ones are checked again before anything is
        committed.
        """
        if quantity <= 0:
            raise ValueError("quantity must be > 0")
        if len(candidates) < quantity:
            raise InsufficientAvailabilityError(requested=quantity, available=len(candidates))

        chosen = list(candidates[:quantity])
        owned_ids = {instance.id for instance in self._instances}
        for instance in chosen:
            if instance.id not in owned_ids:
                raise UnknownInstanceError(
                    f"Instance {instance.id} does not belong to resource type {self._resource_type.id}"
                )

        instance_ids = frozenset(instance.id for instance in chosen)
        if len(instance_ids) != quantity:
            raise ValueError("candidate instances must be distinct")

        conflicts = instance_ids & self.unavailable_instances(interval)
        if conflicts:
            raise InsufficientAvailabilityError(
                requested=quantity,
                available=quantity - len(conflicts),
            )

        status = (
            BookingStatus.PENDING_VALIDATION if requires_validation else BookingStatus.ACTIVE
        )
        booking = Booking(
            id=self._next_booking_id(),
            requester_id=requester_id,
            instance_ids=instance_ids,
            interval=interval,
            reason=reason,
            status=status,
        )
        self._append(booking)
        logger.info(
            "Booking %s created for requester %s: %s x %s from %s to %s (%s)",
            booking.id,
            requester_id,
            quantity,
            self._resource_type.name,
            interval.start.isoformat(),
            interval.end.isoformat(),
            status.value,
        )
        return booking

    def validate(self, booking_id: int) -> Booking:
        booking = self.get(booking_id)
        if booking.status is not BookingStatus.PENDING_VALIDATION:
            raise NotPendingError(
                f"Booking {booking_id} is {booking.status.value}, not awaiting validation"
            )
        booking.status = BookingStatus.ACTIVE
        logger.info("Booking %s validated", booking_id)
        return booking

    def cancel(self, booking_id: int) -> Booking:
        """Cancel a booking; cancelling an already terminal booking is a no-op."""
        booking = self.get(booking_id)
        if booking.status.is_terminal:
            logger.info(
                "Booking %s already %s; cancel ignored",
                booking_id,
                booking.status.value,
            )
            return booking
        booking.status = BookingStatus.CANCELLED
        logger.info("Booking %s cancelled", booking_id)
        return booking

    def complete(self, booking_id: int) -> Booking:
        booking = self.get(booking_id)
        if booking.status is not BookingStatus.ACTIVE:
            raise InvalidBookingStateError(
                f"Booking {booking_id} is {booking.status.value}; only ACTIVE bookings can be completed"
            )
        booking.status = BookingStatus.COMPLETED
        logger.info("Booking %s completed", booking_id)
        return booking

    # ---------- views ----------

    def _sorted(self, bookings: Iterable[Booking]) -> list[Booking]:
        return sorted(bookings, key=Booking.sort_key)

    def all_bookings(self) -> list[Booking]:
        return self._sorted(self._bookings)

    def active_bookings(self) -> list[Booking]:
        today = self._clock.today()
        return self._sorted(
            b
            for b in self._bookings
            if b.status is BookingStatus.ACTIVE and b.interval.contains(today)
        )

    def late_bookings(self) -> list[Booking]:
        today = self._clock.today()
        return self._sorted(
            b
            for b in self._bookings
            if b.status is BookingStatus.ACTIVE and b.interval.end < today
        )

    def cancelled_bookings(self) -> list[Booking]:
        return self._sorted(b for b in self._bookings if b.status is BookingStatus.CANCELLED)

    def reservations(self) -> list[Booking]:
        today = self._clock.today()
        return self._sorted(
            b for b in self._bookings if b.status.is_occupying and b.interval.start > today
        )

    def pending_bookings(self) -> list[Booking]:
        return self._sorted(
            b for b in self._bookings if b.status is BookingStatus.PENDING_VALIDATION
        )

    def bookings_for(self, requester_id: int) -> list[Booking]:
        return self._sorted(b for b in self._bookings if b.requester_id == requester_id)
