"""Domain models for equipment stocks, item instances and bookings."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, timedelta
from enum import Enum
from typing import Iterator, Optional

from borrowdesk.domain.errors import AlreadyInRepairError, InvalidRangeError


@dataclass(frozen=True)
class DateInterval:
    """Inclusive range of whole days."""

    start: date
    end: date

    def __post_init__(self) -> None:
        if self.start > self.end:
            raise InvalidRangeError(
                f"Interval end {self.end.isoformat()} precedes start {self.start.isoformat()}"
            )

    @classmethod
    def single_day(cls, day: date) -> "DateInterval":
        return cls(day, day)

    @property
    def length_days(self) -> int:
        return (self.end - self.start).days + 1

    def contains(self, day: date) -> bool:
        return self.start <= day <= self.end

    def overlaps(self, other: "DateInterval") -> bool:
        return self.start <= other.end and other.start <= self.end

    def days(self) -> Iterator[date]:
        """Yield every day from start to end; each call starts over."""
        for offset in range(self.length_days):
            yield self.start + timedelta(days=offset)


@dataclass(frozen=True)
class ResourceType:
    """Catalog entry shared by every instance of one kind of item."""

    id: int
    name: str
    attributes: dict[str, str] = field(default_factory=dict, hash=False)
    default_loan_days: int = 7
    max_loan_days: int = 30
    repair_days: int = 7
    requires_validation: bool = False


class OperationalState(str, Enum):
    IN_SERVICE = "IN_SERVICE"
    DESTROYED = "DESTROYED"


@dataclass(frozen=True)
class RepairRecord:
    start_date: date
    duration_days: int

    @property
    def end_date(self) -> date:
        """First day the instance is usable again."""
        return self.start_date + timedelta(days=self.duration_days)


@dataclass
class ItemInstance:
    """One physical unit of a resource type.

    A broken instance is ``DESTROYED``; once sent to repair it carries a
    ``RepairRecord`` and becomes lendable again from ``record.end_date`` on.
    That return to service is derived at read time from the record and the
    queried date, never stored ahead of time.
    """

    id: int
    resource_type_id: int
    operational_state: OperationalState = OperationalState.IN_SERVICE
    repair_record: Optional[RepairRecord] = None

    @property
    def is_in_repair(self) -> bool:
        return (
            self.operational_state is OperationalState.DESTROYED
            and self.repair_record is not None
        )

    @property
    def needs_repair(self) -> bool:
        return (
            self.operational_state is OperationalState.DESTROYED
            and self.repair_record is None
        )

    def is_available(self, on: date) -> bool:
        if self.operational_state is OperationalState.IN_SERVICE:
            return True
        if self.repair_record is None:
            return False
        return on >= self.repair_record.end_date

    def report_damage(self) -> None:
        self.operational_state = OperationalState.DESTROYED
        self.repair_record = None

    def send_to_repair(self, start_date: date, duration_days: int) -> RepairRecord:
        if self.operational_state is not OperationalState.DESTROYED:
            raise AlreadyInRepairError(
                f"Instance {self.id} is in service and does not need repair"
            )
        if self.repair_record is not None:
            raise AlreadyInRepairError(
                f"Instance {self.id} is already under repair until "
                f"{self.repair_record.end_date.isoformat()}"
            )
        self.repair_record = RepairRecord(start_date=start_date, duration_days=duration_days)
        return self.repair_record

    def finalize_repair(self, today: date) -> bool:
        """Clear the repair state once the window has elapsed."""
        if not self.is_in_repair or not self.is_available(today):
            return False
        self.operational_state = OperationalState.IN_SERVICE
        self.repair_record = None
        return True


class BookingStatus(str, Enum):
    PENDING_VALIDATION = "PENDING_VALIDATION"
    ACTIVE = "ACTIVE"
    CANCELLED = "CANCELLED"
    COMPLETED = "COMPLETED"

    @property
    def is_occupying(self) -> bool:
        return self in (BookingStatus.PENDING_VALIDATION, BookingStatus.ACTIVE)

    @property
    def is_terminal(self) -> bool:
        return self in (BookingStatus.CANCELLED, BookingStatus.COMPLETED)


@dataclass
class Booking:
    """Reservation of specific instances over an interval.

    ``instance_ids`` and ``interval`` are fixed at creation; only ``status``
    changes afterwards.
    """

    id: int
    requester_id: int
    instance_ids: frozenset[int]
    interval: DateInterval
    reason: str
    status: BookingStatus = BookingStatus.ACTIVE

    def is_active(self, day: date) -> bool:
        return self.status.is_occupying and self.interval.contains(day)

    def sort_key(self) -> tuple[date, int]:
        return (self.interval.start, self.id)


@dataclass(frozen=True)
class LoanPolicy:
    """Per-requester capabilities supplied by the role collaborator."""

    default_loan_days: int
    max_loan_days: int
    requires_validation: bool = False
