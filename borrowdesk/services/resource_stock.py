"""Facade over one resource type: its instances and its booking calendar."""

from __future__ import annotations

from datetime import date, timedelta
from typing import Iterable, Optional

from borrowdesk.domain.errors import (
    InsufficientAvailabilityError,
    InvalidRangeError,
    LoanPolicyError,
    UnknownInstanceError,
)
from borrowdesk.domain.models import (
    Booking,
    DateInterval,
    ItemInstance,
    LoanPolicy,
    RepairRecord,
    ResourceType,
)
from borrowdesk.services.booking_calendar import BookingCalendar
from borrowdesk.utils.clock import Clock, get_clock
from borrowdesk.utils.logger import get_logger


logger = get_logger(__name__)


class ResourceStock:
    """Entry point for availability checks and bookings of one resource type.

    The stock exclusively owns its instance list and its calendar. Instances
    are offered in registration order, so the first registered free instance
    is the first one allocated.
    """

    def __init__(
        self,
        resource_type: ResourceType,
        instances: Optional[Iterable[ItemInstance]] = None,
        bookings: Optional[Iterable[Booking]] = None,
        clock: Optional[Clock] = None,
    ) -> None:
        self._resource_type = resource_type
        self._clock = clock or get_clock()
        self._instances: list[ItemInstance] = []
        self._instances_by_id: dict[int, ItemInstance] = {}
        for instance in instances or ():
            self._register(instance)
        self._calendar = BookingCalendar(
            resource_type,
            self._instances,
            bookings=bookings,
            clock=self._clock,
        )

    @property
    def resource_type(self) -> ResourceType:
        return self._resource_type

    @property
    def id(self) -> int:
        return self._resource_type.id

    @property
    def name(self) -> str:
        return self._resource_type.name

    @property
    def instances(self) -> list[ItemInstance]:
        return list(self._instances)

    @property
    def calendar(self) -> BookingCalendar:
        return self._calendar

    @property
    def clock(self) -> Clock:
        return self._clock

    def _register(self, instance: ItemInstance) -> None:
        if instance.resource_type_id != self._resource_type.id:
            raise ValueError(
                f"Instance {instance.id} belongs to resource type {instance.resource_type_id}, "
                f"not {self._resource_type.id}"
            )
        if instance.id in self._instances_by_id:
            raise ValueError(f"Duplicate instance id {instance.id}")
        self._instances.append(instance)
        self._instances_by_id[instance.id] = instance

    def add_instance(self, instance: ItemInstance) -> ItemInstance:
        self._register(instance)
        logger.info("Instance %s added to %s", instance.id, self.name)
        return instance

    def instance(self, instance_id: int) -> ItemInstance:
        instance = self._instances_by_id.get(instance_id)
        if instance is None:
            raise UnknownInstanceError(
                f"Instance {instance_id} does not belong to resource type {self.id}"
            )
        return instance

    # ---------- availability ----------

    def is_available_on(self, quantity: int, day: date) -> bool:
        unavailable = self._calendar.unavailable_instances_on(day)
        return len(self._instances) - len(unavailable) >= quantity

    def is_available(self, quantity: int, interval: DateInterval) -> bool:
        unavailable = self._calendar.unavailable_instances(interval)
        return len(self._instances) - len(unavailable) >= quantity

    def available_instances_on(self, day: date) -> list[ItemInstance]:
        unavailable = self._calendar.unavailable_instances_on(day)
        return [instance for instance in self._instances if instance.id not in unavailable]

    def available_instances(self, interval: DateInterval) -> list[ItemInstance]:
        unavailable = self._calendar.unavailable_instances(interval)
        return [instance for instance in self._instances if instance.id not in unavailable]

    def available_count(self, day: Optional[date] = None) -> int:
        return len(self.available_instances_on(day or self._clock.today()))

    # ---------- loan policy ----------

    def max_loan_days(self, policy: Optional[LoanPolicy] = None) -> int:
        if policy is None:
            return self._resource_type.max_loan_days
        return min(policy.max_loan_days, self._resource_type.max_loan_days)

    def default_interval(self, start: date, policy: Optional[LoanPolicy] = None) -> DateInterval:
        """Interval of the default loan length beginning on ``start``."""
        days = self._resource_type.default_loan_days
        if policy is not None:
            days = min(days, policy.default_loan_days)
        if days <= 0:
            raise LoanPolicyError("Requester is not allowed to borrow items")
        try:
            end = start + timedelta(days=days - 1)
        except OverflowError as exc:
            raise InvalidRangeError(
                f"A {days}-day loan starting {start.isoformat()} ends past the last supported date"
            ) from exc
        return DateInterval(start, end)

    def check_query_interval(self, interval: DateInterval) -> None:
        """Reject availability windows longer than any loan of this type could be."""
        limit = self._resource_type.max_loan_days
        if interval.length_days > limit:
            raise InvalidRangeError(
                f"Availability window of {interval.length_days} day(s) exceeds the "
                f"{limit}-day maximum loan for {self.name}"
            )

    def _check_loan_policy(self, interval: DateInterval, policy: Optional[LoanPolicy]) -> None:
        if interval.start < self._clock.today():
            raise InvalidRangeError(
                f"Booking cannot start in the past ({interval.start.isoformat()})"
            )
        allowed = self.max_loan_days(policy)
        if allowed <= 0:
            raise LoanPolicyError("Requester is not allowed to borrow items")
        if interval.length_days > allowed:
            raise LoanPolicyError(
                f"Loan of {interval.length_days} day(s) exceeds the {allowed}-day limit"
            )

    # ---------- bookings ----------

    def book(
        self,
        requester_id: int,
        quantity: int,
        interval: DateInterval,
        reason: str,
        policy: Optional[LoanPolicy] = None,
    ) -> Booking:
        if quantity <= 0:
            raise ValueError("quantity must be > 0")
        self._check_loan_policy(interval, policy)

        candidates = self.available_instances(interval)
        if len(candidates) < quantity:
            logger.warning(
                "Booking refused for requester %s: %s x %s requested, %s available",
                requester_id,
                quantity,
                self.name,
                len(candidates),
            )
            raise InsufficientAvailabilityError(requested=quantity, available=len(candidates))

        requires_validation = self._resource_type.requires_validation or (
            policy is not None and policy.requires_validation
        )
        return self._calendar.book(
            requester_id,
            candidates,
            quantity,
            interval,
            reason,
            requires_validation=requires_validation,
        )

    # ---------- repair lifecycle ----------

    def report_damage(self, instance_id: int) -> ItemInstance:
        instance = self.instance(instance_id)
        instance.report_damage()
        logger.warning("Instance %s of %s reported damaged", instance_id, self.name)
        return instance

    def send_to_repair(self, instance_id: int) -> RepairRecord:
        instance = self.instance(instance_id)
        record = instance.send_to_repair(self._clock.today(), self._resource_type.repair_days)
        logger.info(
            "Instance %s of %s sent to repair until %s",
            instance_id,
            self.name,
            record.end_date.isoformat(),
        )
        return record

    def finalize_repairs(self) -> list[int]:
        """Return repaired instances to service and report which ids changed."""
        today = self._clock.today()
        restored = [instance.id for instance in self._instances if instance.finalize_repair(today)]
        if restored:
            logger.info("Instances %s of %s back in service", restored, self.name)
        return restored

    def instances_needing_repair(self) -> list[ItemInstance]:
        return [instance for instance in self._instances if instance.needs_repair]

    def instances_in_repair(self) -> list[ItemInstance]:
        return [instance for instance in self._instances if instance.is_in_repair]
