"""Inventory orchestration: loads stocks, applies operations, persists snapshots."""

from __future__ import annotations

from contextlib import contextmanager
from datetime import date
from threading import RLock
from typing import Iterable, Iterator, Optional

from borrowdesk.domain.constraints import validate_resource_type
from borrowdesk.domain.errors import UnknownInstanceError
from borrowdesk.domain.models import (
    Booking,
    DateInterval,
    ItemInstance,
    RepairRecord,
)
from borrowdesk.repository.data_repository import DataRepository
from borrowdesk.services.resource_stock import ResourceStock
from borrowdesk.services.role_service import RolePolicyService
from borrowdesk.utils.clock import Clock, get_clock
from borrowdesk.utils.config import Settings, get_settings
from borrowdesk.utils.logger import get_logger


logger = get_logger(__name__)


BOOKING_VIEWS = ("all", "active", "late", "cancelled", "reservations", "pending")


class InventoryValidationError(Exception):
    """Raised when inventory workflow inputs are invalid."""


class InventoryService:
    """Coordinates stocks held in memory with their persisted snapshots.

    Stocks are loaded once and kept in memory; every mutation of a stock runs
    under that stock's lock and is followed by a full snapshot save. Failed
    operations leave both memory and storage untouched.
    """

    def __init__(
        self,
        repository: Optional[DataRepository] = None,
        role_service: Optional[RolePolicyService] = None,
        settings: Optional[Settings] = None,
        clock: Optional[Clock] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._repository = repository or DataRepository(self._settings)
        self._role_service = role_service or RolePolicyService(
            repository=self._repository,
            settings=self._settings,
        )
        self._clock = clock or get_clock()
        self._registry_lock = RLock()
        self._stocks: dict[int, ResourceStock] = {}
        self._locks: dict[int, RLock] = {}

    @property
    def clock(self) -> Clock:
        return self._clock

    # ---------- loading ----------

    def load_all(self) -> list[ResourceStock]:
        """Load every persisted stock into memory."""
        return [self.stock(type_id) for type_id in self._repository.list_resource_type_ids()]

    def _lock_for(self, type_id: int) -> RLock:
        with self._registry_lock:
            lock = self._locks.get(type_id)
            if lock is None:
                lock = RLock()
                self._locks[type_id] = lock
            return lock

    def _load_stock(self, type_id: int) -> ResourceStock:
        resource_type, instances, bookings = self._repository.load_stock(type_id)
        validate_resource_type(resource_type)
        stock = ResourceStock(resource_type, instances, bookings, clock=self._clock)
        logger.info(
            "Loaded stock %s (%s): %s instances, %s bookings",
            stock.id,
            stock.name,
            len(instances),
            len(bookings),
        )
        return stock

    def stock(self, type_id: int) -> ResourceStock:
        with self._lock_for(type_id):
            stock = self._stocks.get(type_id)
            if stock is None:
                stock = self._load_stock(type_id)
                self._stocks[type_id] = stock
            if stock.finalize_repairs():
                self._persist_or_evict(stock)
            return stock

    def list_stocks(self) -> list[ResourceStock]:
        return sorted(self.load_all(), key=lambda stock: stock.id)

    @contextmanager
    def _mutating(self, type_id: int) -> Iterator[ResourceStock]:
        with self._lock_for(type_id):
            stock = self.stock(type_id)
            try:
                yield stock
            except Exception:
                self._evict(stock)
                raise
            self._persist_or_evict(stock)

    def _persist_or_evict(self, stock: ResourceStock) -> None:
        try:
            self._repository.save_stock(
                stock.resource_type,
                stock.instances,
                stock.calendar.bookings,
            )
        except Exception:
            logger.error("Saving stock %s failed; discarding unsaved changes", stock.id)
            self._evict(stock)
            raise

    def _evict(self, stock: ResourceStock) -> None:
        # The next access reloads the last committed snapshot.
        self._stocks.pop(stock.id, None)

    # ---------- availability ----------

    def check_availability(
        self,
        type_id: int,
        quantity: int,
        interval: DateInterval,
    ) -> dict[str, object]:
        if quantity <= 0:
            raise InventoryValidationError("quantity must be > 0")
        stock = self.stock(type_id)
        stock.check_query_interval(interval)
        with self._lock_for(type_id):
            available = stock.available_instances(interval)
        return {
            "resource_type_id": type_id,
            "quantity": quantity,
            "start": interval.start,
            "end": interval.end,
            "available": len(available) >= quantity,
            "available_count": len(available),
            "available_instance_ids": [instance.id for instance in available],
        }

    # ---------- bookings ----------

    def book(
        self,
        type_id: int,
        *,
        requester_id: int,
        quantity: int,
        start: date,
        end: Optional[date] = None,
        reason: str = "",
    ) -> Booking:
        policy = self._role_service.policy_for(requester_id)
        with self._mutating(type_id) as stock:
            if end is None:
                interval = stock.default_interval(start, policy)
            else:
                interval = DateInterval(start, end)
            return stock.book(requester_id, quantity, interval, reason, policy=policy)

    def validate(self, type_id: int, booking_id: int) -> Booking:
        with self._mutating(type_id) as stock:
            return stock.calendar.validate(booking_id)

    def cancel(self, type_id: int, booking_id: int) -> Booking:
        with self._mutating(type_id) as stock:
            return stock.calendar.cancel(booking_id)

    def complete(
        self,
        type_id: int,
        booking_id: int,
        damaged_instance_ids: Iterable[int] = (),
    ) -> Booking:
        """Record the return of a booking, optionally flagging damaged items."""
        damaged = sorted(set(damaged_instance_ids))
        with self._mutating(type_id) as stock:
            booking = stock.calendar.get(booking_id)
            foreign = [instance_id for instance_id in damaged if instance_id not in booking.instance_ids]
            if foreign:
                raise UnknownInstanceError(
                    f"Instances {foreign} are not part of booking {booking_id}"
                )
            completed = stock.calendar.complete(booking_id)
            for instance_id in damaged:
                stock.report_damage(instance_id)
            return completed

    def list_bookings(self, type_id: int, view: str = "all") -> list[Booking]:
        if view not in BOOKING_VIEWS:
            raise InventoryValidationError(
                f"view must be one of {', '.join(BOOKING_VIEWS)}"
            )
        calendar = self.stock(type_id).calendar
        views = {
            "all": calendar.all_bookings,
            "active": calendar.active_bookings,
            "late": calendar.late_bookings,
            "cancelled": calendar.cancelled_bookings,
            "reservations": calendar.reservations,
            "pending": calendar.pending_bookings,
        }
        return views[view]()

    # ---------- instances ----------

    def add_instance(self, type_id: int) -> ItemInstance:
        with self._mutating(type_id) as stock:
            instance = ItemInstance(
                id=self._repository.next_instance_id(),
                resource_type_id=type_id,
            )
            return stock.add_instance(instance)

    def report_damage(self, type_id: int, instance_id: int) -> ItemInstance:
        with self._mutating(type_id) as stock:
            return stock.report_damage(instance_id)

    def send_to_repair(self, type_id: int, instance_id: int) -> RepairRecord:
        with self._mutating(type_id) as stock:
            return stock.send_to_repair(instance_id)

    def need_repair_list(self) -> list[tuple[ResourceStock, ItemInstance]]:
        """Damaged instances across all stocks that are not yet in repair."""
        return [
            (stock, instance)
            for stock in self.list_stocks()
            for instance in stock.instances_needing_repair()
        ]

