"""Tests for the damage / repair lifecycle of a single item instance."""

from __future__ import annotations

from datetime import date, timedelta

import pytest

from borrowdesk.domain.errors import AlreadyInRepairError
from borrowdesk.domain.models import (
    DateInterval,
    ItemInstance,
    OperationalState,
    RepairRecord,
    ResourceType,
)
from borrowdesk.services.resource_stock import ResourceStock
from borrowdesk.utils.clock import Clock


DAY1 = date(2026, 3, 2)


def day(n: int) -> date:
    return DAY1 + timedelta(days=n - 1)


def test_new_instance_is_in_service_and_available() -> None:
    instance = ItemInstance(id=1, resource_type_id=1)
    assert instance.operational_state is OperationalState.IN_SERVICE
    assert instance.is_available(day(1))
    assert not instance.needs_repair
    assert not instance.is_in_repair


def test_damaged_instance_is_unavailable_until_repaired() -> None:
    instance = ItemInstance(id=1, resource_type_id=1)
    instance.report_damage()
    assert instance.needs_repair
    assert not instance.is_available(day(1))
    assert not instance.is_available(day(100))


def test_send_to_repair_sets_record() -> None:
    instance = ItemInstance(id=1, resource_type_id=1)
    instance.report_damage()
    record = instance.send_to_repair(day(1), 5)
    assert record == RepairRecord(start_date=day(1), duration_days=5)
    assert record.end_date == day(6)
    assert instance.is_in_repair
    assert not instance.needs_repair


def test_send_to_repair_twice_raises() -> None:
    instance = ItemInstance(id=1, resource_type_id=1)
    instance.report_damage()
    instance.send_to_repair(day(1), 5)
    with pytest.raises(AlreadyInRepairError):
        instance.send_to_repair(day(2), 5)
    assert instance.repair_record == RepairRecord(start_date=day(1), duration_days=5)


def test_send_in_service_instance_to_repair_raises() -> None:
    instance = ItemInstance(id=1, resource_type_id=1)
    with pytest.raises(AlreadyInRepairError):
        instance.send_to_repair(day(1), 5)
    assert instance.repair_record is None


def test_repair_window_is_derived_from_query_date() -> None:
    instance = ItemInstance(id=1, resource_type_id=1)
    instance.report_damage()
    instance.send_to_repair(day(1), 5)
    for n in range(1, 6):
        assert not instance.is_available(day(n))
    assert instance.is_available(day(6))
    assert instance.is_available(day(30))
    # Still stored as destroyed until finalized.
    assert instance.operational_state is OperationalState.DESTROYED


def test_finalize_repair_only_after_window() -> None:
    instance = ItemInstance(id=1, resource_type_id=1)
    instance.report_damage()
    instance.send_to_repair(day(1), 5)

    assert instance.finalize_repair(day(5)) is False
    assert instance.is_in_repair

    assert instance.finalize_repair(day(6)) is True
    assert instance.operational_state is OperationalState.IN_SERVICE
    assert instance.repair_record is None
    assert instance.finalize_repair(day(7)) is False


def test_report_damage_clears_stale_repair_record() -> None:
    instance = ItemInstance(
        id=1,
        resource_type_id=1,
        operational_state=OperationalState.IN_SERVICE,
        repair_record=RepairRecord(start_date=day(1), duration_days=2),
    )
    instance.report_damage()
    assert instance.repair_record is None
    assert instance.needs_repair


def test_stock_excludes_instance_during_repair_window() -> None:
    resource_type = ResourceType(id=1, name="Microscope", repair_days=5)
    clock = Clock(day(1))
    stock = ResourceStock(
        resource_type,
        [ItemInstance(id=7, resource_type_id=1)],
        clock=clock,
    )
    stock.report_damage(7)
    record = stock.send_to_repair(7)

    assert record.start_date == day(1)
    assert record.duration_days == 5
    for n in range(1, 6):
        assert not stock.is_available_on(1, day(n))
    assert stock.is_available_on(1, day(6))
    assert stock.is_available_on(1, day(9))

    assert not stock.is_available(1, DateInterval(day(4), day(7)))
    assert stock.is_available(1, DateInterval(day(6), day(7)))


def test_stock_finalizes_repairs_when_clock_passes_window() -> None:
    resource_type = ResourceType(id=1, name="Microscope", repair_days=3)
    clock = Clock(day(1))
    stock = ResourceStock(
        resource_type,
        [ItemInstance(id=1, resource_type_id=1), ItemInstance(id=2, resource_type_id=1)],
        clock=clock,
    )
    stock.report_damage(2)
    stock.send_to_repair(2)
    assert stock.instances_in_repair() == [stock.instance(2)]

    clock.advance(2)
    assert stock.finalize_repairs() == []

    clock.advance(1)
    assert stock.finalize_repairs() == [2]
    assert stock.instance(2).operational_state is OperationalState.IN_SERVICE
    assert stock.instances_in_repair() == []
