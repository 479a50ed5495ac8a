#!/usr/bin/env python3
"""Validate local borrowdesk environment readiness."""

from __future__ import annotations

import importlib
import shutil
import sys
import tempfile
from dataclasses import replace
from datetime import date, timedelta
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from borrowdesk.domain.models import DateInterval
from borrowdesk.repository.data_repository import DataRepository
from borrowdesk.services.inventory_service import InventoryService
from borrowdesk.utils.clock import Clock
from borrowdesk.utils.config import get_settings

SEPARATOR_LINE = "=" * 44


def _print_result(name: str, success: bool, detail: str = "") -> tuple[bool, str]:
    if success:
        return True, f"[PASS] {name}{detail}"
    return False, f"[FAIL] {name}: {detail}"


def main() -> int:
    results: list[str] = []
    all_passed = True
    temp_dir = tempfile.mkdtemp(prefix="borrowdesk-env-")

    # CHECK 1 — Python version >= 3.10
    if sys.version_info >= (3, 10):
        ok, line = _print_result("Python " + sys.version.split()[0], True)
    else:
        ok, line = _print_result(
            "Python version >= 3.10",
            False,
            f"found {sys.version.split()[0]}",
        )
    results.append(line)
    all_passed = all_passed and ok

    # CHECK 2 — Required packages importable
    package_specs = ["fastapi", "uvicorn", "pydantic", "dotenv", "httpx", "pytest"]
    import_errors: list[str] = []
    for module_name in package_specs:
        try:
            importlib.import_module(module_name)
        except ImportError as exc:
            import_errors.append(f"{module_name} ({exc})")
    if import_errors:
        ok, line = _print_result(
            "Required packages",
            False,
            "missing/unimportable -> " + "; ".join(import_errors),
        )
    else:
        ok, line = _print_result("Required packages: all importable", True)
    results.append(line)
    all_passed = all_passed and ok

    try:
        base_settings = get_settings()
        validation_settings = replace(
            base_settings,
            database_path=Path(temp_dir) / "borrowdesk_validation.db",
        )
        repository = DataRepository(validation_settings)

        # CHECK 3 — Database initialization
        try:
            repository.initialize_database()
            ok, line = _print_result("Database initialization", True)
        except Exception as exc:
            ok, line = _print_result("Database initialization", False, str(exc))
        results.append(line)
        all_passed = all_passed and ok

        # CHECK 4 — Demo inventory seeding
        try:
            seeded = repository.seed_demo_inventory()
            if seeded <= 0:
                raise RuntimeError(f"expected seeded instances, got {seeded}")
            ok, line = _print_result("Demo inventory seeding", True, f": {seeded} instances")
        except Exception as exc:
            ok, line = _print_result("Demo inventory seeding", False, str(exc))
        results.append(line)
        all_passed = all_passed and ok

        # CHECK 5 — Booking round trip through storage
        try:
            today = date.today()
            service = InventoryService(
                repository=repository,
                settings=validation_settings,
                clock=Clock(today),
            )
            booking = service.book(
                1,
                requester_id=3,
                quantity=1,
                start=today,
                end=today + timedelta(days=2),
                reason="environment check",
            )
            reloaded = InventoryService(
                repository=repository,
                settings=validation_settings,
                clock=Clock(today),
            ).stock(1)
            if reloaded.calendar.get(booking.id) != booking:
                raise RuntimeError("booking did not survive save/load")
            if reloaded.available_instances(DateInterval(today, today)) == reloaded.instances:
                raise RuntimeError("booked instance still reported available")
            ok, line = _print_result("Booking round trip", True)
        except Exception as exc:
            ok, line = _print_result("Booking round trip", False, str(exc))
        results.append(line)
        all_passed = all_passed and ok

    finally:
        shutil.rmtree(temp_dir, ignore_errors=True)

    print(SEPARATOR_LINE)
    print(" borrowdesk Environment Validation")
    print(SEPARATOR_LINE)
    for line in results:
        print(f" {line}")
    print(SEPARATOR_LINE)
    if all_passed:
        print(" All checks passed. Environment is ready.")
        print(SEPARATOR_LINE)
        return 0
    print(" One or more checks failed.")
    print(SEPARATOR_LINE)
    return 1


if __name__ == "__main__":
    raise SystemExit(main())
