from __future__ import annotations

from dataclasses import replace
from datetime import date, timedelta

from fastapi import FastAPI
from fastapi.testclient import TestClient

from borrowdesk.controllers.booking_controller import router as booking_router
from borrowdesk.repository.data_repository import DataRepository
from borrowdesk.services.inventory_service import InventoryService
from borrowdesk.services.role_service import RolePolicyService
from borrowdesk.utils.clock import Clock
from borrowdesk.utils.config import get_settings


TODAY = date(2026, 3, 2)


def _build_test_settings(tmp_path, filename: str):
    get_settings.cache_clear()
    base = get_settings()
    return replace(
        base,
        database_path=tmp_path / filename,
        demo_instances_per_type=3,
    )


def _build_test_app(tmp_path) -> tuple[FastAPI, InventoryService]:
    settings = _build_test_settings(tmp_path, "booking_api.db")
    repository = DataRepository(settings)
    repository.initialize_database()
    repository.seed_demo_inventory()

    role_service = RolePolicyService(repository=repository, settings=settings)
    inventory_service = InventoryService(
        repository=repository,
        role_service=role_service,
        settings=settings,
        clock=Clock(TODAY),
    )

    app = FastAPI()
    app.include_router(booking_router)
    app.state.repository = repository
    app.state.role_service = role_service
    app.state.inventory_service = inventory_service
    return app, inventory_service


def _iso(offset_days: int) -> str:
    return (TODAY + timedelta(days=offset_days)).isoformat()


def test_booking_end_to_end_flow(tmp_path):
    app, _ = _build_test_app(tmp_path)
    client = TestClient(app)

    stocks_response = client.get("/stocks")
    assert stocks_response.status_code == 200
    stocks = stocks_response.json()
    assert [stock["name"] for stock in stocks] == ["Tablet", "Camera", "Oscilloscope"]
    assert stocks[0]["available_today"] == 3

    availability = client.get(
        "/stocks/1/availability",
        params={"quantity": 3, "start": _iso(0)},
    )
    assert availability.status_code == 200
    assert availability.json()["available"] is True
    too_many = client.get(
        "/stocks/1/availability",
        params={"quantity": 4, "start": _iso(0)},
    )
    assert too_many.json()["available"] is False

    create_response = client.post(
        "/stocks/1/bookings",
        json={
            "requester_id": 3,
            "quantity": 2,
            "start": _iso(0),
            "end": _iso(4),
            "reason": "physics lab",
        },
    )
    assert create_response.status_code == 201
    booking = create_response.json()
    assert booking["status"] == "ACTIVE"
    assert booking["instance_ids"] == [1, 2]
    assert booking["end"] == _iso(4)

    conflict = client.post(
        "/stocks/1/bookings",
        json={"requester_id": 3, "quantity": 2, "start": _iso(2), "end": _iso(3)},
    )
    assert conflict.status_code == 409

    midweek = client.get(
        "/stocks/1/availability",
        params={"quantity": 1, "start": _iso(2), "end": _iso(2)},
    )
    assert midweek.json()["available_instance_ids"] == [3]

    student_response = client.post(
        "/stocks/1/bookings",
        json={"requester_id": 1, "quantity": 1, "start": _iso(1), "end": _iso(2)},
    )
    assert student_response.status_code == 201
    student_booking = student_response.json()
    assert student_booking["status"] == "PENDING_VALIDATION"

    pending = client.get("/stocks/1/bookings", params={"view": "pending"})
    assert [row["id"] for row in pending.json()] == [student_booking["id"]]

    validate_path = f"/stocks/1/bookings/{student_booking['id']}/validate"
    assert client.post(validate_path).json()["status"] == "ACTIVE"
    assert client.post(validate_path).status_code == 409

    cancel_path = f"/stocks/1/bookings/{booking['id']}/cancel"
    first_cancel = client.post(cancel_path)
    second_cancel = client.post(cancel_path)
    assert first_cancel.status_code == 200
    assert second_cancel.status_code == 200
    assert second_cancel.json()["status"] == "CANCELLED"

    cancelled = client.get("/stocks/1/bookings", params={"view": "cancelled"})
    assert [row["id"] for row in cancelled.json()] == [booking["id"]]

    all_bookings = client.get("/stocks/1/bookings")
    assert [row["id"] for row in all_bookings.json()] == [booking["id"], student_booking["id"]]


def test_repair_workflow(tmp_path):
    app, inventory_service = _build_test_app(tmp_path)
    client = TestClient(app)

    damage = client.post("/stocks/2/instances/4/damage")
    assert damage.status_code == 200
    assert damage.json()["operational_state"] == "DESTROYED"
    assert damage.json()["in_repair"] is False

    repairs = client.get("/repairs")
    assert repairs.json() == [
        {
            "resource_type_id": 2,
            "resource_type_name": "Camera",
            "instance_id": 4,
            "repair_days": 10,
        }
    ]

    repair = client.post("/stocks/2/instances/4/repair")
    assert repair.status_code == 200
    assert repair.json()["end_date"] == _iso(10)
    assert client.post("/stocks/2/instances/4/repair").status_code == 409
    assert client.get("/repairs").json() == []

    detail = client.get("/stocks/2").json()
    instance = next(row for row in detail["instances"] if row["id"] == 4)
    assert instance["in_repair"] is True
    assert detail["available_today"] == 2

    inventory_service.clock.advance(10)
    detail = client.get("/stocks/2").json()
    assert detail["available_today"] == 3


def test_complete_booking_reports_damaged_items(tmp_path):
    app, _ = _build_test_app(tmp_path)
    client = TestClient(app)

    created = client.post(
        "/stocks/2/bookings",
        json={"requester_id": 3, "quantity": 1, "start": _iso(0), "end": _iso(1)},
    ).json()
    (instance_id,) = created["instance_ids"]

    completed = client.post(
        f"/stocks/2/bookings/{created['id']}/complete",
        json={"damaged_instance_ids": [instance_id]},
    )
    assert completed.status_code == 200
    assert completed.json()["status"] == "COMPLETED"
    assert [row["instance_id"] for row in client.get("/repairs").json()] == [instance_id]

    again = client.post(f"/stocks/2/bookings/{created['id']}/complete")
    assert again.status_code == 409


def test_request_errors_are_mapped(tmp_path):
    app, _ = _build_test_app(tmp_path)
    client = TestClient(app)

    assert client.get("/stocks/99").status_code == 404
    assert client.post("/stocks/1/bookings/42/cancel").status_code == 404
    assert client.post("/stocks/1/instances/42/damage").status_code == 404

    reversed_range = client.post(
        "/stocks/1/bookings",
        json={"requester_id": 3, "quantity": 1, "start": _iso(3), "end": _iso(1)},
    )
    assert reversed_range.status_code == 400

    past = client.post(
        "/stocks/1/bookings",
        json={"requester_id": 3, "quantity": 1, "start": _iso(-1), "end": _iso(1)},
    )
    assert past.status_code == 400

    too_long = client.post(
        "/stocks/1/bookings",
        json={"requester_id": 1, "quantity": 1, "start": _iso(0), "end": _iso(20)},
    )
    assert too_long.status_code == 400

    unknown_requester = client.post(
        "/stocks/1/bookings",
        json={"requester_id": 999, "quantity": 1, "start": _iso(0)},
    )
    assert unknown_requester.status_code == 404

    invalid_quantity = client.post(
        "/stocks/1/bookings",
        json={"requester_id": 3, "quantity": 0, "start": _iso(0)},
    )
    assert invalid_quantity.status_code == 422

    assert client.get("/stocks/1/bookings", params={"view": "overdue"}).status_code == 422
    assert client.get(
        "/stocks/1/availability",
        params={"quantity": 1, "start": _iso(2), "end": _iso(1)},
    ).status_code == 400


def test_availability_window_bounds(tmp_path):
    app, _ = _build_test_app(tmp_path)
    client = TestClient(app)

    last_day = client.get(
        "/stocks/1/availability",
        params={"quantity": 1, "start": date.max.isoformat()},
    )
    assert last_day.status_code == 200
    assert last_day.json()["available_count"] == 3

    unbounded = client.get(
        "/stocks/1/availability",
        params={"quantity": 1, "start": _iso(0), "end": date.max.isoformat()},
    )
    assert unbounded.status_code == 400
