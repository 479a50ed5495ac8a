"""HTTP controller layer for stock availability, bookings and repairs."""

from __future__ import annotations

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field, field_validator

from borrowdesk.controllers.dependencies import get_inventory_service
from borrowdesk.domain.errors import (
    AlreadyInRepairError,
    BookingEngineError,
    InsufficientAvailabilityError,
    InvalidBookingStateError,
    InvalidRangeError,
    LoanPolicyError,
    NotPendingError,
    UnknownBookingError,
    UnknownInstanceError,
    UnknownRequesterError,
    UnknownResourceTypeError,
)
from borrowdesk.domain.models import Booking, DateInterval, ItemInstance, RepairRecord
from borrowdesk.services.inventory_service import (
    BOOKING_VIEWS,
    InventoryService,
    InventoryValidationError,
)
from borrowdesk.services.resource_stock import ResourceStock
from borrowdesk.utils.logger import get_logger


logger = get_logger(__name__)

router = APIRouter(tags=["bookings"])


class InstanceResponse(BaseModel):
    id: int = Field(gt=0)
    operational_state: str
    in_repair: bool
    repair_start_date: date | None = None
    repair_end_date: date | None = None

    @classmethod
    def from_instance(cls, instance: ItemInstance) -> "InstanceResponse":
        record = instance.repair_record
        return cls(
            id=instance.id,
            operational_state=instance.operational_state.value,
            in_repair=instance.is_in_repair,
            repair_start_date=record.start_date if record else None,
            repair_end_date=record.end_date if record else None,
        )


class StockSummaryResponse(BaseModel):
    id: int = Field(gt=0)
    name: str
    attributes: dict[str, str]
    default_loan_days: int = Field(gt=0)
    max_loan_days: int = Field(gt=0)
    repair_days: int = Field(gt=0)
    requires_validation: bool
    instance_count: int = Field(ge=0)
    available_today: int = Field(ge=0)

    @classmethod
    def from_stock(cls, stock: ResourceStock) -> "StockSummaryResponse":
        resource_type = stock.resource_type
        return cls(
            id=resource_type.id,
            name=resource_type.name,
            attributes=dict(resource_type.attributes),
            default_loan_days=resource_type.default_loan_days,
            max_loan_days=resource_type.max_loan_days,
            repair_days=resource_type.repair_days,
            requires_validation=resource_type.requires_validation,
            instance_count=len(stock.instances),
            available_today=stock.available_count(),
        )


class StockDetailResponse(StockSummaryResponse):
    instances: list[InstanceResponse]


class AvailabilityResponse(BaseModel):
    resource_type_id: int = Field(gt=0)
    quantity: int = Field(gt=0)
    start: date
    end: date
    available: bool
    available_count: int = Field(ge=0)
    available_instance_ids: list[int]


class BookingRequest(BaseModel):
    """Input DTO validated before entering service layer."""

    requester_id: int = Field(gt=0)
    quantity: int = Field(gt=0)
    start: date
    end: Optional[date] = None
    reason: str = Field(default="", max_length=500)

    @field_validator("reason")
    @classmethod
    def strip_reason(cls, value: str) -> str:
        return value.strip()


class BookingResponse(BaseModel):
    id: int = Field(gt=0)
    resource_type_id: int = Field(gt=0)
    requester_id: int = Field(gt=0)
    instance_ids: list[int]
    start: date
    end: date
    reason: str
    status: str

    @classmethod
    def from_booking(cls, type_id: int, booking: Booking) -> "BookingResponse":
        return cls(
            id=booking.id,
            resource_type_id=type_id,
            requester_id=booking.requester_id,
            instance_ids=sorted(booking.instance_ids),
            start=booking.interval.start,
            end=booking.interval.end,
            reason=booking.reason,
            status=booking.status.value,
        )


class CompleteBookingRequest(BaseModel):
    damaged_instance_ids: list[int] = Field(default_factory=list)

    @field_validator("damaged_instance_ids")
    @classmethod
    def validate_instance_ids(cls, value: list[int]) -> list[int]:
        for instance_id in value:
            if instance_id <= 0:
                raise ValueError("damaged_instance_ids values must be positive integers")
        return value


class RepairResponse(BaseModel):
    resource_type_id: int = Field(gt=0)
    instance_id: int = Field(gt=0)
    start_date: date
    duration_days: int = Field(gt=0)
    end_date: date

    @classmethod
    def from_record(cls, type_id: int, instance_id: int, record: RepairRecord) -> "RepairResponse":
        return cls(
            resource_type_id=type_id,
            instance_id=instance_id,
            start_date=record.start_date,
            duration_days=record.duration_days,
            end_date=record.end_date,
        )


class NeedRepairRow(BaseModel):
    resource_type_id: int = Field(gt=0)
    resource_type_name: str
    instance_id: int = Field(gt=0)
    repair_days: int = Field(gt=0)


_ERROR_STATUS: tuple[tuple[type[Exception], int], ...] = (
    (UnknownResourceTypeError, status.HTTP_404_NOT_FOUND),
    (UnknownBookingError, status.HTTP_404_NOT_FOUND),
    (UnknownInstanceError, status.HTTP_404_NOT_FOUND),
    (UnknownRequesterError, status.HTTP_404_NOT_FOUND),
    (InsufficientAvailabilityError, status.HTTP_409_CONFLICT),
    (AlreadyInRepairError, status.HTTP_409_CONFLICT),
    (NotPendingError, status.HTTP_409_CONFLICT),
    (InvalidBookingStateError, status.HTTP_409_CONFLICT),
    (InvalidRangeError, status.HTTP_400_BAD_REQUEST),
    (LoanPolicyError, status.HTTP_400_BAD_REQUEST),
    (InventoryValidationError, status.HTTP_400_BAD_REQUEST),
)


def _to_http_error(exc: Exception) -> HTTPException:
    for error_type, status_code in _ERROR_STATUS:
        if isinstance(exc, error_type):
            return HTTPException(status_code=status_code, detail=str(exc))
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))


@router.get("/stocks", response_model=list[StockSummaryResponse], status_code=status.HTTP_200_OK)
async def list_stocks(
    inventory_service: InventoryService = Depends(get_inventory_service),
) -> list[StockSummaryResponse]:
    return [StockSummaryResponse.from_stock(stock) for stock in inventory_service.list_stocks()]


@router.get(
    "/stocks/{type_id}",
    response_model=StockDetailResponse,
    status_code=status.HTTP_200_OK,
)
async def get_stock(
    type_id: int,
    inventory_service: InventoryService = Depends(get_inventory_service),
) -> StockDetailResponse:
    try:
        stock = inventory_service.stock(type_id)
    except BookingEngineError as exc:
        raise _to_http_error(exc) from exc
    summary = StockSummaryResponse.from_stock(stock)
    return StockDetailResponse(
        **summary.model_dump(),
        instances=[InstanceResponse.from_instance(instance) for instance in stock.instances],
    )


@router.get(
    "/stocks/{type_id}/availability",
    response_model=AvailabilityResponse,
    status_code=status.HTTP_200_OK,
)
async def check_availability(
    type_id: int,
    start: date,
    end: Optional[date] = None,
    quantity: int = Query(default=1, gt=0),
    inventory_service: InventoryService = Depends(get_inventory_service),
) -> AvailabilityResponse:
    try:
        interval = DateInterval(start, end or start)
        result = inventory_service.check_availability(type_id, quantity, interval)
        return AvailabilityResponse(**result)
    except (BookingEngineError, InventoryValidationError) as exc:
        raise _to_http_error(exc) from exc


@router.post(
    "/stocks/{type_id}/bookings",
    response_model=BookingResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_booking(
    type_id: int,
    payload: BookingRequest,
    inventory_service: InventoryService = Depends(get_inventory_service),
) -> BookingResponse:
    try:
        booking = inventory_service.book(
            type_id,
            requester_id=payload.requester_id,
            quantity=payload.quantity,
            start=payload.start,
            end=payload.end,
            reason=payload.reason,
        )
        return BookingResponse.from_booking(type_id, booking)
    except BookingEngineError as exc:
        raise _to_http_error(exc) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected booking failure")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create booking",
        ) from exc


@router.get(
    "/stocks/{type_id}/bookings",
    response_model=list[BookingResponse],
    status_code=status.HTTP_200_OK,
)
async def list_bookings(
    type_id: int,
    view: str = Query(default="all", pattern="^(" + "|".join(BOOKING_VIEWS) + ")$"),
    inventory_service: InventoryService = Depends(get_inventory_service),
) -> list[BookingResponse]:
    try:
        bookings = inventory_service.list_bookings(type_id, view)
    except (BookingEngineError, InventoryValidationError) as exc:
        raise _to_http_error(exc) from exc
    return [BookingResponse.from_booking(type_id, booking) for booking in bookings]


@router.post(
    "/stocks/{type_id}/bookings/{booking_id}/validate",
    response_model=BookingResponse,
    status_code=status.HTTP_200_OK,
)
async def validate_booking(
    type_id: int,
    booking_id: int,
    inventory_service: InventoryService = Depends(get_inventory_service),
) -> BookingResponse:
    try:
        booking = inventory_service.validate(type_id, booking_id)
        return BookingResponse.from_booking(type_id, booking)
    except BookingEngineError as exc:
        raise _to_http_error(exc) from exc


@router.post(
    "/stocks/{type_id}/bookings/{booking_id}/cancel",
    response_model=BookingResponse,
    status_code=status.HTTP_200_OK,
)
async def cancel_booking(
    type_id: int,
    booking_id: int,
    inventory_service: InventoryService = Depends(get_inventory_service),
) -> BookingResponse:
    try:
        booking = inventory_service.cancel(type_id, booking_id)
        return BookingResponse.from_booking(type_id, booking)
    except BookingEngineError as exc:
        raise _to_http_error(exc) from exc


@router.post(
    "/stocks/{type_id}/bookings/{booking_id}/complete",
    response_model=BookingResponse,
    status_code=status.HTTP_200_OK,
)
async def complete_booking(
    type_id: int,
    booking_id: int,
    payload: Optional[CompleteBookingRequest] = None,
    inventory_service: InventoryService = Depends(get_inventory_service),
) -> BookingResponse:
    damaged = payload.damaged_instance_ids if payload is not None else []
    try:
        booking = inventory_service.complete(type_id, booking_id, damaged)
        return BookingResponse.from_booking(type_id, booking)
    except BookingEngineError as exc:
        raise _to_http_error(exc) from exc


@router.post(
    "/stocks/{type_id}/instances",
    response_model=InstanceResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_instance(
    type_id: int,
    inventory_service: InventoryService = Depends(get_inventory_service),
) -> InstanceResponse:
    try:
        instance = inventory_service.add_instance(type_id)
        return InstanceResponse.from_instance(instance)
    except BookingEngineError as exc:
        raise _to_http_error(exc) from exc


@router.post(
    "/stocks/{type_id}/instances/{instance_id}/damage",
    response_model=InstanceResponse,
    status_code=status.HTTP_200_OK,
)
async def report_damage(
    type_id: int,
    instance_id: int,
    inventory_service: InventoryService = Depends(get_inventory_service),
) -> InstanceResponse:
    try:
        instance = inventory_service.report_damage(type_id, instance_id)
        return InstanceResponse.from_instance(instance)
    except BookingEngineError as exc:
        raise _to_http_error(exc) from exc


@router.post(
    "/stocks/{type_id}/instances/{instance_id}/repair",
    response_model=RepairResponse,
    status_code=status.HTTP_200_OK,
)
async def send_to_repair(
    type_id: int,
    instance_id: int,
    inventory_service: InventoryService = Depends(get_inventory_service),
) -> RepairResponse:
    try:
        record = inventory_service.send_to_repair(type_id, instance_id)
        return RepairResponse.from_record(type_id, instance_id, record)
    except BookingEngineError as exc:
        raise _to_http_error(exc) from exc


@router.get("/repairs", response_model=list[NeedRepairRow], status_code=status.HTTP_200_OK)
async def need_repair_list(
    inventory_service: InventoryService = Depends(get_inventory_service),
) -> list[NeedRepairRow]:
    return [
        NeedRepairRow(
            resource_type_id=stock.id,
            resource_type_name=stock.name,
            instance_id=instance.id,
            repair_days=stock.resource_type.repair_days,
        )
        for stock, instance in inventory_service.need_repair_list()
    ]
