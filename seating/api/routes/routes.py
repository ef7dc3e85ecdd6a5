import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status

from seating.api.schemas.schemas import (
    MessageResponse,
    SeatAllocationRequest,
    SeatAvailabilityResponse,
    SeatCreateRequest,
    SeatReleaseRequest,
    SeatReservationRequest,
    SeatReservationResponse,
    SeatResponse,
)
from seating.application.seating_service import SeatingService
from seating.domain.state_machine import SeatStatus
from seating.infrastructure.db.models import Seat


router = APIRouter(prefix="/v1/seats", tags=["seats"])
logger = logging.getLogger(__name__)


def get_seating_service(request: Request) -> SeatingService:
    return request.app.state.seating.service


def _seat_response(seat: Seat) -> SeatResponse:
    return SeatResponse(
        id=seat.id,
        event_id=seat.event_id,
        seat_number=seat.seat_number,
        row_number=seat.row_number,
        section=seat.section,
        type=seat.type,
        price=seat.price,
        status=seat.status,
        reserved_by=seat.reserved_by,
        order_id=seat.order_id,
        reserved_at=seat.reserved_at,
        reservation_expires_at=seat.reservation_expires_at,
        version=seat.version,
        created_at=seat.created_at,
        updated_at=seat.updated_at,
    )


@router.get("/health")
def health():
    return {"ok": True, "service": "seating-service"}


@router.get("/availability", response_model=SeatAvailabilityResponse)
def get_availability(
    event_id: int = Query(alias="eventId"),
    service: SeatingService = Depends(get_seating_service),
):
    availability = service.get_availability(event_id)
    return SeatAvailabilityResponse(
        event_id=availability.event_id,
        total_seats=availability.total,
        available_seats=availability.available,
        reserved_seats=availability.reserved,
        allocated_seats=availability.allocated,
        blocked_seats=availability.blocked,
        availability_by_section=availability.available_seats_by_section,
        available_seats_list=[_seat_response(seat) for seat in availability.available_seats],
    )


@router.get("", response_model=list[SeatResponse])
def list_seats(
    event_id: int = Query(alias="eventId"),
    status_filter: str | None = Query(default=None, alias="status"),
    service: SeatingService = Depends(get_seating_service),
):
    seat_status = None
    if status_filter:
        try:
            seat_status = SeatStatus(status_filter.upper())
        except ValueError:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Unknown seat status: {status_filter}",
            )
    return [_seat_response(seat) for seat in service.list_seats(event_id, seat_status)]


@router.get("/order/{order_id}", response_model=list[SeatResponse])
def list_seats_by_order(
    order_id: str,
    service: SeatingService = Depends(get_seating_service),
):
    return [_seat_response(seat) for seat in service.list_seats_by_order(order_id)]


@router.get("/{seat_id}", response_model=SeatResponse)
def get_seat(
    seat_id: int,
    service: SeatingService = Depends(get_seating_service),
):
    return _seat_response(service.get_seat(seat_id))


@router.post("/reserve", response_model=SeatReservationResponse)
def reserve_seats(
    request: SeatReservationRequest,
    service: SeatingService = Depends(get_seating_service),
):
    result = service.reserve(
        event_id=request.event_id,
        seat_ids=request.seat_ids,
        user_id=request.user_id,
        order_id=request.order_id,
    )
    return SeatReservationResponse(
        success=True,
        message="Seats reserved successfully",
        reservation_id=result.reservation_id,
        reserved_seats=[_seat_response(seat) for seat in result.reserved_seats],
        total_price=result.total_price,
        expires_at=result.expires_at,
    )


@router.post("/allocate", response_model=MessageResponse)
def allocate_seats(
    request: SeatAllocationRequest,
    service: SeatingService = Depends(get_seating_service),
):
    service.allocate(
        seat_ids=request.seat_ids,
        order_id=request.order_id,
        reservation_id=request.reservation_id,
    )
    return MessageResponse(message="Seats allocated successfully")


@router.post("/release", response_model=MessageResponse)
def release_seats(
    request: SeatReleaseRequest,
    service: SeatingService = Depends(get_seating_service),
):
    service.release(request.seat_ids)
    return MessageResponse(message="Seats released successfully")


@router.post("", response_model=SeatResponse, status_code=status.HTTP_201_CREATED)
def create_seat(
    request: SeatCreateRequest,
    service: SeatingService = Depends(get_seating_service),
):
    seat = service.create_seat(
        event_id=request.event_id,
        seat_number=request.seat_number,
        row_number=request.row_number,
        section=request.section,
        type=request.type,
        price=request.price,
    )
    return _seat_response(seat)


@router.patch("/{seat_id}/block", response_model=MessageResponse)
def block_seat(
    seat_id: int,
    service: SeatingService = Depends(get_seating_service),
):
    service.block(seat_id)
    return MessageResponse(message="Seat blocked successfully")


@router.patch("/{seat_id}/unblock", response_model=MessageResponse)
def unblock_seat(
    seat_id: int,
    service: SeatingService = Depends(get_seating_service),
):
    service.unblock(seat_id)
    return MessageResponse(message="Seat unblocked successfully")
