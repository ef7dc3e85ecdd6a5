import logging
from decimal import Decimal
from typing import Sequence

from sqlalchemy.orm import Session, sessionmaker

from seating.application.availability import Availability, AvailabilityProjector
from seating.application.reservation_coordinator import (
    ReservationCoordinator,
    ReservationResult,
)
from seating.domain.exceptions import InvalidSeatRequestError, SeatNotFoundError
from seating.domain.state_machine import SeatStatus, SeatType
from seating.infrastructure.db.models import Seat
from seating.infrastructure.repositories.seat_repository import seat_scope

logger = logging.getLogger(__name__)


class SeatingService:
    """Application service coordinating seat queries, catalog and reservations."""

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        coordinator: ReservationCoordinator,
        projector: AvailabilityProjector,
    ):
        self.session_factory = session_factory
        self.coordinator = coordinator
        self.projector = projector

    def get_availability(self, event_id: int) -> Availability:
        logger.info("Fetching seat availability for event: %s", event_id)
        return self.projector.availability(event_id)

    def list_seats(self, event_id: int, status: SeatStatus | None = None) -> list[Seat]:
        logger.info("Fetching seats for event: %s, status: %s", event_id, status)
        with seat_scope(self.session_factory) as repo:
            if status is not None:
                return repo.find_by_event_id_and_status(event_id, status)
            return repo.find_by_event_id(event_id)

    def get_seat(self, seat_id: int) -> Seat:
        with seat_scope(self.session_factory) as repo:
            seat = repo.find_by_id(seat_id)
        if seat is None:
            raise SeatNotFoundError(f"Seat not found with id: {seat_id}")
        return seat

    def list_seats_by_order(self, order_id: str) -> list[Seat]:
        with seat_scope(self.session_factory) as repo:
            seats = repo.find_by_order_id(order_id)
        if not seats:
            raise SeatNotFoundError(f"No seats found for order: {order_id}")
        return seats

    def reserve(
        self,
        event_id: int,
        seat_ids: Sequence[int],
        user_id: int,
        order_id: str | None = None,
    ) -> ReservationResult:
        return self.coordinator.reserve(event_id, seat_ids, user_id, order_id)

    def allocate(
        self,
        seat_ids: Sequence[int],
        order_id: str,
        reservation_id: str | None = None,
    ) -> None:
        self.coordinator.allocate(seat_ids, order_id, reservation_id)

    def release(self, seat_ids: Sequence[int]) -> int:
        return self.coordinator.release(seat_ids)

    def block(self, seat_id: int) -> Seat:
        return self.coordinator.block(seat_id)

    def unblock(self, seat_id: int) -> Seat:
        return self.coordinator.unblock(seat_id)

    def create_seat(
        self,
        event_id: int,
        seat_number: str,
        row_number: str,
        section: str,
        price: Decimal,
        type: SeatType = SeatType.REGULAR,
    ) -> Seat:
        if price < 0:
            raise InvalidSeatRequestError("Seat price must not be negative")

        logger.info("Creating new seat for event: %s", event_id)
        with seat_scope(self.session_factory) as repo:
            seat = repo.create(
                Seat(
                    event_id=event_id,
                    seat_number=seat_number,
                    row_number=row_number,
                    section=section,
                    type=type,
                    price=price,
                    status=SeatStatus.AVAILABLE,
                )
            )
        logger.info("Seat created with ID: %s", seat.id)
        return seat
