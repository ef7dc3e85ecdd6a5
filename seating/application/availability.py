# seating/application/availability.py

from collections import Counter
from dataclasses import dataclass, field

from sqlalchemy.orm import Session, sessionmaker

from seating.domain.exceptions import SeatNotFoundError
from seating.domain.state_machine import SeatStatus
from seating.infrastructure.db.models import Seat
from seating.infrastructure.repositories.seat_repository import seat_scope


@dataclass(frozen=True)
class Availability:
    event_id: int
    total: int
    available: int
    reserved: int
    allocated: int
    blocked: int
    available_seats_by_section: dict[str, int] = field(default_factory=dict)
    available_seats: list[Seat] = field(default_factory=list)


class AvailabilityProjector:
    """
    Seat counts for one event from a single unlocked read.
    Advisory only: concurrent writers may change the numbers right after.
    """

    def __init__(self, session_factory: sessionmaker[Session]):
        self.session_factory = session_factory

    def availability(self, event_id: int) -> Availability:
        with seat_scope(self.session_factory) as repo:
            seats = repo.find_by_event_id(event_id)

        if not seats:
            raise SeatNotFoundError(f"No seats found for event: {event_id}")

        by_status = Counter(seat.status for seat in seats)
        available_seats = [seat for seat in seats if seat.status == SeatStatus.AVAILABLE]

        return Availability(
            event_id=event_id,
            total=len(seats),
            available=by_status[SeatStatus.AVAILABLE],
            reserved=by_status[SeatStatus.RESERVED],
            allocated=by_status[SeatStatus.ALLOCATED],
            blocked=by_status[SeatStatus.BLOCKED],
            available_seats_by_section=dict(
                Counter(seat.section for seat in available_seats)
            ),
            available_seats=available_seats,
        )
