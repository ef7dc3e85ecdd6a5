# seating/application/reservation_coordinator.py

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import TYPE_CHECKING, Sequence
from uuid import uuid4

from sqlalchemy.orm import Session, sessionmaker

from seating.domain.exceptions import (
    InvalidSeatRequestError,
    InvalidStateTransitionError,
    SeatConflictError,
    SeatingInternalError,
    SeatNotFoundError,
)
from seating.domain.state_machine import SeatStateMachine, SeatStatus
from seating.infrastructure.cache.hold_registry import Hold, HoldRegistry
from seating.infrastructure.db.models import Seat
from seating.infrastructure.repositories.seat_repository import seat_scope

if TYPE_CHECKING:
    from seating.application.expiry_scheduler import ExpiryScheduler

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    # SQLite hands timestamps back without tzinfo; they are stored as UTC.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _require_transition(seats: Sequence[Seat], to_status: SeatStatus, message: str) -> None:
    rejected = []
    for seat in seats:
        try:
            SeatStateMachine.validate_transition(seat.status, to_status)
        except InvalidStateTransitionError:
            rejected.append(seat.seat_number)

    if rejected:
        raise SeatConflictError(
            f"{message}: {', '.join(rejected)}",
            seat_numbers=rejected,
        )


@dataclass(frozen=True)
class ReservationResult:
    reservation_id: str
    reserved_seats: list[Seat]
    total_price: Decimal
    expires_at: datetime


class ReservationCoordinator:
    """
    Seat state transitions, each inside one short transaction.

    Multi-seat operations lock their rows through
    SeatRepository.find_by_ids_with_lock, the single place where the
    ascending-id lock order is decided. Every write that takes seats out
    of RESERVED also forgets the holds covering them, so no expiry timer
    fires for a hold that was confirmed or released.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        hold_registry: HoldRegistry,
        hold_duration_seconds: float = 900.0,
        hold_key_grace_seconds: float = 0.0,
        expiry: "ExpiryScheduler | None" = None,
    ):
        self.session_factory = session_factory
        self.hold_registry = hold_registry
        self.hold_duration = timedelta(seconds=hold_duration_seconds)
        self.hold_key_grace = timedelta(seconds=hold_key_grace_seconds)
        self.expiry = expiry

    def reserve(
        self,
        event_id: int,
        seat_ids: Sequence[int],
        user_id: int,
        order_id: str | None = None,
    ) -> ReservationResult:
        if not seat_ids:
            raise InvalidSeatRequestError("At least one seat must be requested")

        logger.info(
            "Reserving seats for event=%s seat_ids=%s user=%s",
            event_id,
            list(seat_ids),
            user_id,
        )

        with seat_scope(self.session_factory) as repo:
            seats = repo.find_by_ids_with_lock(seat_ids)

            if len(seats) != len(set(seat_ids)):
                missing = sorted(set(seat_ids) - {seat.id for seat in seats})
                raise SeatNotFoundError(f"Some seats not found: {missing}")

            if any(seat.event_id != event_id for seat in seats):
                raise InvalidSeatRequestError(
                    "All seats must belong to the same event"
                )

            _require_transition(seats, SeatStatus.RESERVED, "Seats are not available")

            now = _utc_now()
            expires_at = now + self.hold_duration
            for seat in seats:
                seat.status = SeatStatus.RESERVED
                seat.reserved_by = user_id
                seat.reserved_at = now
                seat.reservation_expires_at = expires_at

            committed = repo.save_all(seats)

        # Committed. Hold registration happens outside the transaction.
        reservation_id = str(uuid4())
        hold = Hold(
            user_id=user_id,
            event_id=event_id,
            seat_ids=[seat.id for seat in committed],
            expires_at=expires_at,
            order_id=order_id,
        )
        self.hold_registry.put(
            reservation_id,
            hold,
            ttl=self.hold_duration + self.hold_key_grace,
        )
        if self.expiry is not None:
            self.expiry.arm(reservation_id, self.hold_duration.total_seconds())

        total_price = sum((seat.price for seat in committed), Decimal("0"))
        logger.info(
            "Reserved %s seats for user=%s reservation=%s",
            len(committed),
            user_id,
            reservation_id,
        )
        return ReservationResult(
            reservation_id=reservation_id,
            reserved_seats=committed,
            total_price=total_price,
            expires_at=expires_at,
        )

    def allocate(
        self,
        seat_ids: Sequence[int],
        order_id: str,
        reservation_id: str | None = None,
    ) -> None:
        if not seat_ids:
            raise InvalidSeatRequestError("At least one seat must be requested")

        logger.info("Allocating seats %s for order=%s", list(seat_ids), order_id)

        with seat_scope(self.session_factory) as repo:
            seats = repo.find_by_ids_with_lock(seat_ids)

            if len(seats) != len(set(seat_ids)):
                missing = sorted(set(seat_ids) - {seat.id for seat in seats})
                raise SeatNotFoundError(f"Some seats not found: {missing}")

            _require_transition(
                seats,
                SeatStatus.ALLOCATED,
                "Some seats are not in reserved status",
            )

            # reserved_by / reserved_at stay as provenance of the hold.
            for seat in seats:
                seat.status = SeatStatus.ALLOCATED
                seat.order_id = order_id
                seat.reservation_expires_at = None

            repo.save_all(seats)

        self._forget_holds(seat_ids, reservation_id)
        logger.info("Allocated %s seats for order=%s", len(seats), order_id)

    def release(self, seat_ids: Sequence[int]) -> int:
        """
        Reset every existing seat in `seat_ids` to AVAILABLE, whatever its
        current status. Unknown ids are ignored. Returns how many rows
        actually changed, so a repeated release returns 0.
        """
        logger.info("Releasing seats %s", list(seat_ids))

        with seat_scope(self.session_factory) as repo:
            seats = repo.find_by_ids_with_lock(seat_ids)
            if not seats:
                logger.info("No seats found to release for ids: %s", list(seat_ids))
                return 0

            versions = {seat.id: seat.version for seat in seats}
            for seat in seats:
                seat.status = SeatStatus.AVAILABLE
                seat.clear_reservation()

            repo.save_all(seats)
            changed = sum(1 for seat in seats if seat.version != versions[seat.id])

        self._forget_holds([seat.id for seat in seats])
        logger.info("Released %s seats (%s changed)", len(seats), changed)
        return changed

    def release_hold(self, reservation_id: str, hold: Hold) -> int:
        """
        Expiry path for one hold. Only seats still carrying this hold
        (RESERVED by the same user with the same expiry) go back to
        AVAILABLE; seats allocated, released or held again since are left
        alone. The hold is forgotten either way.
        """
        with seat_scope(self.session_factory) as repo:
            seats = repo.find_by_ids_with_lock(hold.seat_ids)
            still_held = [
                seat
                for seat in seats
                if seat.status == SeatStatus.RESERVED
                and seat.reserved_by == hold.user_id
                and seat.reservation_expires_at is not None
                and _as_utc(seat.reservation_expires_at) == _as_utc(hold.expires_at)
            ]
            for seat in still_held:
                seat.status = SeatStatus.AVAILABLE
                seat.clear_reservation()

            repo.save_all(still_held)

        self.hold_registry.forget(reservation_id)
        return len(still_held)

    def block(self, seat_id: int) -> Seat:
        return self._override_status(seat_id, SeatStatus.BLOCKED)

    def unblock(self, seat_id: int) -> Seat:
        return self._override_status(seat_id, SeatStatus.AVAILABLE)

    def _override_status(self, seat_id: int, status: SeatStatus) -> Seat:
        logger.info("Setting seat %s to %s", seat_id, status.value)

        with seat_scope(self.session_factory) as repo:
            seat = repo.find_by_id_with_lock(seat_id)
            if seat is None:
                raise SeatNotFoundError(f"Seat not found with id: {seat_id}")

            seat.status = status
            seat.clear_reservation()
            repo.save_all([seat])

        self._forget_holds([seat_id])
        return seat

    def _forget_holds(
        self,
        seat_ids: Sequence[int],
        reservation_id: str | None = None,
    ) -> None:
        try:
            reservation_ids = self.hold_registry.reservations_for_seats(seat_ids)
            if reservation_id is not None:
                reservation_ids.add(reservation_id)

            for covering_id in sorted(reservation_ids):
                if self.expiry is not None:
                    self.expiry.disarm(covering_id)
                self.hold_registry.forget(covering_id)
                logger.debug("Forgot hold %s", covering_id)
        except SeatingInternalError:
            # Seats are already written. A leftover timer only resets seats
            # that still carry its hold, and the keys run out on their TTL.
            logger.warning(
                "Could not remove holds for seats %s",
                list(seat_ids),
                exc_info=True,
            )
