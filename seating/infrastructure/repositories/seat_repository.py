# seating/infrastructure/repositories/seat_repository.py

from contextlib import contextmanager
from datetime import datetime
from typing import Iterable, Iterator, Sequence

from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from seating.domain.exceptions import SeatConflictError, SeatingInternalError
from seating.domain.state_machine import SeatStatus
from seating.infrastructure.db.models import Seat
from seating.infrastructure.db.session import transaction


class SeatRepository:

    def __init__(self, db: Session):
        self.db = db

    def find_by_id(self, seat_id: int) -> Seat | None:
        return self.db.get(Seat, seat_id)

    def find_by_ids(self, seat_ids: Iterable[int]) -> list[Seat]:
        stmt = select(Seat).where(Seat.id.in_(set(seat_ids))).order_by(Seat.id)
        return list(self.db.execute(stmt).scalars().all())

    def find_by_ids_with_lock(self, seat_ids: Iterable[int]) -> list[Seat]:
        """
        SELECT ... ORDER BY id FOR UPDATE

        Every multi-row write goes through here, so rows are always
        locked in ascending id order and overlapping requests cannot
        deadlock each other.
        """
        ordered_ids = sorted(set(seat_ids))
        if not ordered_ids:
            return []

        stmt = (
            select(Seat)
            .where(Seat.id.in_(ordered_ids))
            .order_by(Seat.id)
            .with_for_update()
        )
        return list(self.db.execute(stmt).scalars().all())

    def find_by_id_with_lock(self, seat_id: int) -> Seat | None:
        locked = self.find_by_ids_with_lock([seat_id])
        return locked[0] if locked else None

    def find_by_event_id(self, event_id: int) -> list[Seat]:
        stmt = (
            select(Seat)
            .where(Seat.event_id == event_id)
            .order_by(Seat.row_number, Seat.seat_number)
        )
        return list(self.db.execute(stmt).scalars().all())

    def find_by_event_id_and_status(
        self,
        event_id: int,
        status: SeatStatus,
    ) -> list[Seat]:
        stmt = (
            select(Seat)
            .where(Seat.event_id == event_id)
            .where(Seat.status == status)
            .order_by(Seat.row_number, Seat.seat_number)
        )
        return list(self.db.execute(stmt).scalars().all())

    def find_by_order_id(self, order_id: str) -> list[Seat]:
        stmt = select(Seat).where(Seat.order_id == order_id).order_by(Seat.id)
        return list(self.db.execute(stmt).scalars().all())

    def find_expired_reservations(self, now: datetime) -> list[Seat]:
        stmt = (
            select(Seat)
            .where(Seat.status == SeatStatus.RESERVED)
            .where(Seat.reservation_expires_at < now)
            .order_by(Seat.id)
        )
        return list(self.db.execute(stmt).scalars().all())

    def create(self, seat: Seat) -> Seat:
        self.db.add(seat)
        self.db.flush()
        return seat

    def save_all(self, seats: Sequence[Seat]) -> list[Seat]:
        # The mapper's version counter bumps `version` once per changed row.
        self.db.add_all(seats)
        self.db.flush()
        return list(seats)

    def bulk_reset_expired_to_available(self, now: datetime) -> int:
        """
        Single UPDATE returning every expired hold to AVAILABLE.
        Rows already reset by another path no longer match the filter.
        """
        stmt = (
            update(Seat)
            .where(Seat.status == SeatStatus.RESERVED)
            .where(Seat.reservation_expires_at < now)
            .values(
                status=SeatStatus.AVAILABLE,
                reserved_by=None,
                order_id=None,
                reserved_at=None,
                reservation_expires_at=None,
                version=Seat.version + 1,
                updated_at=func.now(),
            )
            .execution_options(synchronize_session=False)
        )
        result = self.db.execute(stmt)
        return result.rowcount or 0


@contextmanager
def seat_scope(session_factory: sessionmaker[Session]) -> Iterator[SeatRepository]:
    """
    One transaction around a SeatRepository. Store failures surface as
    domain errors: a stale version as a conflict, anything else as internal.
    """
    try:
        with transaction(session_factory) as db:
            yield SeatRepository(db)
    except StaleDataError as exc:
        raise SeatConflictError(
            "Seats were modified by a concurrent request"
        ) from exc
    except SQLAlchemyError as exc:
        raise SeatingInternalError("Seat store failure") from exc
