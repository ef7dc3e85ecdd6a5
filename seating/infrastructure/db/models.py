# seating/infrastructure/db/models.py

from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    DateTime,
    Enum,
    Index,
    Integer,
    Numeric,
    String,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column

from seating.domain.state_machine import SeatStatus, SeatType
from seating.infrastructure.db.session import Base


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Seat(Base):
    """
    One row per ticketed seat.
    Reservation state lives on the row; `version` is bumped by the ORM
    on every UPDATE and checked against the row it loaded.
    """

    __tablename__ = "seats"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    event_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    seat_number: Mapped[str] = mapped_column(String(10), nullable=False)
    row_number: Mapped[str] = mapped_column(String(10), nullable=False)
    section: Mapped[str] = mapped_column(String(50), nullable=False)
    type: Mapped[SeatType] = mapped_column(
        Enum(SeatType, name="seat_type", native_enum=False, length=20),
        nullable=False,
        default=SeatType.REGULAR,
    )
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    status: Mapped[SeatStatus] = mapped_column(
        Enum(SeatStatus, name="seat_status", native_enum=False, length=20),
        nullable=False,
        default=SeatStatus.AVAILABLE,
    )
    reserved_by: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    order_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    reserved_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    reservation_expires_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    version: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=_utc_now,
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=_utc_now,
        server_default=func.now(),
        onupdate=_utc_now,
        nullable=False,
    )

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        CheckConstraint("price >= 0", name="ck_seat_price_nonnegative"),
        Index("idx_seats_event_id", "event_id"),
        Index("idx_seats_status", "status"),
        Index("idx_seats_event_status", "event_id", "status"),
        Index("idx_seats_order_id", "order_id"),
    )

    def clear_reservation(self) -> None:
        self.reserved_by = None
        self.order_id = None
        self.reserved_at = None
        self.reservation_expires_at = None

    def __repr__(self) -> str:
        return (
            f"<Seat id={self.id} event={self.event_id} "
            f"{self.section}/{self.row_number}/{self.seat_number} {self.status.value}>"
        )
