from decimal import Decimal

from sqlalchemy import select

from seating.domain.state_machine import SeatStatus, SeatType
from seating.infrastructure.db.models import Base, Seat
from seating.infrastructure.db.session import SessionLocal, engine


def seed_event(db, event_id: int, sections: list[dict]) -> int:
    created = 0
    for section in sections:
        for row_number in section["rows"]:
            for seat_number in range(1, section["seats_per_row"] + 1):
                existing = db.execute(
                    select(Seat)
                    .where(Seat.event_id == event_id)
                    .where(Seat.section == section["name"])
                    .where(Seat.row_number == row_number)
                    .where(Seat.seat_number == str(seat_number))
                ).scalar_one_or_none()
                if existing:
                    existing.price = section["price"]
                    existing.type = section["type"]
                    continue

                db.add(
                    Seat(
                        event_id=event_id,
                        section=section["name"],
                        row_number=row_number,
                        seat_number=str(seat_number),
                        type=section["type"],
                        price=section["price"],
                        status=SeatStatus.AVAILABLE,
                    )
                )
                created += 1
    return created


def main() -> None:
    Base.metadata.create_all(bind=engine)

    events = {
        1: [
            {"name": "Floor", "rows": ["A", "B"], "seats_per_row": 10,
             "type": SeatType.VIP, "price": Decimal("250.00")},
            {"name": "Lower", "rows": ["C", "D", "E"], "seats_per_row": 12,
             "type": SeatType.PREMIUM, "price": Decimal("120.00")},
            {"name": "Upper", "rows": ["F", "G", "H"], "seats_per_row": 15,
             "type": SeatType.REGULAR, "price": Decimal("50.00")},
        ],
        2: [
            {"name": "Balcony", "rows": ["A", "B"], "seats_per_row": 20,
             "type": SeatType.ECONOMY, "price": Decimal("25.00")},
        ],
    }

    db = SessionLocal()
    try:
        created = sum(seed_event(db, event_id, sections) for event_id, sections in events.items())
        db.commit()
        print(f"Seed complete: {created} seats added across {len(events)} events.")
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


if __name__ == "__main__":
    main()
