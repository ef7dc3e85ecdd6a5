import os

# Must be set before seating modules build their module-level engine.
os.environ.setdefault("DATABASE_URL", "sqlite://")

import threading
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
import redis
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.pool import StaticPool

from seating.application.availability import AvailabilityProjector
from seating.application.container import SeatingEngine
from seating.application.expiry_scheduler import ExpiryScheduler
from seating.application.reservation_coordinator import ReservationCoordinator
from seating.application.seating_service import SeatingService
from seating.config import Settings
from seating.domain.state_machine import SeatStatus, SeatType
from seating.infrastructure.cache.hold_registry import HoldRegistry
from seating.infrastructure.db.models import Base, Seat
from seating.infrastructure.db.session import build_session_factory
from seating.main import app


class InMemoryRedis:
    """Subset of redis.Redis used by HoldRegistry. TTLs are recorded, not enforced."""

    def __init__(self):
        self.values: dict[str, str] = {}
        self.ttls: dict[str, timedelta] = {}
        self.fail = False
        self.closed = False
        self._lock = threading.Lock()

    def _check(self):
        if self.fail:
            raise redis.ConnectionError("redis unavailable")

    def ping(self):
        self._check()
        return True

    def set(self, name, value, px=None):
        self._check()
        with self._lock:
            self.values[name] = value
            if px is not None:
                self.ttls[name] = px
        return True

    def get(self, name):
        self._check()
        with self._lock:
            return self.values.get(name)

    def delete(self, *names):
        self._check()
        with self._lock:
            removed = 0
            for name in names:
                if self.values.pop(name, None) is not None:
                    removed += 1
                self.ttls.pop(name, None)
            return removed

    def expire_now(self, name):
        with self._lock:
            self.values.pop(name, None)
            self.ttls.pop(name, None)

    def close(self):
        self.closed = True


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def file_engine(tmp_path):
    # Separate connections per thread, for concurrent transactions.
    engine = create_engine(
        f"sqlite:///{tmp_path / 'seats.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )

    # SQLite has no row locks: take the write lock at BEGIN so
    # transactions serialize the way FOR UPDATE makes them on Postgres.
    @event.listens_for(engine, "connect")
    def _disable_driver_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
def redis_client():
    return InMemoryRedis()


@pytest.fixture
def hold_registry(redis_client):
    return HoldRegistry(redis_client)


@pytest.fixture
def coordinator(session_factory, hold_registry):
    return ReservationCoordinator(
        session_factory,
        hold_registry,
        hold_duration_seconds=900,
        hold_key_grace_seconds=5,
    )


@pytest.fixture
def scheduler(session_factory, hold_registry, coordinator):
    scheduler = ExpiryScheduler(
        session_factory,
        hold_registry,
        release_hold=coordinator.release_hold,
        sweep_interval_seconds=60,
    )
    yield scheduler
    scheduler.stop()


@pytest.fixture
def service(session_factory, coordinator):
    return SeatingService(
        session_factory,
        coordinator,
        AvailabilityProjector(session_factory),
    )


@pytest.fixture
def test_settings():
    return Settings(
        database_url="sqlite://",
        redis_url="redis://localhost:6379/15",
        hold_duration_seconds=900,
        hold_key_grace_seconds=5,
        sweep_interval_seconds=60,
        db_connect_max_retries=1,
        db_connect_retry_delay=0,
        log_level="INFO",
    )


@pytest.fixture
def seating_engine(session_factory, hold_registry, test_settings):
    seating = SeatingEngine(session_factory, hold_registry, test_settings)
    yield seating
    seating.scheduler.stop()


class SeatWriter:
    """Direct seat table access for arranging and inspecting test state."""

    def __init__(self, session_factory):
        self.session_factory = session_factory

    def add(
        self,
        event_id,
        seat_numbers,
        price=Decimal("50.00"),
        section="A",
        row_number="1",
    ):
        with self.session_factory() as db:
            seats = [
                Seat(
                    event_id=event_id,
                    seat_number=str(number),
                    row_number=row_number,
                    section=section,
                    type=SeatType.REGULAR,
                    price=price,
                    status=SeatStatus.AVAILABLE,
                )
                for number in seat_numbers
            ]
            db.add_all(seats)
            db.commit()
            return [seat.id for seat in seats]

    def get(self, seat_id):
        with self.session_factory() as db:
            return db.get(Seat, seat_id)

    def hold_expired(self, seat_id, user_id=7, minutes_ago=5):
        """Put a seat in RESERVED with an expiry in the past, no timer involved."""
        past = datetime.now(timezone.utc) - timedelta(minutes=minutes_ago)
        with self.session_factory() as db:
            seat = db.get(Seat, seat_id)
            seat.status = SeatStatus.RESERVED
            seat.reserved_by = user_id
            seat.reserved_at = past - timedelta(minutes=15)
            seat.reservation_expires_at = past
            db.commit()


@pytest.fixture
def seats(session_factory):
    return SeatWriter(session_factory)


@pytest.fixture
def file_session_factory(file_engine):
    return build_session_factory(file_engine)


@pytest.fixture
def file_seats(file_session_factory):
    return SeatWriter(file_session_factory)


@pytest.fixture
def file_coordinator(file_session_factory, hold_registry):
    return ReservationCoordinator(
        file_session_factory,
        hold_registry,
        hold_duration_seconds=900,
        hold_key_grace_seconds=5,
    )


@pytest.fixture
def client(seating_engine):
    # Startup is skipped: the test engine is installed directly.
    app.state.seating = seating_engine
    yield TestClient(app)
    del app.state.seating
