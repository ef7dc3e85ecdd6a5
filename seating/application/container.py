# seating/application/container.py

import logging

from sqlalchemy.orm import Session, sessionmaker

from seating.application.availability import AvailabilityProjector
from seating.application.expiry_scheduler import ExpiryScheduler
from seating.application.reservation_coordinator import ReservationCoordinator
from seating.application.seating_service import SeatingService
from seating.config import Settings
from seating.infrastructure.cache.hold_registry import HoldRegistry

logger = logging.getLogger(__name__)


class SeatingEngine:
    """
    Explicitly constructed reservation engine: hold cache, expiry
    scheduler, coordinator and service, with one start/stop lifecycle.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        hold_registry: HoldRegistry,
        settings: Settings,
    ):
        self.settings = settings
        self.hold_registry = hold_registry
        self.coordinator = ReservationCoordinator(
            session_factory,
            hold_registry,
            hold_duration_seconds=settings.hold_duration_seconds,
            hold_key_grace_seconds=settings.hold_key_grace_seconds,
        )
        self.scheduler = ExpiryScheduler(
            session_factory,
            hold_registry,
            release_hold=self.coordinator.release_hold,
            sweep_interval_seconds=settings.sweep_interval_seconds,
        )
        self.coordinator.expiry = self.scheduler
        self.service = SeatingService(
            session_factory,
            self.coordinator,
            AvailabilityProjector(session_factory),
        )

    def start(self) -> None:
        if not self.hold_registry.ping():
            logger.warning("Redis not reachable; holds will only expire through the sweep")
        self.scheduler.start()

    def stop(self) -> None:
        self.scheduler.stop()
        self.hold_registry.close()
