"""
Reclaims abandoned seat holds.

Two independent paths:

- a one-shot timer per reservation, armed when the hold commits. On fire it
  reads the hold back and releases only the seats that still carry it (an
  allocated or released hold has already been removed);
- a periodic sweep over the seat table that resets every RESERVED seat whose
  expiry has passed. Timers die with the process; the sweep does not, so it
  is the backstop.

Both paths are idempotent: a seat already back to AVAILABLE no longer
matches either of them.
"""
import logging
import threading
from datetime import datetime, timezone
from typing import Callable

from sqlalchemy.orm import Session, sessionmaker

from seating.infrastructure.cache.hold_registry import Hold, HoldRegistry
from seating.infrastructure.repositories.seat_repository import seat_scope
from seating.infrastructure.scheduling.hold_timers import HoldTimers

logger = logging.getLogger(__name__)

ReleaseHold = Callable[[str, Hold], int]


class ExpiryScheduler:
    """Background expiry of seat holds"""

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        hold_registry: HoldRegistry,
        release_hold: ReleaseHold,
        sweep_interval_seconds: float = 60.0,
        timers: HoldTimers | None = None,
    ):
        self.session_factory = session_factory
        self.hold_registry = hold_registry
        self.release_hold = release_hold
        self.sweep_interval_seconds = sweep_interval_seconds
        self.timers = timers or HoldTimers()
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    # -----------------------------
    # Per-hold timer
    # -----------------------------
    def arm(self, reservation_id: str, delay_seconds: float) -> None:
        self.timers.schedule(
            reservation_id,
            delay_seconds,
            self.expire_hold,
            reservation_id,
        )
        logger.debug(
            "Armed expiry timer for reservation %s in %.1fs",
            reservation_id,
            delay_seconds,
        )

    def disarm(self, reservation_id: str) -> bool:
        return self.timers.cancel(reservation_id)

    def expire_hold(self, reservation_id: str) -> bool:
        """
        Timer callback. Returns True when the hold was still registered and
        has been handled, even if none of its seats still carried it.
        Failures are logged only; the sweep catches whatever this misses.
        """
        try:
            hold = self.hold_registry.get(reservation_id)
            if hold is None:
                logger.debug(
                    "Reservation %s already confirmed or released",
                    reservation_id,
                )
                return False

            released = self.release_hold(reservation_id, hold)
        except Exception:
            logger.exception(
                "Error releasing expired reservation %s",
                reservation_id,
            )
            return False

        logger.info(
            "Expired reservation %s released automatically (%s seats reset)",
            reservation_id,
            released,
        )
        return True

    # -----------------------------
    # Periodic sweep
    # -----------------------------
    def sweep(self, now: datetime | None = None) -> int:
        now = now or datetime.now(timezone.utc)
        with seat_scope(self.session_factory) as repo:
            released = repo.bulk_reset_expired_to_available(now)

        if released > 0:
            logger.info("Released %s expired reservations", released)
        return released

    def _sweep_tick(self) -> None:
        try:
            self.sweep()
        except Exception:
            logger.exception(
                "Error releasing expired reservations; retrying in %.0fs",
                self.sweep_interval_seconds,
            )

    def _run(self) -> None:
        self._sweep_tick()
        while not self._stop_event.wait(self.sweep_interval_seconds):
            self._sweep_tick()

    # -----------------------------
    # Lifecycle
    # -----------------------------
    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            logger.warning("Expiry scheduler already running")
            return

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._run,
            name="seat-expiry-sweep",
            daemon=True,
        )
        self._thread.start()
        logger.info(
            "Expiry scheduler started (sweep interval: %.0fs)",
            self.sweep_interval_seconds,
        )

    def stop(self, timeout: float | None = 5.0) -> None:
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
        cancelled = self.timers.cancel_all()
        logger.info("Expiry scheduler stopped (%s pending timers cancelled)", cancelled)
