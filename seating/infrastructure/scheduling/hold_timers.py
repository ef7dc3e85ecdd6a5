# seating/infrastructure/scheduling/hold_timers.py

import logging
import threading
from typing import Any, Callable

logger = logging.getLogger(__name__)


class HoldTimers:
    """
    One-shot timers keyed by an opaque id.

    Scheduling an id that is already pending replaces the earlier timer.
    A fired timer removes itself before running its callback.
    """

    def __init__(self):
        self._timers: dict[str, threading.Timer] = {}
        self._lock = threading.Lock()

    def schedule(
        self,
        key: str,
        delay_seconds: float,
        callback: Callable[..., Any],
        *args: Any,
    ) -> None:
        timer = threading.Timer(
            max(delay_seconds, 0.0),
            self._fire,
            args=(key, callback, args),
        )
        timer.daemon = True
        timer.name = f"hold-timer-{key}"

        with self._lock:
            previous = self._timers.pop(key, None)
            self._timers[key] = timer
        if previous is not None:
            previous.cancel()
        timer.start()

    def cancel(self, key: str) -> bool:
        with self._lock:
            timer = self._timers.pop(key, None)
        if timer is None:
            return False
        timer.cancel()
        return True

    def cancel_all(self) -> int:
        with self._lock:
            timers = list(self._timers.values())
            self._timers.clear()
        for timer in timers:
            timer.cancel()
        return len(timers)

    def __contains__(self, key: str) -> bool:
        with self._lock:
            return key in self._timers

    def __len__(self) -> int:
        with self._lock:
            return len(self._timers)

    def _fire(self, key: str, callback: Callable[..., Any], args: tuple) -> None:
        with self._lock:
            current = self._timers.get(key)
            if current is threading.current_thread():
                del self._timers[key]
        callback(*args)
