import threading
import time

from seating.infrastructure.scheduling.hold_timers import HoldTimers


def test_timer_runs_callback_with_args():
    timers = HoldTimers()
    fired = threading.Event()
    seen = []

    def callback(*args):
        seen.append(args)
        fired.set()

    timers.schedule("r-1", 0.01, callback, "r-1", [1, 2])

    assert fired.wait(5)
    assert seen == [("r-1", [1, 2])]
    assert "r-1" not in timers


def test_cancel_prevents_fire():
    timers = HoldTimers()
    fired = threading.Event()

    timers.schedule("r-1", 0.2, fired.set)

    assert timers.cancel("r-1") is True
    assert timers.cancel("r-1") is False
    assert not fired.wait(0.4)


def test_reschedule_replaces_pending_timer():
    timers = HoldTimers()
    calls = []
    done = threading.Event()

    def callback(label):
        calls.append(label)
        done.set()

    timers.schedule("r-1", 0.2, callback, "first")
    timers.schedule("r-1", 0.01, callback, "second")

    assert done.wait(5)
    time.sleep(0.3)
    assert calls == ["second"]
    assert len(timers) == 0


def test_cancel_all():
    timers = HoldTimers()
    for key in ("a", "b", "c"):
        timers.schedule(key, 60, lambda: None)

    assert len(timers) == 3
    assert timers.cancel_all() == 3
    assert len(timers) == 0
