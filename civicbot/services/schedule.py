# File: civicbot/services/schedule.py
# Project: civic-report-bot
"""
Quarter-hour guard for the admin new-issue digest.

It is driven by incoming events rather than a clock: ``check_and_fire`` is
called when something happens and answers whether this is the first call in
the current quarter-hour boundary minute (:00, :15, :30, :45). A quiet period
that spans a boundary does not fire until the next event arrives.
"""
import threading
from datetime import datetime

BOUNDARY_MINUTES = (0, 15, 30, 45)


class QuarterHourGuard:
    def __init__(self):
        self._lock = threading.Lock()
        self._last_fired: int | None = None

    def check_and_fire(self, minute: int | None = None) -> bool:
        if minute is None:
            minute = datetime.now().minute
        with self._lock:
            if minute not in BOUNDARY_MINUTES:
                # re-arm for the next boundary
                self._last_fired = None
                return False
            if minute == self._last_fired:
                return False
            self._last_fired = minute
            return True

    def reset(self) -> None:
        with self._lock:
            self._last_fired = None
