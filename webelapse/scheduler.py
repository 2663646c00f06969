"""Deferred invocation of the next capture cycle."""

from __future__ import annotations

import itertools
import threading
from collections.abc import Callable
from dataclasses import dataclass, field


@dataclass
class ScheduledCall:
    """Handle for one armed call."""

    delay: float
    callback: Callable[[], None]
    cancelled: bool = False
    _timer: threading.Timer | None = field(default=None, repr=False)

    def cancel(self) -> None:
        self.cancelled = True
        if self._timer is not None:
            self._timer.cancel()


class TimerScheduler:
    """Arms calls on daemon ``threading.Timer`` threads."""

    def call_later(self, delay: float, callback: Callable[[], None]) -> ScheduledCall:
        handle = ScheduledCall(delay=float(delay), callback=callback)

        def _fire() -> None:
            if not handle.cancelled:
                callback()

        timer = threading.Timer(max(0.0, float(delay)), _fire)
        timer.daemon = True
        handle._timer = timer
        timer.start()
        return handle


class ManualScheduler:
    """Scheduler driven by hand; calls only run when ``run_next`` is invoked.

    Keeps a virtual clock so the sequence of delays can be inspected.
    """

    def __init__(self) -> None:
        self.now = 0.0
        self._seq = itertools.count()
        self._pending: list[tuple[float, int, ScheduledCall]] = []
        self.history: list[float] = []

    @property
    def pending(self) -> list[ScheduledCall]:
        return [entry[2] for entry in sorted(self._pending) if not entry[2].cancelled]

    def call_later(self, delay: float, callback: Callable[[], None]) -> ScheduledCall:
        handle = ScheduledCall(delay=float(delay), callback=callback)
        self._pending.append((self.now + float(delay), next(self._seq), handle))
        self.history.append(float(delay))
        return handle

    def run_next(self) -> bool:
        """Advance the clock to the earliest live call and run it."""
        live = sorted(entry for entry in self._pending if not entry[2].cancelled)
        self._pending = live
        if not live:
            return False
        due, _, handle = live[0]
        self._pending = live[1:]
        self.now = max(self.now, due)
        handle.callback()
        return True
