"""
Rate-limited, monotonic delivery of :class:`SessionProgress` events.
"""
from __future__ import annotations

import dataclasses
import time
from typing import Callable, Optional

from .constants import PROGRESS_INTERVAL
from .models import Phase, SessionProgress

ProgressCallback = Callable[[SessionProgress], None]


class ProgressReporter:
    """
    Forwards progress events to a consumer callback.

    * At most one event per ``interval`` seconds unless ``force`` is set.
    * ``overall_progress`` never decreases and never exceeds 100.
    * Nothing is delivered after the ``complete`` event or after :meth:`close`.
    """

    def __init__(
        self,
        callback: ProgressCallback,
        interval: float = PROGRESS_INTERVAL,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._callback = callback
        self.interval = interval
        self._clock = clock
        self._last_emit: Optional[float] = None
        self._high = 0.0
        self.completed = False
        self.closed = False
        self.delivered = 0

    def report(self, progress: SessionProgress, force: bool = False) -> bool:
        """Deliver *progress* if the rate limit allows.  Returns ``True`` if sent."""
        if self.completed or self.closed:
            return False

        now = self._clock()
        if (
            not force
            and self._last_emit is not None
            and now - self._last_emit < self.interval
        ):
            return False

        overall = max(self._high, min(progress.overall_progress, 100.0))
        if overall != progress.overall_progress:
            progress = dataclasses.replace(progress, overall_progress=overall)
        self._high = overall
        self._last_emit = now
        self.delivered += 1

        if progress.phase is Phase.COMPLETE:
            self.completed = True
        self._callback(progress)
        return True

    def close(self) -> None:
        """Drop every later event (used on cancellation)."""
        self.closed = True
