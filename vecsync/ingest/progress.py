# vecsync/ingest/progress.py
"""
Progress reporting for indexing runs.

Each phase owns a slice of the 0-100 range. A ProgressReporter belongs to a
single run, so throttling state is never shared between concurrent runs.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Optional, Tuple

from vecsync.logging import get_logger
from vecsync.logging.tags import INDEX

logger = get_logger(__name__)


class IndexPhase(str, Enum):
    SCANNING = "scanning"
    CHUNKING = "chunking"
    EMBEDDING = "embedding"
    UPSERTING = "upserting"
    FINALIZING = "finalizing"


PHASE_RANGES: Dict[IndexPhase, Tuple[float, float]] = {
    IndexPhase.SCANNING: (0.0, 10.0),
    IndexPhase.CHUNKING: (10.0, 30.0),
    IndexPhase.EMBEDDING: (30.0, 95.0),
    IndexPhase.UPSERTING: (30.0, 95.0),
    IndexPhase.FINALIZING: (95.0, 100.0),
}


@dataclass(frozen=True)
class ProgressEvent:
    phase: IndexPhase
    percentage: float
    message: str = ""


ProgressCallback = Callable[[ProgressEvent], None]


class ProgressReporter:
    """
    Throttled progress callback wrapper.

    At most one event is delivered per `interval` seconds. The terminal
    100% event from complete() is always delivered. Percentages never go
    backwards, and an exception raised by the callback is logged and
    otherwise ignored.
    """

    def __init__(
        self,
        callback: Optional[ProgressCallback],
        interval: float = 0.5,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._callback = callback
        self._interval = interval
        self._clock = clock
        self._last_emit: Optional[float] = None
        self._percentage = 0.0
        self._completed = False
        self._lock = threading.Lock()

    @property
    def percentage(self) -> float:
        return self._percentage

    def report(self, phase: IndexPhase, fraction: float, message: str = "") -> None:
        """Report progress as a 0..1 fraction of the phase's range."""
        lo, hi = PHASE_RANGES[phase]
        fraction = min(max(fraction, 0.0), 1.0)
        self._emit(phase, lo + (hi - lo) * fraction, message, force=False)

    def complete(self, message: str = "Indexing complete") -> None:
        """Deliver the terminal 100% event exactly once."""
        self._emit(IndexPhase.FINALIZING, 100.0, message, force=True)

    def _emit(self, phase: IndexPhase, percentage: float, message: str, force: bool) -> None:
        with self._lock:
            if self._completed:
                return
            percentage = max(percentage, self._percentage)
            self._percentage = percentage

            now = self._clock()
            if not force and self._last_emit is not None and now - self._last_emit < self._interval:
                return
            self._last_emit = now
            if force:
                self._completed = True

        if self._callback is None:
            return
        try:
            self._callback(ProgressEvent(phase=phase, percentage=round(percentage, 2), message=message))
        except Exception as e:
            logger.warning(f"{INDEX} Progress callback raised, ignoring: {e}")


__all__ = ["IndexPhase", "PHASE_RANGES", "ProgressEvent", "ProgressCallback", "ProgressReporter"]
