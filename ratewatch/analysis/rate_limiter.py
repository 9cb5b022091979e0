# ratewatch/analysis/rate_limiter.py
"""
Fixed-window, per-source packet rate limiter.

Counts are kept per SourceKey inside a window that starts at the first record()
after the previous window expired. When the window expires the whole mapping is
replaced and the start timestamp moved, inside the same critical section, so no
caller ever sees one without the other.

A fixed window lets a source send up to 2 x threshold packets across a window
boundary without being flagged.
"""
import math
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Optional


class VerdictKind(Enum):
    ALLOWED = "allowed"
    EXCEEDED = "exceeded"


@dataclass(frozen=True)
class Verdict:
    """Classification of one recorded frame."""
    kind: VerdictKind
    source: str
    count: int

    @property
    def exceeded(self) -> bool:
        return self.kind is VerdictKind.EXCEEDED

    @classmethod
    def allowed(cls, source: str, count: int) -> "Verdict":
        return cls(VerdictKind.ALLOWED, source, count)

    @classmethod
    def over_limit(cls, source: str, count: int) -> "Verdict":
        return cls(VerdictKind.EXCEEDED, source, count)


@dataclass(frozen=True)
class WindowSnapshot:
    """Consistent copy of the window state, taken under the engine lock."""
    start: float
    counts: Dict[str, int]


class RateLimiter:
    """
    Per-source rate limit engine.

    One instance is shared by every capture thread that feeds it; all state
    changes happen under a single lock.
    """

    def __init__(self, window_duration: float = 10.0, threshold: int = 100,
                 clock: Callable[[], float] = time.monotonic):
        if not math.isfinite(window_duration) or window_duration <= 0:
            raise ValueError("window_duration must be a positive finite number")
        if threshold < 1:
            raise ValueError("threshold must be at least 1")
        self.window_duration = float(window_duration)
        self.threshold = int(threshold)
        self._clock = clock
        self._lock = threading.Lock()
        self._counts: Dict[str, int] = {}
        self._window_start = clock()

    def now(self) -> float:
        return self._clock()

    def record(self, source: str, now: Optional[float] = None) -> Verdict:
        """Count one frame from `source` and classify it against the threshold."""
        if now is None:
            now = self._clock()
        with self._lock:
            if now - self._window_start >= self.window_duration:
                self._counts = {}
                self._window_start = now
            count = self._counts.get(source, 0) + 1
            self._counts[source] = count
        if count > self.threshold:
            return Verdict.over_limit(source, count)
        return Verdict.allowed(source, count)

    def count_for(self, source: str) -> int:
        with self._lock:
            return self._counts.get(source, 0)

    def snapshot(self) -> WindowSnapshot:
        with self._lock:
            return WindowSnapshot(start=self._window_start, counts=dict(self._counts))

    def __repr__(self):
        return f"RateLimiter(window_duration={self.window_duration}, threshold={self.threshold})"
