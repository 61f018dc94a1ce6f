# ─────────────────────────────────────────────────────────────────────────────
# Admission Controller — per-identity fixed-window request counter
# ─────────────────────────────────────────────────────────────────────────────
# Windows are 60s buckets that jump forward, not a rolling average, so a burst
# straddling a boundary can admit up to 2N requests. Process-local and never
# persisted: a restart resets every counter.
#
# Thread-safe: the map lock only covers lookup/insert; the check-and-increment
# runs under the window's own lock so distinct identities never contend.
# ─────────────────────────────────────────────────────────────────────────────

from __future__ import annotations

import sys
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass, field

# Key used for administrator callers with no registry row
ADMIN_KEY = -1
UNLIMITED = sys.maxsize
WINDOW_SECONDS = 60.0


@dataclass
class RateWindow:
    """Counter for one identity's current window."""

    window_start: float
    count: int = 0
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)


@dataclass(frozen=True)
class AdmissionDecision:
    allowed: bool
    limit: int
    remaining: int
    retry_after_seconds: float


class AdmissionController:
    """Bounds requests per identity key with a fixed 60-second window.

    Constructed once at startup and injected into the gate; the clock is
    injectable so tests can cross window boundaries without sleeping.
    """

    def __init__(
        self,
        clock: Callable[[], float] = time.monotonic,
        window_seconds: float = WINDOW_SECONDS,
    ) -> None:
        self._clock = clock
        self._window_seconds = window_seconds
        self._windows: dict[int, RateWindow] = {}
        self._map_lock = threading.Lock()

    def check(self, key: int, limit_per_minute: int) -> AdmissionDecision:
        """Atomically check-and-increment the window for key."""
        limit = max(1, limit_per_minute)
        window = self._window_for(key)

        with window._lock:
            now = self._clock()
            if now - window.window_start >= self._window_seconds:
                window.window_start = now
                window.count = 0

            retry_after = max(0.0, self._window_seconds - (now - window.window_start))
            if window.count >= limit:
                return AdmissionDecision(
                    allowed=False,
                    limit=limit,
                    remaining=0,
                    retry_after_seconds=retry_after,
                )
            window.count += 1
            return AdmissionDecision(
                allowed=True,
                limit=limit,
                remaining=limit - window.count,
                retry_after_seconds=retry_after,
            )

    def forget(self, key: int) -> None:
        """Drop a window, e.g. after its identity was removed."""
        with self._map_lock:
            self._windows.pop(key, None)

    @property
    def active_windows(self) -> int:
        with self._map_lock:
            return len(self._windows)

    def _window_for(self, key: int) -> RateWindow:
        with self._map_lock:
            window = self._windows.get(key)
            if window is None:
                window = RateWindow(window_start=self._clock())
                self._windows[key] = window
            return window
