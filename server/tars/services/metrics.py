# ─────────────────────────────────────────────────────────────────────────────
# Gate Metrics — thread-safe decision counters
# ─────────────────────────────────────────────────────────────────────────────
# Counts every gate outcome: admitted, public bypass, and rejections by
# status. Exposed via GET /metrics (JSON) and /metrics/prometheus.
#
# Thread-safe: the gate runs on the event loop while admin endpoints run in
# the worker pool, so all mutations use a threading.Lock.
# ─────────────────────────────────────────────────────────────────────────────

from __future__ import annotations

import threading
import time
from collections import Counter
from dataclasses import dataclass, field
from typing import Any


@dataclass
class GateMetrics:
    """Thread-safe request gate counters."""

    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    requests_total: int = 0
    admitted: int = 0
    admin_admitted: int = 0
    public_bypassed: int = 0
    _rejections: Counter[int] = field(default_factory=Counter, repr=False)
    _start_time: float = field(default_factory=time.time, repr=False)

    def record_public(self) -> None:
        with self._lock:
            self.requests_total += 1
            self.public_bypassed += 1

    def record_admitted(self, *, admin: bool) -> None:
        with self._lock:
            self.requests_total += 1
            self.admitted += 1
            if admin:
                self.admin_admitted += 1

    def record_rejected(self, status: int) -> None:
        with self._lock:
            self.requests_total += 1
            self._rejections[status] += 1

    def rejections(self) -> dict[int, int]:
        with self._lock:
            return dict(self._rejections)

    def to_dict(self) -> dict[str, Any]:
        """Serialize metrics for the /metrics endpoint."""
        with self._lock:
            return {
                "requests_total": self.requests_total,
                "admitted": self.admitted,
                "admin_admitted": self.admin_admitted,
                "public_bypassed": self.public_bypassed,
                "rejected_unauthorized": self._rejections[401],
                "rejected_forbidden": self._rejections[403],
                "rejected_rate_limited": self._rejections[429],
                "gate_errors": self._rejections[500],
                "uptime_seconds": int(time.time() - self._start_time),
            }
