"""Sliding-window statistics for production calls to one provider.

Purely observational: nothing here influences routing.  Eligibility is the
cooldown tracker's job; these numbers feed ``/providers/stats``.
"""

from __future__ import annotations

import bisect
import threading
import time
from collections import Counter, deque
from dataclasses import dataclass

from wellbeing_ai.domain.enums import FailureKind
from wellbeing_ai.shared.providers.types import ProviderHealth


@dataclass
class _Sample:
    timestamp: float
    success: bool
    latency_ms: float


class ProviderHealthTracker:
    """Thread-safe, sliding-window outcome/latency tracker."""

    def __init__(self, provider_id: str, *, window_seconds: float = 300.0) -> None:
        self._provider_id = provider_id
        self._window = window_seconds

        self._samples: deque[_Sample] = deque()
        self._latencies: list[float] = []  # sorted, window only
        self._lock = threading.Lock()

        # Cumulative counters (never reset)
        self._total_requests = 0
        self._total_successes = 0
        self._total_failures = 0
        self._consecutive_failures = 0
        self._failures_by_kind: Counter[str] = Counter()
        self._last_failure_kind: str | None = None
        self._last_failure_time: float | None = None

    # ── Recording ────────────────────────────────────────────
    def record_success(self, latency_ms: float) -> None:
        with self._lock:
            self._samples.append(_Sample(time.monotonic(), True, latency_ms))
            bisect.insort(self._latencies, latency_ms)
            self._total_requests += 1
            self._total_successes += 1
            self._consecutive_failures = 0
            self._evict()

    def record_failure(self, kind: FailureKind, latency_ms: float = 0.0) -> None:
        with self._lock:
            self._samples.append(_Sample(time.monotonic(), False, latency_ms))
            bisect.insort(self._latencies, latency_ms)
            self._total_requests += 1
            self._total_failures += 1
            self._consecutive_failures += 1
            self._failures_by_kind[kind.value] += 1
            self._last_failure_kind = kind.value
            self._last_failure_time = time.time()
            self._evict()

    # ── Snapshot ─────────────────────────────────────────────
    @property
    def health(self) -> ProviderHealth:
        with self._lock:
            self._evict()
            window_total = len(self._samples)
            window_failures = sum(1 for s in self._samples if not s.success)
            success_rate = (
                (window_total - window_failures) / window_total if window_total else 1.0
            )
            return ProviderHealth(
                provider_id=self._provider_id,
                total_requests=self._total_requests,
                total_successes=self._total_successes,
                total_failures=self._total_failures,
                consecutive_failures=self._consecutive_failures,
                success_rate=round(success_rate, 4),
                latency_p50_ms=self._percentile(0.50),
                latency_p95_ms=self._percentile(0.95),
                latency_p99_ms=self._percentile(0.99),
                last_failure_kind=self._last_failure_kind,
                last_failure_time=self._last_failure_time,
                failures_by_kind=dict(self._failures_by_kind),
            )

    # ── Internals (caller holds lock) ────────────────────────
    def _evict(self) -> None:
        cutoff = time.monotonic() - self._window
        while self._samples and self._samples[0].timestamp < cutoff:
            old = self._samples.popleft()
            idx = bisect.bisect_left(self._latencies, old.latency_ms)
            if idx < len(self._latencies) and self._latencies[idx] == old.latency_ms:
                del self._latencies[idx]

    def _percentile(self, p: float) -> float:
        if not self._latencies:
            return 0.0
        idx = min(int(len(self._latencies) * p), len(self._latencies) - 1)
        return round(self._latencies[idx], 2)
