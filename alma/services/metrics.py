"""In-process counters and latency samples exposed on ``/metrics``."""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field


@dataclass
class MetricsCollector:
    """Thread-safe counters for requests, search cache and rate limiting.

    Latency samples are capped at ``_MAX_LATENCY_SAMPLES``; on overflow the
    oldest half is dropped.
    """

    _MAX_LATENCY_SAMPLES: int = field(default=10_000, repr=False)

    total_requests: int = field(default=0, init=False)
    status_codes: dict[int, int] = field(default_factory=dict, init=False)
    search_cache_hits: int = field(default=0, init=False)
    search_cache_misses: int = field(default=0, init=False)
    search_cache_writes: int = field(default=0, init=False)
    rate_limited: int = field(default=0, init=False)
    rate_limiter_errors: int = field(default=0, init=False)
    admin_auth_failures: int = field(default=0, init=False)
    maintenance_runs: int = field(default=0, init=False)
    maintenance_failures: int = field(default=0, init=False)

    _latencies: list[float] = field(default_factory=list, init=False, repr=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)
    _start_time: float = field(default_factory=time.monotonic, init=False, repr=False)

    def _bump(self, name: str) -> None:
        with self._lock:
            setattr(self, name, getattr(self, name) + 1)

    def inc_request(self, status_code: int) -> None:
        with self._lock:
            self.total_requests += 1
            self.status_codes[status_code] = self.status_codes.get(status_code, 0) + 1

    def inc_cache_hit(self) -> None:
        self._bump("search_cache_hits")

    def inc_cache_miss(self) -> None:
        self._bump("search_cache_misses")

    def inc_cache_write(self) -> None:
        self._bump("search_cache_writes")

    def inc_rate_limited(self) -> None:
        self._bump("rate_limited")

    def inc_rate_limiter_error(self) -> None:
        self._bump("rate_limiter_errors")

    def inc_admin_auth_failure(self) -> None:
        self._bump("admin_auth_failures")

    def inc_maintenance(self, success: bool) -> None:
        with self._lock:
            self.maintenance_runs += 1
            if not success:
                self.maintenance_failures += 1

    def record_latency(self, ms: float) -> None:
        with self._lock:
            self._latencies.append(ms)
            if len(self._latencies) > self._MAX_LATENCY_SAMPLES:
                half = self._MAX_LATENCY_SAMPLES // 2
                self._latencies = self._latencies[-half:]

    def _percentiles_unlocked(self) -> dict[str, float]:
        """p50/p90/p95/p99; caller must hold ``_lock``."""
        if not self._latencies:
            return {"p50": 0.0, "p90": 0.0, "p95": 0.0, "p99": 0.0}
        s = sorted(self._latencies)
        n = len(s)
        return {
            name: round(s[min(int(n * q), n - 1)], 2)
            for name, q in (("p50", 0.50), ("p90", 0.90), ("p95", 0.95), ("p99", 0.99))
        }

    def uptime_seconds(self) -> float:
        return round(time.monotonic() - self._start_time, 2)

    def cache_hit_rate(self) -> float:
        with self._lock:
            total = self.search_cache_hits + self.search_cache_misses
            return round(self.search_cache_hits / total, 4) if total else 0.0

    def snapshot(self) -> dict:
        hit_rate = self.cache_hit_rate()
        with self._lock:
            return {
                "uptime_seconds": round(time.monotonic() - self._start_time, 2),
                "total_requests": self.total_requests,
                "status_codes": dict(self.status_codes),
                "search_cache": {
                    "hits": self.search_cache_hits,
                    "misses": self.search_cache_misses,
                    "writes": self.search_cache_writes,
                    "hit_rate": hit_rate,
                },
                "rate_limiter": {
                    "rejected": self.rate_limited,
                    "backend_errors": self.rate_limiter_errors,
                },
                "admin": {
                    "auth_failures": self.admin_auth_failures,
                    "maintenance_runs": self.maintenance_runs,
                    "maintenance_failures": self.maintenance_failures,
                },
                "latency_ms": self._percentiles_unlocked(),
            }

    def reset(self) -> None:
        with self._lock:
            self.total_requests = 0
            self.status_codes.clear()
            self.search_cache_hits = 0
            self.search_cache_misses = 0
            self.search_cache_writes = 0
            self.rate_limited = 0
            self.rate_limiter_errors = 0
            self.admin_auth_failures = 0
            self.maintenance_runs = 0
            self.maintenance_failures = 0
            self._latencies.clear()
            self._start_time = time.monotonic()


metrics = MetricsCollector()
