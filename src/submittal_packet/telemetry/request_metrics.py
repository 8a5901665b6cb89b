from __future__ import annotations

from collections import Counter, deque
import math
from threading import Lock
import time
from typing import Callable


class RequestMetrics:
    def __init__(
        self,
        *,
        max_latency_samples: int = 2048,
        max_packet_audit_events: int = 256,
        time_fn: Callable[[], float] | None = None,
    ) -> None:
        if max_latency_samples < 1:
            raise ValueError("max_latency_samples must be >= 1")
        if max_packet_audit_events < 1:
            raise ValueError("max_packet_audit_events must be >= 1")
        self._time_fn = time_fn or time.monotonic
        self._started_at = self._time_fn()
        self._lock = Lock()
        self._api_requests = 0
        self._api_errors = 0
        self._packet_attempts = 0
        self._packet_generated = 0
        self._packet_failed = 0
        self._packet_bytes_total = 0
        self._packet_failure_categories: Counter[str] = Counter()
        self._packet_audit_events: deque[dict[str, object]] = deque(
            maxlen=max_packet_audit_events
        )
        self._latencies_ms: deque[float] = deque(maxlen=max_latency_samples)

    def record_api_response(self, *, status_code: int, duration_seconds: float) -> None:
        latency_ms = max(duration_seconds * 1000.0, 0.0)
        with self._lock:
            self._api_requests += 1
            if status_code >= 400:
                self._api_errors += 1
            self._latencies_ms.append(latency_ms)

    def record_packet_outcome(
        self,
        *,
        trace_id: str,
        delivery: str,
        document_count: int,
        artifact_bytes: int = 0,
        failure_category: str | None = None,
    ) -> None:
        with self._lock:
            self._packet_attempts += 1
            if failure_category:
                self._packet_failed += 1
                self._packet_failure_categories[failure_category] += 1
            else:
                self._packet_generated += 1
                self._packet_bytes_total += max(artifact_bytes, 0)
            self._packet_audit_events.append(
                {
                    "trace_id": trace_id,
                    "delivery": delivery,
                    "document_count": max(document_count, 0),
                    "artifact_bytes": max(artifact_bytes, 0),
                    "outcome": "failed" if failure_category else "generated",
                    "failure_category": failure_category,
                }
            )

    def snapshot(self) -> dict[str, object]:
        with self._lock:
            elapsed_seconds = max(self._time_fn() - self._started_at, 1e-9)
            api_requests = self._api_requests
            api_errors = self._api_errors
            packet_attempts = self._packet_attempts
            packet_generated = self._packet_generated
            packet_failed = self._packet_failed
            packet_bytes_total = self._packet_bytes_total
            packet_failure_categories = dict(self._packet_failure_categories)
            packet_audit_events = list(self._packet_audit_events)
            latencies = list(self._latencies_ms)

        request_rate_per_minute = (api_requests / elapsed_seconds) * 60.0
        error_rate = (api_errors / api_requests) if api_requests else 0.0

        return {
            "window_seconds": elapsed_seconds,
            "requests": {
                "total": api_requests,
                "rate_per_minute": request_rate_per_minute,
            },
            "errors": {
                "total": api_errors,
                "rate": error_rate,
            },
            "packets": {
                "attempts": packet_attempts,
                "generated": packet_generated,
                "failed": packet_failed,
                "average_bytes": (
                    packet_bytes_total / packet_generated if packet_generated else 0.0
                ),
                "failure_categories": packet_failure_categories,
                "audit_recent": packet_audit_events,
            },
            "latency_ms": {
                "sample_count": len(latencies),
                "p50": self._percentile(latencies, 50.0),
                "p95": self._percentile(latencies, 95.0),
                "p99": self._percentile(latencies, 99.0),
            },
        }

    @staticmethod
    def _percentile(values: list[float], percentile: float) -> float:
        if not values:
            return 0.0
        if len(values) == 1:
            return float(values[0])

        ordered = sorted(values)
        rank = (len(ordered) - 1) * (percentile / 100.0)
        lower_index = int(math.floor(rank))
        upper_index = int(math.ceil(rank))
        lower_value = ordered[lower_index]
        upper_value = ordered[upper_index]
        if lower_index == upper_index:
            return float(lower_value)
        blend = rank - lower_index
        return float(lower_value + (upper_value - lower_value) * blend)
