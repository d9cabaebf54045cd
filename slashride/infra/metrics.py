# slashride/infra/metrics.py
"""
In-process counters and command latency, served on GET /metrics.

Counter keys render as ``name{label=value,...}``. Latency keeps the most
recent ``LATENCY_SAMPLES`` observations per command so memory stays flat.
"""
from __future__ import annotations

import time
from collections import Counter, defaultdict, deque
from contextlib import contextmanager
from threading import Lock
from typing import Iterator

LATENCY_SAMPLES = 1000


def _metric_key(name: str, labels: dict) -> str:
    if not labels:
        return name
    rendered = ",".join(f"{k}={v}" for k, v in sorted(labels.items()))
    return f"{name}{{{rendered}}}"


class RideMetrics:
    def __init__(self, latency_samples: int = LATENCY_SAMPLES):
        self._counts: Counter[str] = Counter()
        self._latency: dict[str, deque[float]] = defaultdict(
            lambda: deque(maxlen=latency_samples)
        )
        self._lock = Lock()

    def count(self, name: str, amount: int = 1, **labels) -> None:
        key = _metric_key(name, labels)
        with self._lock:
            self._counts[key] += amount

    def record_latency(self, command: str, seconds: float) -> None:
        with self._lock:
            self._latency[command].append(seconds)

    def snapshot(self) -> dict:
        with self._lock:
            counters = dict(self._counts)
            samples = {cmd: sorted(values) for cmd, values in self._latency.items()}

        latency = {}
        for command, values in samples.items():
            if not values:
                continue
            latency[_metric_key("command_processing_seconds", {"command": command})] = {
                "count": len(values),
                "avg": sum(values) / len(values),
                "p95": values[min(int(len(values) * 0.95), len(values) - 1)],
                "max": values[-1],
            }
        return {"counters": counters, "histograms": latency}


_metrics = RideMetrics()


def metrics_snapshot() -> dict:
    return _metrics.snapshot()


def inc_counter(name: str, amount: int = 1, **labels) -> None:
    _metrics.count(name, amount, **labels)


class AppMetrics:
    """Named events of the slash-command workflow."""

    @staticmethod
    def command_received(command: str) -> None:
        inc_counter("commands_total", command=command)

    @staticmethod
    def estimate_fetched() -> None:
        inc_counter("estimates_fetched_total")

    @staticmethod
    def surge_confirmation_requested() -> None:
        inc_counter("surge_confirmations_requested_total")

    @staticmethod
    def stale_confirmation() -> None:
        inc_counter("surge_confirmations_stale_total")

    @staticmethod
    def ride_booked(confirmed_surge: bool) -> None:
        inc_counter("rides_booked_total", surge=str(confirmed_surge).lower())

    @staticmethod
    def transport_error(service: str) -> None:
        inc_counter("transport_errors_total", service=service)

    @staticmethod
    def database_error(operation: str) -> None:
        inc_counter("database_errors_total", operation=operation)

    @staticmethod
    def request_validation_failed(provider: str) -> None:
        inc_counter("request_validation_failures_total", provider=provider)

    @staticmethod
    @contextmanager
    def track_processing_time(command: str) -> Iterator[None]:
        started = time.perf_counter()
        try:
            yield
        finally:
            _metrics.record_latency(command, time.perf_counter() - started)
