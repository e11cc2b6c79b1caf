"""
Prometheus metrics for validation runs.

Metrics:
- chainvalidator_runs_total{status}: runs by status (valid, invalid, timeout)
- chainvalidator_run_duration_seconds{status}: run duration histogram
- chainvalidator_outcomes_total{rule, kind}: failed outcomes by rule
- chainvalidator_custom_rule_faults_total{rule}: unexpected custom rule errors
- chainvalidator_cache_requests_total{result}: verdict cache hits and misses

The module-level ``validation_metrics`` collector registers on the default
prometheus_client registry; pass a dedicated CollectorRegistry to build an
isolated collector (used by tests).
"""

import threading
import time
from contextlib import contextmanager
from typing import Iterator, Optional

from prometheus_client import REGISTRY, CollectorRegistry, Counter, Histogram, generate_latest


class ValidationMetricsCollector:
    """Prometheus counters and histograms describing validation runs."""

    def __init__(self, registry: Optional[CollectorRegistry] = None, namespace: str = 'chainvalidator'):
        self.registry = registry if registry is not None else REGISTRY
        self._lock = threading.Lock()

        self.runs_total = Counter(
            f'{namespace}_runs_total',
            'Total number of validation runs by status',
            ['status'],
            registry=self.registry
        )

        self.run_duration_seconds = Histogram(
            f'{namespace}_run_duration_seconds',
            'Validation run duration in seconds',
            ['status'],
            buckets=[0.0005, 0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, float('inf')],
            registry=self.registry
        )

        self.outcomes_total = Counter(
            f'{namespace}_outcomes_total',
            'Total number of failed validation outcomes by rule',
            ['rule', 'kind'],
            registry=self.registry
        )

        self.custom_rule_faults_total = Counter(
            f'{namespace}_custom_rule_faults_total',
            'Total number of unexpected errors raised by custom rules',
            ['rule'],
            registry=self.registry
        )

        self.cache_requests_total = Counter(
            f'{namespace}_cache_requests_total',
            'Verdict cache lookups by result',
            ['result'],
            registry=self.registry
        )

    def record_run(self, status: str, duration: float) -> None:
        self.runs_total.labels(status=status).inc()
        self.run_duration_seconds.labels(status=status).observe(duration)

    def record_outcome(self, rule: str, kind: str) -> None:
        self.outcomes_total.labels(rule=rule, kind=kind).inc()

    def record_fault(self, rule: str) -> None:
        self.custom_rule_faults_total.labels(rule=rule).inc()

    def record_cache(self, hit: bool) -> None:
        self.cache_requests_total.labels(result='hit' if hit else 'miss').inc()

    @contextmanager
    def time_run(self) -> Iterator[dict]:
        """
        Time a block and record it as a run.

        The block sets ``state['status']``; a block that raises is recorded
        with status ``error`` unless it set another status first.
        """
        state = {'status': 'error'}
        start_time = time.perf_counter()
        try:
            yield state
        finally:
            self.record_run(state['status'], time.perf_counter() - start_time)

    def export(self) -> bytes:
        """Render the collector's registry in the Prometheus text format."""
        with self._lock:
            return generate_latest(self.registry)


validation_metrics = ValidationMetricsCollector()


__all__ = ['ValidationMetricsCollector', 'validation_metrics']
