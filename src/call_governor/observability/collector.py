# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Metrics collector for governor, cache and provider events.

Every event is kept in an in-process snapshot (readable with get_metrics()
and get_counter()) and, when prometheus_client is installed through the
`metrics` extra, mirrored to Prometheus metrics registered on first use.

Usage:
    >>> from call_governor.observability.collector import get_metrics_collector
    >>> collector = get_metrics_collector()
    >>> collector.inc_counter('call_governor_requests_total',
    ...                       labels={'category': 'lesson', 'source': 'fresh'})
    >>> collector.get_counter('call_governor_requests_total',
    ...                       {'category': 'lesson', 'source': 'fresh'})
    1
"""

from __future__ import annotations

import logging
import threading
from collections import defaultdict
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, ClassVar

from .constants import (
    CACHE_EVICTIONS_TOTAL,
    CACHE_HITS_TOTAL,
    CACHE_MISSES_TOTAL,
    FALLBACKS_SERVED_TOTAL,
    FINGERPRINT_DEGRADED_TOTAL,
    INFLIGHT_COALESCED_TOTAL,
    LATENCY_BUCKETS,
    LEDGER_CALLS,
    PROVIDER_ATTEMPTS_TOTAL,
    PROVIDER_LATENCY_SECONDS,
    REQUESTS_FAILED_TOTAL,
    REQUESTS_TOTAL,
    STORAGE_WRITE_FAILURES_TOTAL,
    THROTTLED_TOTAL,
)

logger = logging.getLogger(__name__)

try:
    import prometheus_client

    PROMETHEUS_AVAILABLE = True
except ImportError:
    prometheus_client = None  # type: ignore[assignment]
    PROMETHEUS_AVAILABLE = False

COUNTER = "counter"
GAUGE = "gauge"
HISTOGRAM = "histogram"


@dataclass(frozen=True)
class MetricDefinition:
    """Type, help text and label names of one governor metric."""

    name: str
    metric_type: str
    description: str
    label_names: tuple[str, ...] = ()
    buckets: tuple[float, ...] | None = None


METRIC_DEFINITIONS: dict[str, MetricDefinition] = {
    definition.name: definition
    for definition in (
        MetricDefinition(
            REQUESTS_TOTAL, COUNTER, "Governed requests by answer source",
            ("category", "source"),
        ),
        MetricDefinition(
            THROTTLED_TOTAL, COUNTER, "Calls denied by the call ledger", ("category",)
        ),
        MetricDefinition(
            FALLBACKS_SERVED_TOTAL, COUNTER, "Static fallback payloads served",
            ("category", "reason"),
        ),
        MetricDefinition(
            REQUESTS_FAILED_TOTAL, COUNTER, "Requests that propagated an error",
            ("category", "reason"),
        ),
        MetricDefinition(
            INFLIGHT_COALESCED_TOTAL, COUNTER,
            "Requests joined to an identical in-flight call", ("category",),
        ),
        MetricDefinition(
            LEDGER_CALLS, GAUGE, "Calls recorded in the trailing hour", ("category",)
        ),
        MetricDefinition(
            FINGERPRINT_DEGRADED_TOTAL, COUNTER, "Fingerprints built on the degraded path"
        ),
        MetricDefinition(CACHE_HITS_TOTAL, COUNTER, "Result cache hits", ("tier",)),
        MetricDefinition(CACHE_MISSES_TOTAL, COUNTER, "Result cache misses"),
        MetricDefinition(CACHE_EVICTIONS_TOTAL, COUNTER, "Expired cache entries removed"),
        MetricDefinition(
            STORAGE_WRITE_FAILURES_TOTAL, COUNTER, "Failed persistent store writes"
        ),
        MetricDefinition(
            PROVIDER_ATTEMPTS_TOTAL, COUNTER, "Provider attempts by outcome",
            ("provider", "outcome"),
        ),
        MetricDefinition(
            PROVIDER_LATENCY_SECONDS, HISTOGRAM, "Provider attempt latency",
            ("provider",), buckets=tuple(LATENCY_BUCKETS),
        ),
    )
}


def _label_key(labels: dict[str, str] | None) -> str:
    if not labels:
        return ""
    return ",".join(f"{k}={v}" for k, v in sorted(labels.items()))


def _summarize(observations: list[float]) -> dict[str, float]:
    total = sum(observations)
    return {
        "count": len(observations),
        "sum": total,
        "avg": total / len(observations),
        "min": min(observations),
        "max": max(observations),
    }


class UnifiedMetricsCollector:
    """
    Thread-safe metrics sink with an optional Prometheus mirror.

    At most MAX_LABEL_COMBINATIONS label sets are tracked per metric; extra
    combinations are dropped with a warning. Histograms keep at most
    MAX_HISTOGRAM_OBSERVATIONS raw values and discard the older half when
    the bound is crossed.

    Example:
        >>> collector = UnifiedMetricsCollector(enable_prometheus=False)
        >>> collector.inc_counter('call_governor_throttled_total',
        ...                       labels={'category': 'quiz'})
        >>> collector.get_metrics()["counters"]
        {'call_governor_throttled_total': {'category=quiz': 1}}
    """

    MAX_LABEL_COMBINATIONS: ClassVar[int] = 1000
    MAX_HISTOGRAM_OBSERVATIONS: ClassVar[int] = 10000

    def __init__(
        self,
        enable_prometheus: bool = True,
        registry: Any | None = None,
    ) -> None:
        """
        Args:
            enable_prometheus: Mirror to Prometheus when prometheus_client is installed
            registry: Prometheus CollectorRegistry. The default registry when None.
        """
        self._enable_prometheus = enable_prometheus and PROMETHEUS_AVAILABLE
        if registry is None and self._enable_prometheus:
            registry = prometheus_client.REGISTRY
        self._registry = registry

        self._lock = threading.RLock()
        self._series: dict[str, dict[str, dict[str, Any]]] = {
            COUNTER: defaultdict(dict),
            GAUGE: defaultdict(dict),
            HISTOGRAM: defaultdict(dict),
        }
        self._prom_metrics: dict[str, Any] = {}
        self._server_running = False

        logger.debug(
            f"Metrics collector created "
            f"(prometheus={'on' if self._enable_prometheus else 'off'})"
        )

    # === Recording ===

    def _record(
        self,
        kind: str,
        name: str,
        labels: dict[str, str] | None,
        update: Callable[[dict[str, Any], str], None],
        mirror: Callable[[Any], None],
    ) -> None:
        key = _label_key(labels)
        with self._lock:
            series = self._series[kind][name]
            if key not in series and len(series) >= self.MAX_LABEL_COMBINATIONS:
                logger.warning(
                    f"Cardinality limit ({self.MAX_LABEL_COMBINATIONS}) reached "
                    f"for {name}, dropping labels {key!r}"
                )
                return
            update(series, key)

        if self._enable_prometheus:
            self._mirror(kind, name, labels, mirror)

    def inc_counter(
        self,
        name: str,
        value: int = 1,
        labels: dict[str, str] | None = None,
    ) -> None:
        """
        Increment a counter.

        Raises:
            ValueError: If value is negative
        """
        if value < 0:
            raise ValueError("Counter increment must be non-negative")

        def update(series: dict[str, Any], key: str) -> None:
            series[key] = series.get(key, 0) + value

        self._record(COUNTER, name, labels, update, lambda m: m.inc(value))

    def set_gauge(
        self,
        name: str,
        value: float,
        labels: dict[str, str] | None = None,
    ) -> None:
        def update(series: dict[str, Any], key: str) -> None:
            series[key] = value

        self._record(GAUGE, name, labels, update, lambda m: m.set(value))

    def observe_histogram(
        self,
        name: str,
        value: float,
        labels: dict[str, str] | None = None,
    ) -> None:
        def update(series: dict[str, Any], key: str) -> None:
            observations = series.setdefault(key, [])
            observations.append(value)
            if len(observations) > self.MAX_HISTOGRAM_OBSERVATIONS:
                del observations[: len(observations) // 2]

        self._record(HISTOGRAM, name, labels, update, lambda m: m.observe(value))

    # === Prometheus mirror ===

    def _prometheus_metric(
        self, kind: str, name: str, labels: dict[str, str] | None
    ) -> Any | None:
        with self._lock:
            if name in self._prom_metrics:
                return self._prom_metrics[name]

            definition = METRIC_DEFINITIONS.get(name)
            if definition is None or definition.metric_type != kind:
                definition = MetricDefinition(
                    name, kind, f"Dynamic {kind}: {name}", tuple(sorted(labels or {}))
                )

            factory = {
                COUNTER: prometheus_client.Counter,
                GAUGE: prometheus_client.Gauge,
                HISTOGRAM: prometheus_client.Histogram,
            }[kind]
            kwargs: dict[str, Any] = {"registry": self._registry}
            if kind == HISTOGRAM:
                kwargs["buckets"] = definition.buckets or tuple(LATENCY_BUCKETS)

            try:
                metric = factory(
                    name, definition.description, list(definition.label_names), **kwargs
                )
            except ValueError as e:
                # Duplicate registration or invalid name
                logger.warning(f"Cannot register Prometheus {kind} {name}: {e}")
                metric = None

            self._prom_metrics[name] = metric
            return metric

    def _mirror(
        self,
        kind: str,
        name: str,
        labels: dict[str, str] | None,
        apply: Callable[[Any], None],
    ) -> None:
        metric = self._prometheus_metric(kind, name, labels)
        if metric is None:
            return
        try:
            apply(metric.labels(**labels) if labels else metric)
        except ValueError as e:
            logger.debug(f"Prometheus update failed for {name}: {e}")

    # === Snapshots ===

    def get_counter(self, name: str, labels: dict[str, str] | None = None) -> int:
        """Current value of one counter label set (0 if never incremented)."""
        with self._lock:
            series = self._series[COUNTER].get(name, {})
            return int(series.get(_label_key(labels), 0))

    def get_metrics(self) -> dict[str, Any]:
        """
        Snapshot of every recorded series, safe to serialize as JSON.

        Histograms are summarized as count/sum/avg/min/max per label set.
        """
        with self._lock:
            counters = {n: dict(s) for n, s in self._series[COUNTER].items() if s}
            gauges = {n: dict(s) for n, s in self._series[GAUGE].items() if s}
            histograms = {
                n: {key: _summarize(obs) for key, obs in s.items() if obs}
                for n, s in self._series[HISTOGRAM].items()
                if s
            }
        return {"counters": counters, "gauges": gauges, "histograms": histograms}

    def reset(self) -> None:
        """Forget all in-process values. Prometheus metrics are left as they are."""
        with self._lock:
            for series in self._series.values():
                series.clear()
        logger.debug("Metrics collector reset")

    def start_http_server(self, host: str = "127.0.0.1", port: int = 9090) -> bool:
        """Serve the Prometheus registry for scraping. Returns True when serving."""
        if not PROMETHEUS_AVAILABLE:
            logger.warning("Cannot serve metrics: prometheus_client not installed")
            return False
        if self._server_running:
            return True

        try:
            prometheus_client.start_http_server(port, addr=host, registry=self._registry)
        except OSError as e:
            logger.error(f"Failed to start metrics server on {host}:{port}: {e}")
            return False

        self._server_running = True
        logger.info(f"Metrics server listening on {host}:{port}")
        return True

    @property
    def prometheus_enabled(self) -> bool:
        return self._enable_prometheus


# =============================================================================
# Process-wide collector
# =============================================================================

_global_collector: UnifiedMetricsCollector | None = None
_collector_lock = threading.Lock()


def get_metrics_collector(enable_prometheus: bool = True) -> UnifiedMetricsCollector:
    """
    Get or create the process-wide collector.

    enable_prometheus only applies to the call that creates it.
    """
    global _global_collector

    with _collector_lock:
        if _global_collector is None:
            _global_collector = UnifiedMetricsCollector(
                enable_prometheus=enable_prometheus
            )
        return _global_collector


def reset_metrics_collector() -> None:
    """Drop the process-wide collector (mainly for testing)."""
    global _global_collector
    with _collector_lock:
        if _global_collector is not None:
            _global_collector.reset()
        _global_collector = None


__all__ = [
    "METRIC_DEFINITIONS",
    "PROMETHEUS_AVAILABLE",
    "MetricDefinition",
    "UnifiedMetricsCollector",
    "get_metrics_collector",
    "reset_metrics_collector",
]
