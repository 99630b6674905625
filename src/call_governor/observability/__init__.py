# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Observability for the Call Governor.

Classes:
    UnifiedMetricsCollector: Metrics collector supporting dict and Prometheus.

Protocols:
    MetricsCollectorProtocol: Protocol for metrics collection backends.

Functions:
    get_metrics_collector: Get the global metrics collector singleton.
    reset_metrics_collector: Reset the global metrics collector singleton.
"""

from .collector import (
    METRIC_DEFINITIONS,
    PROMETHEUS_AVAILABLE,
    MetricDefinition,
    UnifiedMetricsCollector,
    get_metrics_collector,
    reset_metrics_collector,
)
from .constants import (
    CACHE_EVICTIONS_TOTAL,
    CACHE_HITS_TOTAL,
    CACHE_MISSES_TOTAL,
    FALLBACKS_SERVED_TOTAL,
    FINGERPRINT_DEGRADED_TOTAL,
    INFLIGHT_COALESCED_TOTAL,
    LATENCY_BUCKETS,
    LEDGER_CALLS,
    METRIC_PREFIX,
    PROVIDER_ATTEMPTS_TOTAL,
    PROVIDER_LATENCY_SECONDS,
    REQUESTS_FAILED_TOTAL,
    REQUESTS_TOTAL,
    STORAGE_WRITE_FAILURES_TOTAL,
    THROTTLED_TOTAL,
)
from .protocols import MetricsCollectorProtocol

__all__ = [
    "CACHE_EVICTIONS_TOTAL",
    "CACHE_HITS_TOTAL",
    "CACHE_MISSES_TOTAL",
    "FALLBACKS_SERVED_TOTAL",
    "FINGERPRINT_DEGRADED_TOTAL",
    "INFLIGHT_COALESCED_TOTAL",
    "LATENCY_BUCKETS",
    "LEDGER_CALLS",
    "METRIC_DEFINITIONS",
    "METRIC_PREFIX",
    "PROMETHEUS_AVAILABLE",
    "PROVIDER_ATTEMPTS_TOTAL",
    "PROVIDER_LATENCY_SECONDS",
    "REQUESTS_FAILED_TOTAL",
    "REQUESTS_TOTAL",
    "STORAGE_WRITE_FAILURES_TOTAL",
    "THROTTLED_TOTAL",
    "MetricDefinition",
    "MetricsCollectorProtocol",
    "UnifiedMetricsCollector",
    "get_metrics_collector",
    "reset_metrics_collector",
]
