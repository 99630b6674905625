# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Metric name constants following Prometheus naming conventions.

All metric names use the `call_governor_` prefix.

Naming Conventions:
    - Counter metrics end with `_total`
    - Histogram metrics for time end with `_seconds`
    - Gauges use present-tense descriptive names

Label Best Practices:
    Use only categorical labels:
    - `category` - Content category (lesson, quiz, game, chat)
    - `tier` - Cache tier (memory, persistent)
    - `provider` - Provider name from the chain
    - `outcome` / `source` / `reason` - Small enums

    NEVER use fingerprints, student ids or topics as label values.
"""


# =============================================================================
# Global Prefix
# =============================================================================

METRIC_PREFIX = "call_governor"
"""Prefix for all Prometheus metrics in this library."""


# =============================================================================
# Governor Metrics (governor/governor.py)
# =============================================================================

REQUESTS_TOTAL = f"{METRIC_PREFIX}_requests_total"
"""Total governed requests, labelled by where the answer came from."""

THROTTLED_TOTAL = f"{METRIC_PREFIX}_throttled_total"
"""Total requests the call ledger refused to send upstream."""

FALLBACKS_SERVED_TOTAL = f"{METRIC_PREFIX}_fallbacks_served_total"
"""Total static fallback payloads returned to callers."""

REQUESTS_FAILED_TOTAL = f"{METRIC_PREFIX}_requests_failed_total"
"""Total requests that propagated an error to the caller."""

INFLIGHT_COALESCED_TOTAL = f"{METRIC_PREFIX}_inflight_coalesced_total"
"""Total requests that joined an identical in-flight call."""

LEDGER_CALLS = f"{METRIC_PREFIX}_ledger_calls"
"""Calls recorded in the trailing hour, per category."""


# =============================================================================
# Fingerprint Metrics (fingerprint.py)
# =============================================================================

FINGERPRINT_DEGRADED_TOTAL = f"{METRIC_PREFIX}_fingerprint_degraded_total"
"""Total fingerprints that fell back to a non-cacheable random key."""


# =============================================================================
# Cache Metrics (cache/result_cache.py)
# =============================================================================

CACHE_HITS_TOTAL = f"{METRIC_PREFIX}_cache_hits_total"
"""Total cache hits, labelled by tier."""

CACHE_MISSES_TOTAL = f"{METRIC_PREFIX}_cache_misses_total"
"""Total cache misses."""

CACHE_EVICTIONS_TOTAL = f"{METRIC_PREFIX}_cache_evictions_total"
"""Total expired entries removed from the cache."""

STORAGE_WRITE_FAILURES_TOTAL = f"{METRIC_PREFIX}_storage_write_failures_total"
"""Total persistent-tier writes that failed and were ignored."""


# =============================================================================
# Provider Metrics (providers/chain.py)
# =============================================================================

PROVIDER_ATTEMPTS_TOTAL = f"{METRIC_PREFIX}_provider_attempts_total"
"""Total provider attempts, labelled by provider and outcome."""

PROVIDER_LATENCY_SECONDS = f"{METRIC_PREFIX}_provider_latency_seconds"
"""Latency of provider attempts."""


# =============================================================================
# Histogram Buckets
# =============================================================================

LATENCY_BUCKETS: list[float] = [
    0.05,
    0.1,
    0.25,
    0.5,
    1.0,
    2.5,
    5.0,
    10.0,
    30.0,
    60.0,
]
"""Buckets for provider latency in seconds. LLM calls are slow."""


__all__ = [
    "CACHE_EVICTIONS_TOTAL",
    "CACHE_HITS_TOTAL",
    "CACHE_MISSES_TOTAL",
    "FALLBACKS_SERVED_TOTAL",
    "FINGERPRINT_DEGRADED_TOTAL",
    "INFLIGHT_COALESCED_TOTAL",
    "LATENCY_BUCKETS",
    "LEDGER_CALLS",
    "METRIC_PREFIX",
    "PROVIDER_ATTEMPTS_TOTAL",
    "PROVIDER_LATENCY_SECONDS",
    "REQUESTS_FAILED_TOTAL",
    "REQUESTS_TOTAL",
    "STORAGE_WRITE_FAILURES_TOTAL",
    "THROTTLED_TOTAL",
]
