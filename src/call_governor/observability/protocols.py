# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Structural type for metrics sinks.

The ledger, cache, provider chain and governors only call the methods
below, so any object providing them (a StatsD adapter, a test double) can
replace UnifiedMetricsCollector.
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class MetricsCollectorProtocol(Protocol):
    """
    Metrics sink used throughout the governor.

    Label values must come from small fixed sets such as category, tier,
    provider, outcome or reason, never from fingerprints or topics.
    """

    def inc_counter(
        self,
        name: str,
        value: int = 1,
        labels: dict[str, str] | None = None,
    ) -> None:
        """Add a non-negative value to a counter. Raises ValueError otherwise."""
        ...

    def set_gauge(
        self,
        name: str,
        value: float,
        labels: dict[str, str] | None = None,
    ) -> None: ...

    def observe_histogram(
        self,
        name: str,
        value: float,
        labels: dict[str, str] | None = None,
    ) -> None: ...

    def get_metrics(self) -> dict[str, Any]:
        """Snapshot keyed by "counters", "gauges" and "histograms"."""
        ...

    def reset(self) -> None: ...


__all__ = ["MetricsCollectorProtocol"]
