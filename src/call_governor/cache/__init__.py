# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Result cache for the Call Governor.

Components:
- CacheEntry: A cached result with its validity window
- CacheMetrics: Hit, miss, eviction and write-failure counters
- ResultCache: Two-tier TTL cache over an optional persistent store
"""

from .models import CacheEntry, CacheMetrics
from .result_cache import ResultCache

__all__ = [
    "CacheEntry",
    "CacheMetrics",
    "ResultCache",
]
