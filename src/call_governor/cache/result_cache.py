# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Two-tier TTL result cache.

Reads check an in-process map first, then the persistent store, promoting
persistent hits into memory. Writes go to both tiers. Persistent writes are
best effort: failures are logged and counted, and the in-process map stays
authoritative for the rest of the session.

Eviction is purely time based. Expired entries are dropped when read, and
every put sweeps all expired entries from the in-process map.
"""

import logging
import threading
import time
from collections.abc import Callable
from typing import Any

from pydantic import ValidationError

from ..backends.base import BaseStore
from ..exceptions import StorageWriteError
from ..observability.constants import (
    CACHE_EVICTIONS_TOTAL,
    CACHE_HITS_TOTAL,
    CACHE_MISSES_TOTAL,
    STORAGE_WRITE_FAILURES_TOTAL,
)
from ..observability.protocols import MetricsCollectorProtocol
from .models import CacheEntry, CacheMetrics

logger = logging.getLogger(__name__)


class ResultCache:
    """
    TTL cache keyed by request fingerprint.

    Example:
        >>> cache = ResultCache(store=MemoryStore())
        >>> cache.put("abc", {"title": "Fractions"}, ttl_minutes=30)
        >>> cache.get("abc")
        {'title': 'Fractions'}
    """

    def __init__(
        self,
        store: BaseStore | None = None,
        namespace: str = "call_governor",
        clock: Callable[[], float] = time.time,
        metrics_collector: MetricsCollectorProtocol | None = None,
    ) -> None:
        """
        Args:
            store: Persistent tier. Memory-only when None.
            namespace: Prefix for keys written to the persistent tier
            clock: Time source in epoch seconds
            metrics_collector: Optional collector for cache metrics
        """
        self.store = store
        self.namespace = namespace
        self._clock = clock
        self._metrics_collector = metrics_collector
        self._memory: dict[str, CacheEntry] = {}
        self.metrics = CacheMetrics()
        self._metrics_lock = threading.Lock()

    def _store_key(self, fingerprint: str) -> str:
        return f"{self.namespace}:{fingerprint}"

    def _record_hit(self, tier: str) -> None:
        with self._metrics_lock:
            if tier == "memory":
                self.metrics.memory_hits += 1
            else:
                self.metrics.persistent_hits += 1
        if self._metrics_collector:
            self._metrics_collector.inc_counter(CACHE_HITS_TOTAL, labels={"tier": tier})

    def _record_miss(self) -> None:
        with self._metrics_lock:
            self.metrics.misses += 1
        if self._metrics_collector:
            self._metrics_collector.inc_counter(CACHE_MISSES_TOTAL)

    def _record_evictions(self, count: int) -> None:
        if count <= 0:
            return
        with self._metrics_lock:
            self.metrics.evictions += count
        if self._metrics_collector:
            self._metrics_collector.inc_counter(CACHE_EVICTIONS_TOTAL, value=count)

    def _record_write_failure(self) -> None:
        with self._metrics_lock:
            self.metrics.write_failures += 1
        if self._metrics_collector:
            self._metrics_collector.inc_counter(STORAGE_WRITE_FAILURES_TOTAL)

    def _read_persistent(self, fingerprint: str, now: float) -> CacheEntry | None:
        if self.store is None:
            return None
        key = self._store_key(fingerprint)
        payload = self.store.get(key)
        if payload is None:
            return None

        try:
            entry = CacheEntry.model_validate_json(payload)
        except ValidationError as e:
            logger.warning(f"Removing corrupt cache entry {key}: {e}")
            with self._metrics_lock:
                self.metrics.corrupt_entries += 1
            self.store.remove(key)
            return None

        if entry.fingerprint != fingerprint:
            logger.warning(f"Removing mismatched cache entry {key}")
            with self._metrics_lock:
                self.metrics.corrupt_entries += 1
            self.store.remove(key)
            return None

        if entry.is_expired(now):
            self.store.remove(key)
            self._record_evictions(1)
            return None
        return entry

    def get_entry(
        self, fingerprint: str, record_miss: bool = True
    ) -> CacheEntry | None:
        """
        Return the valid entry for a fingerprint, or None.

        record_miss=False leaves the miss counters alone, for a repeat lookup
        of a key already counted as missed.
        """
        now = self._clock()

        entry = self._memory.get(fingerprint)
        if entry is not None:
            if not entry.is_expired(now):
                self._record_hit("memory")
                logger.debug(f"Cache hit (memory) for {fingerprint[:12]}")
                return entry
            del self._memory[fingerprint]
            self._record_evictions(1)

        entry = self._read_persistent(fingerprint, now)
        if entry is not None:
            self._memory[fingerprint] = entry
            self._record_hit("persistent")
            logger.debug(f"Cache hit (persistent) for {fingerprint[:12]}")
            return entry

        if record_miss:
            self._record_miss()
        return None

    def get(self, fingerprint: str, record_miss: bool = True) -> Any | None:
        """Return the cached result for a fingerprint, or None when absent."""
        entry = self.get_entry(fingerprint, record_miss=record_miss)
        return entry.result if entry is not None else None

    def put(self, fingerprint: str, result: Any, ttl_minutes: float) -> None:
        """
        Store a result in both tiers.

        Never raises for persistent-tier failures.
        """
        now = self._clock()
        self.sweep()

        entry = CacheEntry.create(fingerprint, result, now, ttl_minutes)
        self._memory[fingerprint] = entry

        if self.store is None:
            return

        key = self._store_key(fingerprint)
        try:
            payload = entry.model_dump_json()
            self.store.set(key, payload)
        except StorageWriteError as e:
            logger.warning(f"Persistent cache write failed for {key}: {e}")
            self._record_write_failure()
        except (TypeError, ValueError) as e:
            # Results without a JSON form stay memory-only
            logger.warning(f"Cache entry {key} is not serializable: {e}")
            self._record_write_failure()

    def invalidate(self, fingerprint: str) -> None:
        """Drop a fingerprint from both tiers."""
        self._memory.pop(fingerprint, None)
        if self.store is not None:
            self.store.remove(self._store_key(fingerprint))

    def sweep(self) -> int:
        """Remove every expired in-process entry. Returns how many went."""
        now = self._clock()
        expired = [fp for fp, entry in self._memory.items() if entry.is_expired(now)]
        for fp in expired:
            del self._memory[fp]
        self._record_evictions(len(expired))
        return len(expired)

    def clear(self) -> None:
        """Empty the in-process map and this namespace in the store."""
        self._memory.clear()
        if self.store is not None:
            removed = self.store.clear(prefix=f"{self.namespace}:")
            logger.debug(f"Cleared {removed} persisted entries from {self.namespace}")

    def __len__(self) -> int:
        return len(self._memory)

    def __contains__(self, fingerprint: object) -> bool:
        return isinstance(fingerprint, str) and fingerprint in self._memory

    def get_stats(self) -> dict[str, Any]:
        """Get cache statistics."""
        now = self._clock()
        return {
            "size": len(self._memory),
            "expired_entries": sum(
                1 for entry in self._memory.values() if entry.is_expired(now)
            ),
            "namespace": self.namespace,
            "store": self.store.info().store_type if self.store is not None else None,
            "metrics": self.metrics.to_dict(),
        }
