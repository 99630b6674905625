# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Cache models for the Call Governor.

Contains the cache entry model and the cache metrics dataclass.
"""

import logging
from dataclasses import asdict, dataclass
from typing import Any

from pydantic import BaseModel, model_validator

logger = logging.getLogger(__name__)


@dataclass
class CacheMetrics:
    """Result cache counters."""

    memory_hits: int = 0
    persistent_hits: int = 0
    misses: int = 0
    evictions: int = 0
    write_failures: int = 0
    corrupt_entries: int = 0

    @property
    def hits(self) -> int:
        return self.memory_hits + self.persistent_hits

    @property
    def hit_ratio(self) -> float:
        total = self.hits + self.misses
        return self.hits / total if total > 0 else 0.0

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["hit_ratio"] = self.hit_ratio
        return data


class CacheEntry(BaseModel):
    """
    A cached result with its validity window.

    Timestamps are seconds since the epoch as returned by the cache clock.
    The entry is valid while now < expires_at.
    """

    fingerprint: str
    result: Any
    stored_at: float
    expires_at: float

    @model_validator(mode="after")
    def _validate_expiration(self) -> "CacheEntry":
        """Validate that expires_at is after stored_at."""
        if self.expires_at <= self.stored_at:
            raise ValueError("expires_at must be after stored_at")
        return self

    @classmethod
    def create(
        cls, fingerprint: str, result: Any, now: float, ttl_minutes: float
    ) -> "CacheEntry":
        """Build an entry expiring ttl_minutes after now."""
        return cls(
            fingerprint=fingerprint,
            result=result,
            stored_at=now,
            expires_at=now + ttl_minutes * 60.0,
        )

    def is_expired(self, now: float) -> bool:
        """Check if entry has expired at time `now`."""
        return now >= self.expires_at

    def ttl_remaining(self, now: float) -> float:
        """Seconds of validity left, never negative."""
        return max(0.0, self.expires_at - now)
