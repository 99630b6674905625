# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Call history ledger for sliding-window rate limiting.

The ledger records the timestamp of every permitted call and answers whether
another call fits under the per-minute and per-hour ceilings. It uses a
trailing window rather than a token bucket, so bursts up to the ceiling are
legal at window edges.

The ledger only reports; denial is the governor's decision. A slot taken with
record_call() can be handed back with release(). State lives in
process memory and a restart resets the quota.
"""

from __future__ import annotations

import logging
import time
from collections import deque
from collections.abc import Callable

from .config import RateLimitConfig

logger = logging.getLogger(__name__)

MINUTE_WINDOW = 60.0
HOUR_WINDOW = 3600.0


class CallHistoryLedger:
    """
    Sliding-window call counter over an injectable clock.

    Example:
        >>> ledger = CallHistoryLedger(RateLimitConfig(max_calls_per_minute=3))
        >>> for _ in range(3):
        ...     ledger.record_call()
        >>> ledger.can_make_call()
        False
    """

    def __init__(
        self,
        config: RateLimitConfig,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.config = config
        self._clock = clock
        self._calls: deque[float] = deque()

    def _prune(self, now: float) -> None:
        while self._calls and now - self._calls[0] >= HOUR_WINDOW:
            self._calls.popleft()

    def _count_within(self, window: float, now: float) -> int:
        return sum(1 for t in self._calls if now - t < window)

    def can_make_call(self) -> bool:
        """True iff both the minute and hour windows have room for a call."""
        now = self._clock()
        self._prune(now)

        minute_calls = self._count_within(MINUTE_WINDOW, now)
        if minute_calls >= self.config.max_calls_per_minute:
            logger.warning(
                f"Rate limit exceeded: {minute_calls} calls in the last minute "
                f"(max {self.config.max_calls_per_minute})"
            )
            return False

        hour_calls = len(self._calls)
        if hour_calls >= self.config.max_calls_per_hour:
            logger.warning(
                f"Rate limit exceeded: {hour_calls} calls in the last hour "
                f"(max {self.config.max_calls_per_hour})"
            )
            return False

        return True

    def record_call(self) -> float:
        """
        Append the current time to the ledger.

        Returns the recorded timestamp, which release() accepts. Recording
        before an await reserves the slot, so concurrent callers checking
        can_make_call() see it.
        """
        now = self._clock()
        self._calls.append(now)
        return now

    def release(self, slot: float) -> None:
        """Forget a call returned by record_call(), e.g. because it failed."""
        if slot in self._calls:
            self._calls.remove(slot)

    def _wait_for(self, window: float, limit: int, now: float) -> float:
        in_window = [t for t in self._calls if now - t < window]
        if len(in_window) < limit:
            return 0.0
        # The oldest call that must age out to bring the count under limit
        blocking = in_window[len(in_window) - limit]
        return max(0.0, blocking + window - now)

    def retry_after(self) -> float:
        """Seconds until a call would be permitted; 0.0 when one is now."""
        now = self._clock()
        self._prune(now)
        return max(
            self._wait_for(MINUTE_WINDOW, self.config.max_calls_per_minute, now),
            self._wait_for(HOUR_WINDOW, self.config.max_calls_per_hour, now),
        )

    @property
    def calls_last_minute(self) -> int:
        now = self._clock()
        self._prune(now)
        return self._count_within(MINUTE_WINDOW, now)

    @property
    def calls_last_hour(self) -> int:
        self._prune(self._clock())
        return len(self._calls)

    def reset(self) -> None:
        """Forget all recorded calls."""
        self._calls.clear()


__all__ = ["HOUR_WINDOW", "MINUTE_WINDOW", "CallHistoryLedger"]
