# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
In-memory store

Dict-backed implementation of BaseStore for tests and single-process
deployments. An optional byte quota mimics browser storage limits: a write
that would exceed it raises StorageWriteError and leaves the store unchanged.
"""

import logging
import threading

from ..exceptions import StorageWriteError
from .base import BaseStore, StoreInfo

logger = logging.getLogger(__name__)


class MemoryStore(BaseStore):
    """
    In-memory store with an optional size quota.

    Example:
        >>> store = MemoryStore(max_bytes=16)
        >>> store.set("k", "v")
        >>> store.get("k")
        'v'
    """

    def __init__(self, max_bytes: int | None = None) -> None:
        if max_bytes is not None and max_bytes < 0:
            raise ValueError("max_bytes must be non-negative")
        self.max_bytes = max_bytes
        self._data: dict[str, str] = {}
        self._lock = threading.Lock()

    @staticmethod
    def _size(key: str, value: str) -> int:
        return len(key.encode("utf-8")) + len(value.encode("utf-8"))

    @property
    def used_bytes(self) -> int:
        with self._lock:
            return sum(self._size(k, v) for k, v in self._data.items())

    def get(self, key: str) -> str | None:
        with self._lock:
            return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            if self.max_bytes is not None:
                used = sum(
                    self._size(k, v) for k, v in self._data.items() if k != key
                )
                if used + self._size(key, value) > self.max_bytes:
                    raise StorageWriteError(
                        f"Storage quota of {self.max_bytes} bytes exceeded",
                        key=key,
                    )
            self._data[key] = value

    def remove(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def keys(self, prefix: str = "") -> list[str]:
        with self._lock:
            return [k for k in self._data if k.startswith(prefix)]

    def info(self) -> StoreInfo:
        return StoreInfo(
            store_type="memory",
            metadata={"entries": len(self._data), "max_bytes": self.max_bytes},
        )
