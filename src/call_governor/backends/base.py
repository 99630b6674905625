# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Base Store for the persistent cache tier

This module provides the BaseStore abstract class: a string-keyed,
string-valued store scoped to one device or deployment. Implementations
must be safe to call from the event loop thread without suspending, since
cache reads and writes never await.
"""

import abc
from dataclasses import dataclass
from typing import Any


@dataclass
class StoreInfo:
    """
    Description of a store for diagnostics.

    Attributes:
        store_type: Type of store (e.g., 'memory', 'file', 'redis')
        namespace: Key namespace used by the store, if any
        metadata: Additional store-specific information
    """

    store_type: str
    namespace: str = ""
    metadata: dict[str, Any] | None = None


class BaseStore(abc.ABC):
    """
    Abstract interface for the persistent local store.

    Reads never raise: an unreadable value is reported as absent. Writes may
    raise StorageWriteError, which the result cache catches and logs.
    """

    @abc.abstractmethod
    def get(self, key: str) -> str | None:
        """Return the stored value, or None when absent."""

    @abc.abstractmethod
    def set(self, key: str, value: str) -> None:
        """
        Store a value, replacing any previous one.

        Raises:
            StorageWriteError: If the value could not be written
        """

    @abc.abstractmethod
    def remove(self, key: str) -> None:
        """Delete a key. Deleting a missing key is not an error."""

    @abc.abstractmethod
    def keys(self, prefix: str = "") -> list[str]:
        """List stored keys starting with prefix."""

    def clear(self, prefix: str = "") -> int:
        """Remove every key starting with prefix and return how many went."""
        removed = 0
        for key in self.keys(prefix):
            self.remove(key)
            removed += 1
        return removed

    @abc.abstractmethod
    def info(self) -> StoreInfo:
        """Describe this store."""
