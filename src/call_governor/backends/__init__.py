# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Store implementations for the persistent cache tier.

Available stores:
- BaseStore: Abstract base class defining the store interface
- MemoryStore: In-memory store with an optional byte quota
- FileStore: JSON file store that survives process restarts
- RedisStore: Redis-based store shared across processes (requires redis extra)

Note: RedisStore is lazily imported to avoid requiring the redis package
when only using MemoryStore or FileStore.
"""

from typing import TYPE_CHECKING, cast

from call_governor.backends.base import BaseStore, StoreInfo
from call_governor.backends.file import FileStore
from call_governor.backends.memory import MemoryStore

# Lazy imports for optional redis store
if TYPE_CHECKING:
    from call_governor.backends.redis import RedisStore

__all__ = [
    "BaseStore",
    "FileStore",
    "MemoryStore",
    "RedisStore",
    "StoreInfo",
]


def __getattr__(name: str) -> type:
    """Lazy import for the optional redis store."""
    if name == "RedisStore":
        try:
            from call_governor.backends import redis as redis_module

            return cast(type, getattr(redis_module, name))
        except ImportError as e:  # pragma: no cover
            raise ImportError(  # pragma: no cover
                f"'{name}' requires the 'redis' extra. "
                "Install with: pip install call-governor[redis]"
            ) from e
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
