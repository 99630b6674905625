# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Redis-backed store

Shares the persistent cache tier across processes or hosts. Keys are
namespaced and may carry a server-side TTL so Redis expires entries on its
own. Requires the `redis` extra.

Cache reads and writes run inside the event loop without awaiting, so this
store uses the synchronous redis client with short socket timeouts.
"""

import logging
from typing import Any

from redis import Redis
from redis.exceptions import RedisError

from ..exceptions import StorageWriteError
from .base import BaseStore, StoreInfo

logger = logging.getLogger(__name__)


class RedisStore(BaseStore):
    """
    Redis implementation of BaseStore.

    Write failures raise StorageWriteError. Read failures are logged and
    reported as a miss.

    Example:
        >>> store = RedisStore(redis_url="redis://localhost:6379/0")
        >>> store.set("lesson:abc", "{...}")
    """

    def __init__(
        self,
        redis_client: Any | None = None,
        redis_url: str = "redis://localhost:6379/0",
        namespace: str = "call_governor",
        ttl_seconds: int | None = None,
        socket_timeout: float = 1.0,
    ) -> None:
        """
        Args:
            redis_client: Existing client (e.g. fakeredis in tests). Built
                from redis_url when omitted.
            redis_url: Connection URL used when no client is given
            namespace: Prefix applied to every key
            ttl_seconds: Optional expiry set on every written key
            socket_timeout: Socket timeout for a client built from redis_url
        """
        if ttl_seconds is not None and ttl_seconds < 1:
            raise ValueError("ttl_seconds must be at least 1")
        self.namespace = namespace
        self.ttl_seconds = ttl_seconds
        self._redis_url = redis_url
        if redis_client is None:
            redis_client = Redis.from_url(
                redis_url,
                decode_responses=True,
                socket_timeout=socket_timeout,
                socket_connect_timeout=socket_timeout,
            )
        self._client = redis_client

    def _key(self, key: str) -> str:
        return f"{self.namespace}:{key}" if self.namespace else key

    def _strip(self, full_key: Any) -> str:
        if isinstance(full_key, bytes):
            full_key = full_key.decode("utf-8")
        if self.namespace:
            return str(full_key)[len(self.namespace) + 1 :]
        return str(full_key)

    def get(self, key: str) -> str | None:
        try:
            value = self._client.get(self._key(key))
        except RedisError as e:
            logger.warning(f"Redis read failed for {key}, treating as miss: {e}")
            return None
        if isinstance(value, bytes):
            return value.decode("utf-8")
        return value

    def set(self, key: str, value: str) -> None:
        try:
            self._client.set(self._key(key), value, ex=self.ttl_seconds)
        except RedisError as e:
            raise StorageWriteError(f"Redis write failed: {e}", key=key) from e

    def remove(self, key: str) -> None:
        try:
            self._client.delete(self._key(key))
        except RedisError as e:
            logger.warning(f"Redis delete failed for {key}: {e}")

    def keys(self, prefix: str = "") -> list[str]:
        pattern = f"{self._key(prefix)}*"
        try:
            return [self._strip(k) for k in self._client.scan_iter(match=pattern)]
        except RedisError as e:
            logger.warning(f"Redis scan failed for prefix {prefix!r}: {e}")
            return []

    def info(self) -> StoreInfo:
        healthy = True
        try:
            self._client.ping()
        except RedisError:
            healthy = False
        return StoreInfo(
            store_type="redis",
            namespace=self.namespace,
            metadata={"healthy": healthy, "ttl_seconds": self.ttl_seconds},
        )
