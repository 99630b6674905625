# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Fingerprint generation for request descriptors.

A fingerprint is the cache and de-duplication key for a logical request. It
is derived from a canonical serialization of the descriptor: mapping keys are
sorted recursively, sequence order is preserved (conversation turns are order
significant), and values that have no JSON form are dropped instead of
failing the request.

Example:
    >>> a = fingerprint({"topic": "Fractions", "subject": "Math"})
    >>> b = fingerprint({"subject": "Math", "topic": "Fractions"})
    >>> a == b
    True
"""

from __future__ import annotations

import dataclasses
import hashlib
import json
import logging
import math
import secrets
import string
import time
from collections.abc import Mapping
from enum import Enum
from typing import Any

from pydantic import BaseModel

from .observability.constants import FINGERPRINT_DEGRADED_TOTAL
from .observability.protocols import MetricsCollectorProtocol

logger = logging.getLogger(__name__)

DEGRADED_PREFIX = "request-"
_SUFFIX_ALPHABET = string.ascii_lowercase + string.digits

# Marker for values with no JSON representation
_DROP = object()


def _normalize(value: Any, active: set[int]) -> Any:
    if value is None or isinstance(value, (str, bool, int)):
        return value
    if isinstance(value, float):
        return value if math.isfinite(value) else None
    if isinstance(value, Enum):
        return _normalize(value.value, active)

    marker = id(value)
    if isinstance(value, BaseModel):
        value = value.model_dump(mode="json")
    elif dataclasses.is_dataclass(value) and not isinstance(value, type):
        value = {f.name: getattr(value, f.name) for f in dataclasses.fields(value)}

    if isinstance(value, Mapping):
        if marker in active:
            raise ValueError("Circular reference in request descriptor")
        active.add(marker)
        try:
            result: dict[str, Any] = {}
            for key, item in value.items():
                if isinstance(key, Enum):
                    key = key.value
                if isinstance(key, bool):
                    key = "true" if key else "false"
                elif isinstance(key, (int, float)):
                    key = str(key)
                elif not isinstance(key, str):
                    continue
                normalized = _normalize(item, active)
                if normalized is not _DROP:
                    result[key] = normalized
            return result
        finally:
            active.discard(marker)

    if isinstance(value, (list, tuple)):
        if marker in active:
            raise ValueError("Circular reference in request descriptor")
        active.add(marker)
        try:
            # Positions are significant, so unrepresentable items become null
            return [
                None if item is _DROP else item
                for item in (_normalize(v, active) for v in value)
            ]
        finally:
            active.discard(marker)

    return _DROP


def canonicalize(descriptor: Any) -> str:
    """
    Serialize a descriptor to its canonical compact JSON form.

    Raises:
        ValueError: On circular references
        RecursionError: On structures nested too deeply to walk
    """
    normalized = _normalize(descriptor, set())
    if normalized is _DROP:
        normalized = None
    return json.dumps(
        normalized, sort_keys=True, separators=(",", ":"), ensure_ascii=False
    )


def degraded_fingerprint() -> str:
    """Non-cacheable key combining a coarse timestamp and a random suffix."""
    suffix = "".join(secrets.choice(_SUFFIX_ALPHABET) for _ in range(8))
    return f"{DEGRADED_PREFIX}{int(time.time())}-{suffix}"


def fingerprint(
    descriptor: Any,
    metrics_collector: MetricsCollectorProtocol | None = None,
) -> str:
    """
    Derive the fingerprint of a request descriptor.

    Never raises. Descriptors that cannot be serialized get a degraded
    fingerprint that is unique per call, so the request proceeds uncached.

    Args:
        descriptor: Any JSON-like structure, pydantic model or dataclass
        metrics_collector: Optional collector for the degraded-path counter

    Returns:
        SHA-256 hex digest of the canonical form, or a degraded key
    """
    try:
        canonical = canonicalize(descriptor)
    except Exception as e:
        logger.warning(f"Fingerprint serialization failed, caching disabled: {e}")
        if metrics_collector is not None:
            metrics_collector.inc_counter(FINGERPRINT_DEGRADED_TOTAL)
        return degraded_fingerprint()
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def is_degraded(key: str) -> bool:
    """True for keys produced by the degraded path."""
    return key.startswith(DEGRADED_PREFIX)


__all__ = [
    "DEGRADED_PREFIX",
    "canonicalize",
    "degraded_fingerprint",
    "fingerprint",
    "is_degraded",
]
