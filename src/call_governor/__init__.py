# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""Call Governor - Rate-limited, cached access to AI-generated learning content.

This library sits between application code that wants generated lessons,
quizzes, games or chat replies and the network calls that produce them.

Key Features:
    - Sliding-window call ledger with per-minute and per-hour ceilings
    - Two-tier TTL result cache keyed by request fingerprint
    - Prioritized provider chain with bounded retry and per-attempt timeouts
    - Normalization of heterogeneous model output into canonical content
    - Static fallback content whenever live generation is unavailable
    - In-flight de-duplication of identical concurrent requests

Quick Start:
    >>> from call_governor import (
    ...     ContentCategory, ContentRequest, HttpEndpointProvider,
    ...     OpenAIChatProvider, ProviderChain, create_content_service,
    ... )
    >>>
    >>> chain = ProviderChain([
    ...     HttpEndpointProvider("https://edge.example.com/chat"),
    ...     OpenAIChatProvider(),
    ... ])
    >>> service = create_content_service(chain)
    >>> lesson = await service.request_content(
    ...     ContentRequest(category=ContentCategory.LESSON,
    ...                    subject="Math", topic="Fractions", grade_level="4-6")
    ... )

Main Exports:
    - create_content_service, ContentService: Composition root
    - CallGovernor: Per-category orchestrator
    - ResultCache, CallHistoryLedger: Cache and rate ledger
    - MemoryStore, FileStore, RedisStore: Persistent cache tiers
    - ProviderChain, HttpEndpointProvider, OpenAIChatProvider: Providers

Note: RedisStore requires the 'redis' extra. Install with:
    pip install call-governor[redis]

Version: 1.0.0
"""

__version__ = "1.0.0"

from typing import TYPE_CHECKING

from .backends import BaseStore, FileStore, MemoryStore
from .cache import CacheEntry, CacheMetrics, ResultCache
from .config import (
    ContentCategory,
    GovernorSettings,
    ModelSettings,
    RateLimitConfig,
    RetryConfig,
)
from .content import (
    CanonicalContent,
    ChatReply,
    ContentRequest,
    GameContent,
    LessonContent,
    QuizContent,
    normalize,
)
from .exceptions import (
    ConfigurationError,
    ContentNormalizationError,
    GovernorError,
    MalformedResponseError,
    ProviderChainExhaustedError,
    StorageWriteError,
    ThrottledError,
    TransportError,
    user_message,
)
from .fingerprint import canonicalize, fingerprint
from .governor import (
    AnswerSource,
    CallGovernor,
    ContentService,
    GovernedResult,
    create_content_service,
    fallback_content,
)
from .ledger import CallHistoryLedger
from .observability import UnifiedMetricsCollector, get_metrics_collector
from .providers import (
    ChatOptions,
    ChatTurn,
    ContentProvider,
    HttpEndpointProvider,
    OpenAIChatProvider,
    ProviderChain,
    ProviderResponse,
)

if TYPE_CHECKING:
    from .backends.redis import RedisStore

__all__ = [
    "AnswerSource",
    "BaseStore",
    "CacheEntry",
    "CacheMetrics",
    "CallGovernor",
    "CallHistoryLedger",
    "CanonicalContent",
    "ChatOptions",
    "ChatReply",
    "ChatTurn",
    "ConfigurationError",
    "ContentCategory",
    "ContentNormalizationError",
    "ContentProvider",
    "ContentRequest",
    "ContentService",
    "FileStore",
    "GameContent",
    "GovernedResult",
    "GovernorError",
    "GovernorSettings",
    "HttpEndpointProvider",
    "LessonContent",
    "MalformedResponseError",
    "MemoryStore",
    "ModelSettings",
    "OpenAIChatProvider",
    "ProviderChain",
    "ProviderChainExhaustedError",
    "ProviderResponse",
    "QuizContent",
    "RateLimitConfig",
    "RedisStore",
    "ResultCache",
    "RetryConfig",
    "StorageWriteError",
    "ThrottledError",
    "TransportError",
    "UnifiedMetricsCollector",
    "__version__",
    "canonicalize",
    "create_content_service",
    "fallback_content",
    "fingerprint",
    "get_metrics_collector",
    "normalize",
    "user_message",
]


def __getattr__(name: str) -> type:
    """Lazy import for optional redis store."""
    if name == "RedisStore":
        from .backends import RedisStore

        return RedisStore
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
