# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Call Governor

The governor sits between application code and the provider chain for one
content category. Per request it walks this state machine:

    CHECK_CACHE --hit--> RETURN_CACHED
        |miss
    CHECK_LEDGER --permitted--> PERFORM_CALL -> NORMALIZE -> STORE_CACHE
        |denied                      -> RECORD_LEDGER -> RETURN_FRESH
    CHECK_CACHE_AGAIN --hit--> RETURN_STALE
        |miss
    RETURN_FALLBACK (or ThrottledError when fallbacks are disabled)

A failed PERFORM_CALL or NORMALIZE recovers to the cache, then to fallback
content, and only propagates when neither is available. A permitted call
reserves its ledger slot before the network call and hands it back on
failure, so concurrent requests cannot overrun the ceilings and only
successful calls stay recorded.

Concurrent requests with the same fingerprint share one pending call. The
shared call is shielded from caller cancellation, so an abandoned request
still populates the cache.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any, TypeVar

from pydantic import ValidationError

from ..cache.result_cache import ResultCache
from ..config import ContentCategory, ModelSettings, RateLimitConfig
from ..content.models import CanonicalContent, QuizContent, canonical_content_adapter
from ..content.normalizer import normalize
from ..content.prompts import ContentRequest, build_turns
from ..exceptions import (
    ConfigurationError,
    MalformedResponseError,
    ThrottledError,
    TransportError,
)
from ..fingerprint import fingerprint, is_degraded
from ..ledger import CallHistoryLedger
from ..observability.constants import (
    FALLBACKS_SERVED_TOTAL,
    INFLIGHT_COALESCED_TOTAL,
    LEDGER_CALLS,
    REQUESTS_FAILED_TOTAL,
    REQUESTS_TOTAL,
    THROTTLED_TOTAL,
)
from ..observability.protocols import MetricsCollectorProtocol
from ..providers.base import ChatOptions, ChatTurn, ProviderResponse
from ..providers.chain import ProviderChain
from .fallback import fallback_content

logger = logging.getLogger(__name__)

T = TypeVar("T")


class AnswerSource(str, Enum):
    """Where a governed answer came from."""

    CACHED = "cached"
    FRESH = "fresh"
    STALE = "stale"
    FALLBACK = "fallback"


@dataclass
class GovernedResult:
    """Canonical content plus how it was obtained."""

    content: CanonicalContent
    source: AnswerSource
    fingerprint: str

    @property
    def is_fallback(self) -> bool:
        return self.source is AnswerSource.FALLBACK


class CallGovernor:
    """
    Rate-limited, cached access to generated content for one category.

    Example:
        >>> governor = CallGovernor(
        ...     ContentCategory.LESSON,
        ...     RateLimitConfig(3, 20, 30.0),
        ...     chain,
        ... )
        >>> result = await governor.request(
        ...     ContentRequest(category=ContentCategory.LESSON,
        ...                    subject="Math", topic="Fractions")
        ... )
        >>> result.source
        <AnswerSource.FRESH: 'fresh'>
    """

    def __init__(
        self,
        category: ContentCategory,
        config: RateLimitConfig,
        chain: ProviderChain,
        cache: ResultCache | None = None,
        model_settings: ModelSettings | None = None,
        clock: Callable[[], float] = time.time,
        metrics_collector: MetricsCollectorProtocol | None = None,
        fallback_enabled: bool = True,
        ledger: CallHistoryLedger | None = None,
    ) -> None:
        """
        Args:
            category: Content category governed by this instance
            config: Call ceilings and cache TTL
            chain: Providers used to perform calls
            cache: Result cache. A memory-only cache is created when omitted.
            model_settings: Model and token budget for calls
            clock: Time source in epoch seconds, shared with ledger and cache
            metrics_collector: Optional metrics sink
            fallback_enabled: Serve static content instead of failing
            ledger: Call ledger. Created from config when omitted.
        """
        self.category = category
        self.config = config
        self.chain = chain
        self.model_settings = model_settings or ModelSettings()
        self.fallback_enabled = fallback_enabled
        self._metrics_collector = metrics_collector
        self.ledger = (
            ledger if ledger is not None else CallHistoryLedger(config, clock=clock)
        )
        if cache is None:
            cache = ResultCache(
                namespace=f"call_governor:{category.value}",
                clock=clock,
                metrics_collector=metrics_collector,
            )
        self.cache = cache
        self._inflight: dict[str, asyncio.Future[Any]] = {}

        logger.info(
            f"CallGovernor[{category.value}] created: "
            f"{config.max_calls_per_minute}/min, {config.max_calls_per_hour}/h, "
            f"ttl={config.cache_ttl_minutes}min, model={self.model_settings.model}"
        )

    # === Metrics helpers ===

    def _labels(self, **extra: str) -> dict[str, str]:
        return {"category": self.category.value, **extra}

    def _count(self, name: str, **labels: str) -> None:
        if self._metrics_collector:
            self._metrics_collector.inc_counter(name, labels=self._labels(**labels))

    def _publish_ledger(self) -> None:
        if self._metrics_collector:
            self._metrics_collector.set_gauge(
                LEDGER_CALLS, self.ledger.calls_last_hour, labels=self._labels()
            )

    def _answer(
        self, content: CanonicalContent, source: AnswerSource, key: str
    ) -> GovernedResult:
        self._count(REQUESTS_TOTAL, source=source.value)
        return GovernedResult(content=content, source=source, fingerprint=key)

    # === Shared calls ===

    async def _shared(self, key: str, factory: Callable[[], Awaitable[T]]) -> T:
        """Run factory once per key; concurrent callers await the same result."""
        pending = self._inflight.get(key)
        if pending is not None:
            logger.debug(f"Joining in-flight call for {key[:12]}")
            self._count(INFLIGHT_COALESCED_TOTAL)
            return await asyncio.shield(pending)

        task = asyncio.ensure_future(factory())
        self._inflight[key] = task

        def _done(finished: asyncio.Future[Any]) -> None:
            if self._inflight.get(key) is finished:
                del self._inflight[key]
            # Retrieve the outcome so an abandoned failure is not reported as unhandled
            if not finished.cancelled():
                finished.exception()

        task.add_done_callback(_done)
        return await asyncio.shield(task)

    @property
    def inflight(self) -> int:
        """Number of calls currently pending."""
        return len(self._inflight)

    # === Cache helpers ===

    def _cached_content(self, key: str, record_miss: bool = True) -> CanonicalContent | None:
        result = self.cache.get(key, record_miss=record_miss)
        if result is None:
            return None
        try:
            return canonical_content_adapter.validate_python(result)
        except ValidationError as e:
            logger.warning(f"Dropping unreadable cached content for {key[:12]}: {e}")
            self.cache.invalidate(key)
            return None

    def _options(self) -> ChatOptions:
        return ChatOptions(
            model=self.model_settings.model,
            max_tokens=self.model_settings.max_tokens,
            temperature=self.model_settings.temperature,
        )

    # === Content requests ===

    async def request(self, request: ContentRequest) -> GovernedResult:
        """
        Serve a content request.

        Raises:
            ConfigurationError: The request is for another category
            ThrottledError: Denied by the ledger with nothing to serve
            TransportError: Every provider failed with nothing to serve
            MalformedResponseError: Unusable output with nothing to serve
        """
        if request.category is not self.category:
            raise ConfigurationError(
                f"Governor for {self.category.value} cannot serve "
                f"{request.category.value} requests"
            )

        key = fingerprint(request.cache_key_fields(), self._metrics_collector)

        if not request.skip_cache:
            cached = self._cached_content(key)
            if cached is not None:
                logger.debug(f"[{self.category.value}] cache hit for {key[:12]}")
                return self._answer(cached, AnswerSource.CACHED, key)

        return await self._shared(key, lambda: self._resolve(request, key))

    async def _resolve(self, request: ContentRequest, key: str) -> GovernedResult:
        if not self.ledger.can_make_call():
            self._count(THROTTLED_TOTAL)
            return self._recover(
                request,
                key,
                ThrottledError(
                    f"Too many {self.category.value} requests, please wait",
                    category=self.category.value,
                    retry_after=self.ledger.retry_after(),
                ),
            )

        slot = self.ledger.record_call()
        try:
            response = await self.chain.invoke(build_turns(request), self._options())
            content = normalize(response.content, request)
            if isinstance(content, QuizContent) and not content.questions:
                raise MalformedResponseError(
                    "Quiz contains no valid questions", raw=response.content
                )
        except (TransportError, MalformedResponseError) as e:
            self.ledger.release(slot)
            logger.warning(f"[{self.category.value}] generation failed: {e}")
            return self._recover(request, key, e)
        except BaseException:
            # Includes CancelledError
            self.ledger.release(slot)
            raise

        self._store(key, content.model_dump(mode="json"))
        self._publish_ledger()
        return self._answer(content, AnswerSource.FRESH, key)

    def _store(self, key: str, result: Any) -> None:
        # Degraded keys are unique per call and could never be read back
        if is_degraded(key):
            logger.debug(f"[{self.category.value}] not caching under degraded key {key}")
            return
        self.cache.put(key, result, self.config.cache_ttl_minutes)

    def _recover(
        self, request: ContentRequest, key: str, error: Exception
    ) -> GovernedResult:
        """Serve cache, then fallback, or raise the error."""
        reason = _failure_reason(error)

        # request() already counted the miss unless it skipped the cache
        cached = self._cached_content(key, record_miss=request.skip_cache)
        if cached is not None:
            return self._answer(cached, AnswerSource.STALE, key)

        if self.fallback_enabled:
            logger.warning(
                f"[{self.category.value}] serving fallback content ({reason})"
            )
            self._count(FALLBACKS_SERVED_TOTAL, reason=reason)
            return self._answer(fallback_content(request), AnswerSource.FALLBACK, key)

        self._count(REQUESTS_FAILED_TOTAL, reason=reason)
        logger.error(f"[{self.category.value}] request failed: {error}")
        raise error

    # === Raw completions ===

    async def complete(
        self,
        turns: list[ChatTurn],
        options: ChatOptions | None = None,
        skip_cache: bool = False,
    ) -> ProviderResponse:
        """
        Governed chat completion without normalization or fallback.

        The cache key is the conversation, model and token budget.

        Raises:
            ThrottledError: Denied by the ledger and not cached
            TransportError: Every provider failed
        """
        options = options or self._options()
        key = fingerprint(
            {
                "messages": [turn.to_dict() for turn in turns],
                "model": options.model,
                "max_tokens": options.max_tokens,
            },
            self._metrics_collector,
        )

        if not skip_cache:
            cached = self.cache.get(key)
            if cached is not None:
                return ProviderResponse.from_dict(cached)

        return await self._shared(
            key, lambda: self._complete(turns, options, key, skip_cache)
        )

    async def _complete(
        self, turns: list[ChatTurn], options: ChatOptions, key: str, skip_cache: bool
    ) -> ProviderResponse:
        if not self.ledger.can_make_call():
            self._count(THROTTLED_TOTAL)
            cached = self.cache.get(key, record_miss=skip_cache)
            if cached is not None:
                return ProviderResponse.from_dict(cached)
            self._count(REQUESTS_FAILED_TOTAL, reason="throttled")
            raise ThrottledError(
                "Rate limit exceeded. Please try again later.",
                category=self.category.value,
                retry_after=self.ledger.retry_after(),
            )

        slot = self.ledger.record_call()
        try:
            response = await self.chain.invoke(turns, options)
        except TransportError:
            self.ledger.release(slot)
            self._count(REQUESTS_FAILED_TOTAL, reason="transport")
            raise
        except BaseException:
            self.ledger.release(slot)
            raise

        self._store(key, response.to_dict())
        self._publish_ledger()
        return response

    def get_stats(self) -> dict[str, Any]:
        """Get governor statistics."""
        return {
            "category": self.category.value,
            "calls_last_minute": self.ledger.calls_last_minute,
            "calls_last_hour": self.ledger.calls_last_hour,
            "retry_after": self.ledger.retry_after(),
            "inflight": self.inflight,
            "cache": self.cache.get_stats(),
        }


def _failure_reason(error: Exception) -> str:
    if isinstance(error, ThrottledError):
        return "throttled"
    if isinstance(error, MalformedResponseError):
        return "malformed"
    return "transport"


__all__ = ["AnswerSource", "CallGovernor", "GovernedResult"]
