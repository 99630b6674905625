# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Prioritized provider chain with bounded retry.

Each round tries every provider once, in priority order, and returns the
first success. After a round in which every provider failed, the chain
waits with exponential backoff and starts another round, up to
RetryConfig.max_rounds. Every attempt is bounded by
RetryConfig.request_timeout; an expired attempt counts as a transport
failure.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable, Sequence

from ..config import RetryConfig
from ..exceptions import (
    ConfigurationError,
    MalformedResponseError,
    ProviderChainExhaustedError,
    TransportError,
)
from ..observability.constants import PROVIDER_ATTEMPTS_TOTAL, PROVIDER_LATENCY_SECONDS
from ..observability.protocols import MetricsCollectorProtocol
from .base import ChatOptions, ChatTurn, ContentProvider, ProviderResponse

logger = logging.getLogger(__name__)


def _outcome(error: Exception) -> str:
    if isinstance(error, MalformedResponseError):
        return "malformed"
    if isinstance(error.__cause__, asyncio.TimeoutError):
        return "timeout"
    return "error"


class ProviderChain:
    """
    Ordered list of providers sharing one retry policy.

    Example:
        >>> chain = ProviderChain([
        ...     HttpEndpointProvider("https://edge.example.com/chat"),
        ...     OpenAIChatProvider(),
        ... ])
        >>> response = await chain.invoke(turns, ChatOptions(max_tokens=800))
    """

    def __init__(
        self,
        providers: Sequence[ContentProvider],
        retry: RetryConfig | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        metrics_collector: MetricsCollectorProtocol | None = None,
    ) -> None:
        if not providers:
            raise ConfigurationError("ProviderChain requires at least one provider")
        self.providers = list(providers)
        self.retry = retry or RetryConfig()
        self._sleep = sleep
        self._metrics_collector = metrics_collector
        self.attempts = 0

        logger.info(
            f"Provider chain: {[p.name for p in self.providers]} "
            f"(rounds={self.retry.max_rounds}, timeout={self.retry.request_timeout}s)"
        )

    def with_retry(self, retry: RetryConfig) -> ProviderChain:
        """Copy of this chain with the same providers under another retry policy."""
        return ProviderChain(
            self.providers,
            retry=retry,
            sleep=self._sleep,
            metrics_collector=self._metrics_collector,
        )

    def _record_attempt(self, provider: ContentProvider, outcome: str, elapsed: float) -> None:
        if self._metrics_collector is None:
            return
        self._metrics_collector.inc_counter(
            PROVIDER_ATTEMPTS_TOTAL,
            labels={"provider": provider.name, "outcome": outcome},
        )
        self._metrics_collector.observe_histogram(
            PROVIDER_LATENCY_SECONDS, elapsed, labels={"provider": provider.name}
        )

    async def _attempt(
        self,
        provider: ContentProvider,
        turns: list[ChatTurn],
        options: ChatOptions,
    ) -> ProviderResponse:
        try:
            return await asyncio.wait_for(
                provider.invoke(turns, options), timeout=self.retry.request_timeout
            )
        except asyncio.TimeoutError as e:
            raise TransportError(
                f"{provider.name} timed out after {self.retry.request_timeout}s",
                endpoint=provider.name,
            ) from e

    async def invoke(
        self, turns: list[ChatTurn], options: ChatOptions
    ) -> ProviderResponse:
        """
        Run the chain until one provider succeeds.

        Raises:
            ProviderChainExhaustedError: Every attempt of every round failed
        """
        last_error: Exception | None = None
        attempts = 0

        for round_index in range(self.retry.max_rounds):
            for provider in self.providers:
                attempts += 1
                self.attempts += 1
                started = time.monotonic()
                try:
                    response = await self._attempt(provider, turns, options)
                except asyncio.CancelledError:
                    raise  # Always re-raise for graceful shutdown
                except (TransportError, MalformedResponseError) as e:
                    self._record_attempt(provider, _outcome(e), time.monotonic() - started)
                    logger.warning(
                        f"Provider {provider.name} failed "
                        f"(round {round_index + 1}/{self.retry.max_rounds}): {e}"
                    )
                    last_error = e
                    continue
                except Exception as e:
                    self._record_attempt(provider, "error", time.monotonic() - started)
                    logger.warning(
                        f"Provider {provider.name} raised unexpected error: {e}",
                        exc_info=True,
                    )
                    last_error = e
                    continue

                self._record_attempt(provider, "success", time.monotonic() - started)
                if response.provider is None:
                    response.provider = provider.name
                logger.debug(f"Provider {provider.name} succeeded on attempt {attempts}")
                return response

            # No sleep after the final round
            if round_index + 1 < self.retry.max_rounds:
                delay = self.retry.delay_for_round(round_index)
                if delay > 0:
                    logger.debug(f"All providers failed, retrying in {delay:.2f}s")
                    await self._sleep(delay)

        logger.error(f"All providers failed after {attempts} attempts: {last_error}")
        raise ProviderChainExhaustedError(
            f"All content providers failed after {attempts} attempts",
            attempts=attempts,
            last_error=last_error,
        )
