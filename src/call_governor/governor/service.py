# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Content service: the composition root.

One CallGovernor per content category is built once at startup and handed
to the application, which calls request_content() and never sees ledgers or
caches. Nothing here is module-level state, so tests can build as many
isolated services as they need.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Mapping
from typing import Any

from ..backends.base import BaseStore
from ..cache.result_cache import ResultCache
from ..config import ContentCategory, GovernorSettings
from ..content.models import CanonicalContent
from ..content.prompts import ContentRequest
from ..exceptions import ConfigurationError
from ..observability.collector import get_metrics_collector
from ..observability.protocols import MetricsCollectorProtocol
from ..providers.chain import ProviderChain
from .governor import CallGovernor, GovernedResult

logger = logging.getLogger(__name__)


class ContentService:
    """Single entry point for generated content, one governor per category."""

    def __init__(self, governors: Mapping[ContentCategory, CallGovernor]) -> None:
        for category, governor in governors.items():
            if governor.category is not category:
                raise ConfigurationError(
                    f"Governor for {governor.category.value} registered "
                    f"under {category.value}"
                )
        self._governors = dict(governors)

    def governor(self, category: ContentCategory) -> CallGovernor:
        try:
            return self._governors[category]
        except KeyError:
            raise ConfigurationError(
                f"No governor configured for {category.value} content"
            ) from None

    async def request(self, request: ContentRequest) -> GovernedResult:
        """Serve a request and report where the content came from."""
        return await self.governor(request.category).request(request)

    async def request_content(self, request: ContentRequest) -> CanonicalContent:
        """
        Serve a request with canonical content.

        Raises:
            ThrottledError: Rate limited with nothing cached and no fallback
            TransportError: Generation failed with nothing cached and no fallback
            MalformedResponseError: Unusable output with nothing cached and no fallback
        """
        result = await self.request(request)
        return result.content

    @property
    def categories(self) -> list[ContentCategory]:
        return list(self._governors)

    def get_stats(self) -> dict[str, Any]:
        return {
            category.value: governor.get_stats()
            for category, governor in self._governors.items()
        }


def create_content_service(
    chain: ProviderChain,
    store: BaseStore | None = None,
    settings: GovernorSettings | None = None,
    metrics_collector: MetricsCollectorProtocol | None = None,
    clock: Callable[[], float] = time.time,
) -> ContentService:
    """
    Factory function to create a ContentService with one governor per category.

    Args:
        chain: Provider chain shared by every governor
        store: Persistent cache tier shared by every governor (memory-only
            caches when None)
        settings: Per-category limits and models (defaults when None). A
            settings.retry policy replaces the chain's own.
        metrics_collector: Metrics sink. The global collector is used when
            None and settings.metrics_enabled is true.
        clock: Time source in epoch seconds

    Returns:
        Configured ContentService
    """
    if settings is None:
        settings = GovernorSettings()

    if metrics_collector is None and settings.metrics_enabled:
        metrics_collector = get_metrics_collector()

    if settings.retry is not None:
        chain = chain.with_retry(settings.retry)

    governors: dict[ContentCategory, CallGovernor] = {}
    for category in ContentCategory:
        cache = ResultCache(
            store=store,
            namespace=f"{settings.cache_namespace}:{category.value}",
            clock=clock,
            metrics_collector=metrics_collector,
        )
        governors[category] = CallGovernor(
            category=category,
            config=settings.rate_limit_for(category),
            chain=chain,
            cache=cache,
            model_settings=settings.model_for(category),
            clock=clock,
            metrics_collector=metrics_collector,
            fallback_enabled=settings.fallback_enabled,
        )

    logger.info(f"Content service ready for {[c.value for c in governors]}")
    return ContentService(governors)


__all__ = ["ContentService", "create_content_service"]
