# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Configuration for the Call Governor

This module provides configuration classes for the governor, including
per-category rate limits, model settings and the provider retry policy.
"""

import os
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from enum import Enum

from .exceptions import ConfigurationError


class ContentCategory(Enum):
    """Kinds of AI-generated content, each governed by its own instance.

    - LESSON: Multi-section lessons with images and an activity.
    - QUIZ: Question lists with options and explanations.
    - GAME: Offline learning games built from household materials.
    - CHAT: Learning Buddy conversational replies.
    """

    LESSON = "lesson"
    QUIZ = "quiz"
    GAME = "game"
    CHAT = "chat"


@dataclass(frozen=True)
class RateLimitConfig:
    """
    Rate limit configuration for one governor instance.

    Immutable once constructed. Different content categories use distinct
    instances and therefore distinct governors.
    """

    max_calls_per_minute: int = 10
    """Maximum permitted calls within any trailing 60 seconds."""

    max_calls_per_hour: int = 100
    """Maximum permitted calls within any trailing 3600 seconds."""

    cache_ttl_minutes: float = 30.0
    """Lifetime of cached results in minutes."""

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        if self.max_calls_per_minute < 1:
            raise ValueError("max_calls_per_minute must be at least 1")
        if self.max_calls_per_hour < 1:
            raise ValueError("max_calls_per_hour must be at least 1")
        if self.max_calls_per_hour < self.max_calls_per_minute:
            raise ValueError(
                "max_calls_per_hour must be greater than or equal to "
                "max_calls_per_minute"
            )
        if self.cache_ttl_minutes <= 0:
            raise ValueError("cache_ttl_minutes must be positive")


@dataclass(frozen=True)
class RetryConfig:
    """
    Bounded retry policy for the provider chain.

    Each round tries every provider once, in priority order. Between rounds
    the chain waits initial_delay * backoff_base ** round, capped at max_delay.
    """

    max_rounds: int = 2
    """Number of passes over the provider list before giving up."""

    initial_delay: float = 1.0
    """Base delay in seconds before the second round."""

    backoff_base: float = 2.0
    """Base for exponential backoff calculation."""

    max_delay: float = 5.0
    """Maximum delay between rounds in seconds."""

    request_timeout: float = 30.0
    """Wall-clock timeout for a single provider attempt in seconds."""

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        if self.max_rounds < 1:
            raise ValueError("max_rounds must be at least 1")
        if self.initial_delay < 0:
            raise ValueError("initial_delay must be non-negative")
        if self.backoff_base < 1.0:
            raise ValueError("backoff_base must be at least 1.0")
        if self.max_delay < self.initial_delay:
            raise ValueError("max_delay must be >= initial_delay")
        if self.request_timeout <= 0:
            raise ValueError("request_timeout must be positive")

    def delay_for_round(self, completed_rounds: int) -> float:
        """Delay to wait after `completed_rounds` full rounds have failed."""
        delay = self.initial_delay * (self.backoff_base**completed_rounds)
        return min(delay, self.max_delay)


@dataclass(frozen=True)
class ModelSettings:
    """Model selection and output budget for one content category."""

    model: str = "gpt-3.5-turbo"
    max_tokens: int = 1000
    temperature: float = 0.7

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        if not self.model:
            raise ValueError("model must be a non-empty string")
        if self.max_tokens < 1:
            raise ValueError("max_tokens must be at least 1")
        if not 0.0 <= self.temperature <= 2.0:
            raise ValueError("temperature must be between 0.0 and 2.0")


DEFAULT_RATE_LIMITS: dict[ContentCategory, RateLimitConfig] = {
    ContentCategory.LESSON: RateLimitConfig(3, 20, 30.0),
    ContentCategory.QUIZ: RateLimitConfig(5, 30, 30.0),
    ContentCategory.GAME: RateLimitConfig(3, 20, 30.0),
    ContentCategory.CHAT: RateLimitConfig(8, 50, 30.0),
}

DEFAULT_MODEL_SETTINGS: dict[ContentCategory, ModelSettings] = {
    ContentCategory.LESSON: ModelSettings(max_tokens=1500),
    ContentCategory.QUIZ: ModelSettings(max_tokens=800),
    ContentCategory.GAME: ModelSettings(max_tokens=1000),
    ContentCategory.CHAT: ModelSettings(max_tokens=800),
}

ENV_PREFIX = "CALL_GOVERNOR_"


@dataclass
class GovernorSettings:
    """
    Settings for a whole content service: one entry per content category.

    This is the configuration handed to create_content_service(). Categories
    missing from rate_limits or models fall back to the module defaults.
    """

    rate_limits: dict[ContentCategory, RateLimitConfig] = field(
        default_factory=lambda: dict(DEFAULT_RATE_LIMITS)
    )
    """Per-category call ceilings and cache TTL."""

    models: dict[ContentCategory, ModelSettings] = field(
        default_factory=lambda: dict(DEFAULT_MODEL_SETTINGS)
    )
    """Per-category model and token budget."""

    retry: RetryConfig | None = None
    """Retry policy applied to the provider chain. None keeps the chain's own."""

    cache_namespace: str = "call_governor"
    """Prefix for keys written to the persistent store."""

    fallback_enabled: bool = True
    """Serve static fallback content when live generation is unavailable."""

    metrics_enabled: bool = True
    """Record metrics through the unified collector."""

    def rate_limit_for(self, category: ContentCategory) -> RateLimitConfig:
        return self.rate_limits.get(category, DEFAULT_RATE_LIMITS[category])

    def model_for(self, category: ContentCategory) -> ModelSettings:
        return self.models.get(category, DEFAULT_MODEL_SETTINGS[category])

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "GovernorSettings":
        """
        Build settings from defaults plus CALL_GOVERNOR_* overrides.

        Recognised variables:
            CALL_GOVERNOR_CACHE_TTL_MINUTES: TTL applied to every category
            CALL_GOVERNOR_MODEL: model applied to every category
            CALL_GOVERNOR_REQUEST_TIMEOUT: per-attempt timeout in seconds
            CALL_GOVERNOR_MAX_RETRY_ROUNDS: provider chain rounds
            CALL_GOVERNOR_FALLBACK_ENABLED: "0"/"false" disables fallbacks

        Raises:
            ConfigurationError: If a variable cannot be parsed
        """
        env = os.environ if environ is None else environ
        settings = cls()

        def _get(name: str) -> str | None:
            value = env.get(f"{ENV_PREFIX}{name}")
            return value.strip() if value else None

        try:
            ttl = _get("CACHE_TTL_MINUTES")
            if ttl is not None:
                settings.rate_limits = {
                    category: replace(limits, cache_ttl_minutes=float(ttl))
                    for category, limits in settings.rate_limits.items()
                }

            model = _get("MODEL")
            if model is not None:
                settings.models = {
                    category: replace(model_settings, model=model)
                    for category, model_settings in settings.models.items()
                }

            timeout = _get("REQUEST_TIMEOUT")
            if timeout is not None:
                settings.retry = replace(
                    settings.retry or RetryConfig(), request_timeout=float(timeout)
                )

            rounds = _get("MAX_RETRY_ROUNDS")
            if rounds is not None:
                settings.retry = replace(
                    settings.retry or RetryConfig(), max_rounds=int(rounds)
                )
        except ValueError as e:
            raise ConfigurationError(f"Invalid {ENV_PREFIX}* setting: {e}") from e

        fallback = _get("FALLBACK_ENABLED")
        if fallback is not None:
            settings.fallback_enabled = fallback.lower() not in ("0", "false", "no")

        return settings


__all__ = [
    "DEFAULT_MODEL_SETTINGS",
    "DEFAULT_RATE_LIMITS",
    "ContentCategory",
    "GovernorSettings",
    "ModelSettings",
    "RateLimitConfig",
    "RetryConfig",
]
