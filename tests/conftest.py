"""Shared fixtures for call governor tests."""

from __future__ import annotations

import asyncio
import json
from typing import Any

import pytest

from call_governor.config import ContentCategory, RateLimitConfig, RetryConfig
from call_governor.content.prompts import ContentRequest
from call_governor.exceptions import TransportError
from call_governor.observability.collector import (
    UnifiedMetricsCollector,
    reset_metrics_collector,
)
from call_governor.providers.base import (
    ChatOptions,
    ChatTurn,
    ContentProvider,
    ProviderResponse,
)

LESSON_REPLY = json.dumps(
    {
        "title": "Fractions",
        "introduction": "Fractions describe parts of a whole.",
        "chapters": [
            {"heading": "Halves", "text": "A half is one of two equal parts."},
            {"heading": "Quarters", "text": "A quarter is one of four equal parts."},
        ],
        "funFacts": ["Pizza slices are fractions."],
        "activity": {"title": "Fold paper", "instructions": "Fold a sheet in half."},
        "conclusion": "Fractions are everywhere.",
    }
)

QUIZ_REPLY = json.dumps(
    {
        "title": "Fractions Quiz",
        "questions": [
            {
                "question": "What is half of 10?",
                "options": ["2", "5", "10"],
                "correctAnswer": 1,
                "explanation": "10 / 2 = 5",
            }
        ],
    }
)


class FakeClock:
    """Manually advanced clock returning epoch-like seconds."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeProvider(ContentProvider):
    """
    Scripted provider. Each invoke pops the next outcome: a string reply, an
    exception to raise, or a float meaning "hang for that many seconds".
    The last outcome repeats once the script runs out.
    """

    def __init__(self, outcomes: list[Any] | None = None, name: str = "fake") -> None:
        self.outcomes = list(outcomes or [LESSON_REPLY])
        self._name = name
        self.calls: list[list[ChatTurn]] = []
        self.gate: asyncio.Event | None = None

    @property
    def name(self) -> str:
        return self._name

    async def invoke(
        self, turns: list[ChatTurn], options: ChatOptions
    ) -> ProviderResponse:
        self.calls.append(list(turns))
        outcome = self.outcomes.pop(0) if len(self.outcomes) > 1 else self.outcomes[0]
        if self.gate is not None:
            await self.gate.wait()
        if isinstance(outcome, BaseException):
            raise outcome
        if isinstance(outcome, float):
            await asyncio.sleep(outcome)
            raise TransportError("hung provider finished late", endpoint=self.name)
        return ProviderResponse(content=outcome, model=options.model)

    @property
    def call_count(self) -> int:
        return len(self.calls)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def metrics() -> UnifiedMetricsCollector:
    return UnifiedMetricsCollector(enable_prometheus=False)


@pytest.fixture(autouse=True)
def _reset_global_collector():
    reset_metrics_collector()
    yield
    reset_metrics_collector()


@pytest.fixture
def fast_retry() -> RetryConfig:
    return RetryConfig(max_rounds=2, initial_delay=0.0, max_delay=0.0, request_timeout=0.2)


@pytest.fixture
def lesson_limits() -> RateLimitConfig:
    return RateLimitConfig(max_calls_per_minute=3, max_calls_per_hour=20, cache_ttl_minutes=30)


@pytest.fixture
def lesson_request() -> ContentRequest:
    return ContentRequest(
        category=ContentCategory.LESSON,
        subject="Math",
        topic="Fractions",
        grade_level="4-6",
    )


@pytest.fixture
def quiz_request() -> ContentRequest:
    return ContentRequest(
        category=ContentCategory.QUIZ,
        subject="Math",
        topic="Fractions",
        grade_level="4-6",
        question_count=3,
    )


@pytest.fixture
def make_provider():
    """Factory for scripted providers."""
    return FakeProvider


@pytest.fixture
def lesson_reply() -> str:
    return LESSON_REPLY


@pytest.fixture
def quiz_reply() -> str:
    return QUIZ_REPLY
