"""
End-to-end tests for the content service.

These tests wire real providers (over httpx.MockTransport), the provider
chain, the result cache and the call ledger together, and check the
behaviour a student-facing application relies on.
"""

from __future__ import annotations

import asyncio
import json

import httpx
import pytest

from call_governor import (
    AnswerSource,
    ContentCategory,
    ContentRequest,
    FileStore,
    GovernorSettings,
    HttpEndpointProvider,
    OpenAIChatProvider,
    ProviderChain,
    RateLimitConfig,
    RetryConfig,
    create_content_service,
    user_message,
)
from call_governor.content.models import LessonContent, canonical_content_adapter
from call_governor.exceptions import ThrottledError

LESSON_BODY = {
    "title": "Fractions",
    "mainContent": [
        {"heading": "Halves", "content": "One of two equal parts."},
        {"heading": "Quarters", "content": "One of four equal parts."},
    ],
    "conclusion": "Fractions are everywhere.",
}


def _settings(**limits) -> GovernorSettings:
    limit = RateLimitConfig(**limits) if limits else RateLimitConfig(3, 20, 30.0)
    return GovernorSettings(
        rate_limits={category: limit for category in ContentCategory},
        metrics_enabled=False,
    )


def _lesson(topic: str = "Fractions") -> ContentRequest:
    return ContentRequest(
        category=ContentCategory.LESSON, subject="Math", topic=topic, grade_level="4-6"
    )


class Endpoint:
    """Counting MockTransport handler serving a JSON-wrapped lesson."""

    def __init__(self, delays: list[float] | None = None, status: int = 200) -> None:
        self.calls = 0
        self.delays = list(delays or [])
        self.status = status

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        self.calls += 1
        if self.delays:
            await asyncio.sleep(self.delays.pop(0))
        if self.status != 200:
            return httpx.Response(self.status, text="unavailable")
        reply = "Here is your lesson:\n```json\n" + json.dumps(LESSON_BODY) + "\n```"
        return httpx.Response(200, json={"message": reply, "usage": {"total_tokens": 321}})


class TestScenarios:
    @pytest.mark.asyncio
    async def test_repeated_request_within_ttl_makes_one_call(self, make_provider):
        """Scenario A: identical lesson requests are answered from cache."""
        provider = make_provider()
        service = create_content_service(ProviderChain([provider]), settings=_settings())

        first = await service.request(_lesson())
        second = await service.request(_lesson())

        assert provider.call_count == 1
        assert first.source is AnswerSource.FRESH
        assert second.source is AnswerSource.CACHED
        assert second.content == first.content

    @pytest.mark.asyncio
    async def test_ledger_denial_serves_fallback_without_network(self, make_provider):
        """Scenario B: a second topic inside the minute window gets fallback content."""
        provider = make_provider()
        service = create_content_service(
            ProviderChain([provider]),
            settings=_settings(max_calls_per_minute=1, max_calls_per_hour=20),
        )

        await service.request(_lesson("Fractions"))
        result = await service.request(_lesson("Decimals"))

        assert provider.call_count == 1
        assert result.is_fallback
        assert isinstance(result.content, LessonContent)
        assert result.content.chapters

    @pytest.mark.asyncio
    async def test_timeout_then_success_records_one_call(self):
        """Scenario C: the first attempt hangs, the retry succeeds."""
        endpoint = Endpoint(delays=[5.0])
        async with httpx.AsyncClient(transport=httpx.MockTransport(endpoint)) as client:
            chain = ProviderChain(
                [HttpEndpointProvider("https://edge.test/chat", client=client, name="edge")],
                retry=RetryConfig(
                    max_rounds=2, initial_delay=0.0, max_delay=0.0, request_timeout=0.1
                ),
            )
            service = create_content_service(chain, settings=_settings())

            result = await service.request(_lesson())

        governor = service.governor(ContentCategory.LESSON)
        assert endpoint.calls == 2
        assert result.source is AnswerSource.FRESH
        assert [c.heading for c in result.content.chapters] == ["Halves", "Quarters"]
        assert governor.ledger.calls_last_hour == 1


class TestProviderFailover:
    @pytest.mark.asyncio
    async def test_edge_down_falls_back_to_openai(self):
        edge = Endpoint(status=503)
        openai_calls = []

        def openai(request: httpx.Request) -> httpx.Response:
            openai_calls.append(json.loads(request.content))
            return httpx.Response(
                200,
                json={"choices": [{"message": {"content": json.dumps(LESSON_BODY)}}]},
            )

        async with httpx.AsyncClient(transport=httpx.MockTransport(edge)) as edge_client, \
                httpx.AsyncClient(transport=httpx.MockTransport(openai)) as openai_client:
            chain = ProviderChain(
                [
                    HttpEndpointProvider("https://edge.test/chat", client=edge_client),
                    OpenAIChatProvider(api_key="sk-test", client=openai_client),
                ],
                retry=RetryConfig(max_rounds=1),
            )
            service = create_content_service(chain, settings=_settings())
            result = await service.request(_lesson())

        assert edge.calls == 1
        assert len(openai_calls) == 1
        assert openai_calls[0]["max_tokens"] == 1500
        assert result.source is AnswerSource.FRESH

    @pytest.mark.asyncio
    async def test_everything_down_serves_fallback(self):
        endpoint = Endpoint(status=500)
        async with httpx.AsyncClient(transport=httpx.MockTransport(endpoint)) as client:
            chain = ProviderChain(
                [HttpEndpointProvider("https://edge.test/chat", client=client)],
                retry=RetryConfig(max_rounds=2, initial_delay=0.0, max_delay=0.0),
            )
            service = create_content_service(chain, settings=_settings())
            result = await service.request(_lesson())

        assert endpoint.calls == 2
        assert result.is_fallback
        restored = canonical_content_adapter.validate_python(
            result.content.model_dump(mode="json")
        )
        assert restored == result.content


class TestPersistenceAcrossRestarts:
    @pytest.mark.asyncio
    async def test_file_store_survives_new_service(self, tmp_path, make_provider):
        path = tmp_path / "cache.json"
        first_provider = make_provider()
        first = create_content_service(
            ProviderChain([first_provider]), store=FileStore(path), settings=_settings()
        )
        await first.request(_lesson())

        second_provider = make_provider()
        second = create_content_service(
            ProviderChain([second_provider]), store=FileStore(path), settings=_settings()
        )
        result = await second.request(_lesson())

        assert result.source is AnswerSource.CACHED
        assert second_provider.call_count == 0


class TestConcurrency:
    @pytest.mark.asyncio
    async def test_burst_of_identical_requests_makes_one_call(self, make_provider):
        provider = make_provider()
        provider.gate = asyncio.Event()
        service = create_content_service(ProviderChain([provider]), settings=_settings())

        pending = [asyncio.ensure_future(service.request(_lesson())) for _ in range(5)]
        await asyncio.sleep(0.01)
        provider.gate.set()
        results = await asyncio.gather(*pending)

        assert provider.call_count == 1
        assert all(r.content == results[0].content for r in results)


class TestUserFacingErrors:
    @pytest.mark.asyncio
    async def test_throttled_error_maps_to_wait_message(self, make_provider):
        settings = _settings(max_calls_per_minute=1, max_calls_per_hour=20)
        settings.fallback_enabled = False
        service = create_content_service(ProviderChain([make_provider()]), settings=settings)

        await service.request(_lesson("Fractions"))
        with pytest.raises(ThrottledError) as exc_info:
            await service.request(_lesson("Decimals"))

        assert "wait" in user_message(exc_info.value)
