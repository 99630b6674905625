"""Tests for the CallGovernor state machine."""

import asyncio
import sys

import pytest

from call_governor.backends import MemoryStore
from call_governor.cache import ResultCache
from call_governor.config import ContentCategory, RateLimitConfig
from call_governor.content.models import LessonContent, QuizContent
from call_governor.content.prompts import ContentRequest
from call_governor.exceptions import (
    ConfigurationError,
    MalformedResponseError,
    ProviderChainExhaustedError,
    ThrottledError,
    TransportError,
)
from call_governor.governor import AnswerSource, CallGovernor
from call_governor.observability.constants import (
    FALLBACKS_SERVED_TOTAL,
    INFLIGHT_COALESCED_TOTAL,
    LEDGER_CALLS,
    REQUESTS_FAILED_TOTAL,
    REQUESTS_TOTAL,
    THROTTLED_TOTAL,
)
from call_governor.providers import ChatTurn, ProviderChain


@pytest.fixture
def build(clock, metrics, fast_retry):
    """Build a governor around a scripted provider."""

    def _build(provider, category=ContentCategory.LESSON, limits=None, **kwargs):
        chain = ProviderChain([provider], retry=fast_retry)
        return CallGovernor(
            category,
            limits or RateLimitConfig(3, 20, 30.0),
            chain,
            clock=clock,
            metrics_collector=metrics,
            **kwargs,
        )

    return _build


class TestContentRequests:
    @pytest.mark.asyncio
    async def test_fresh_then_cached(self, build, make_provider, lesson_request, metrics):
        provider = make_provider()
        governor = build(provider)

        first = await governor.request(lesson_request)
        second = await governor.request(lesson_request)

        assert first.source is AnswerSource.FRESH
        assert second.source is AnswerSource.CACHED
        assert isinstance(second.content, LessonContent)
        assert second.content == first.content
        assert first.fingerprint == second.fingerprint
        assert provider.call_count == 1
        assert governor.ledger.calls_last_hour == 1
        assert metrics.get_counter(
            REQUESTS_TOTAL, {"category": "lesson", "source": "cached"}
        ) == 1
        assert metrics.get_metrics()["gauges"][LEDGER_CALLS]["category=lesson"] == 1

    @pytest.mark.asyncio
    async def test_skip_cache_forces_call(self, build, make_provider, lesson_request):
        provider = make_provider()
        governor = build(provider)
        await governor.request(lesson_request)

        forced = lesson_request.model_copy(update={"skip_cache": True})
        result = await governor.request(forced)

        assert result.source is AnswerSource.FRESH
        assert provider.call_count == 2

    @pytest.mark.asyncio
    async def test_cache_expires_after_ttl(self, build, make_provider, lesson_request, clock):
        provider = make_provider()
        governor = build(provider, limits=RateLimitConfig(3, 20, cache_ttl_minutes=1))
        await governor.request(lesson_request)
        clock.advance(61)

        result = await governor.request(lesson_request)

        assert result.source is AnswerSource.FRESH
        assert provider.call_count == 2

    @pytest.mark.asyncio
    async def test_category_mismatch(self, build, make_provider, quiz_request):
        governor = build(make_provider())
        with pytest.raises(ConfigurationError):
            await governor.request(quiz_request)


class TestThrottling:
    @pytest.mark.asyncio
    async def test_throttled_serves_stale_cache(self, build, make_provider, lesson_request):
        provider = make_provider()
        governor = build(provider, limits=RateLimitConfig(1, 10, 30.0))
        await governor.request(lesson_request)

        result = await governor.request(lesson_request.model_copy(update={"skip_cache": True}))

        assert result.source is AnswerSource.STALE
        assert provider.call_count == 1

    @pytest.mark.asyncio
    async def test_throttled_serves_fallback(self, build, make_provider, metrics):
        provider = make_provider()
        governor = build(provider, limits=RateLimitConfig(1, 10, 30.0))
        await governor.request(
            ContentRequest(category=ContentCategory.LESSON, topic="Fractions")
        )

        result = await governor.request(
            ContentRequest(category=ContentCategory.LESSON, topic="Decimals")
        )

        assert result.is_fallback
        assert result.content.title == "Learning about Decimals"
        assert provider.call_count == 1
        assert metrics.get_counter(THROTTLED_TOTAL, {"category": "lesson"}) == 1
        assert metrics.get_counter(
            FALLBACKS_SERVED_TOTAL, {"category": "lesson", "reason": "throttled"}
        ) == 1

    @pytest.mark.asyncio
    async def test_throttled_without_fallback_raises(self, build, make_provider, clock):
        governor = build(
            make_provider(), limits=RateLimitConfig(1, 10, 30.0), fallback_enabled=False
        )
        await governor.request(ContentRequest(category=ContentCategory.LESSON, topic="A"))
        clock.advance(15)

        with pytest.raises(ThrottledError) as exc_info:
            await governor.request(ContentRequest(category=ContentCategory.LESSON, topic="B"))

        assert exc_info.value.category == "lesson"
        assert exc_info.value.retry_after == pytest.approx(45.0)

    @pytest.mark.asyncio
    async def test_denied_calls_are_not_recorded(self, build, make_provider):
        governor = build(make_provider(), limits=RateLimitConfig(1, 10, 30.0))
        for topic in ("A", "B", "C"):
            await governor.request(ContentRequest(category=ContentCategory.LESSON, topic=topic))
        assert governor.ledger.calls_last_hour == 1

    @pytest.mark.asyncio
    async def test_concurrent_distinct_requests_respect_ceiling(self, build, make_provider):
        provider = make_provider()
        provider.gate = asyncio.Event()
        governor = build(provider, limits=RateLimitConfig(1, 1, 30.0))

        pending = [
            asyncio.ensure_future(
                governor.request(ContentRequest(category=ContentCategory.LESSON, topic=topic))
            )
            for topic in ("A", "B", "C", "D", "E")
        ]
        await asyncio.sleep(0.01)
        provider.gate.set()
        results = await asyncio.gather(*pending)

        assert provider.call_count == 1
        assert [r.source for r in results].count(AnswerSource.FRESH) == 1
        assert sum(r.is_fallback for r in results) == 4
        assert governor.ledger.calls_last_hour == 1

    @pytest.mark.asyncio
    async def test_failed_call_frees_its_slot(self, build, make_provider, lesson_reply):
        provider = make_provider(
            [TransportError("down"), TransportError("down"), lesson_reply]
        )
        governor = build(provider, limits=RateLimitConfig(1, 10, 30.0))

        first = await governor.request(ContentRequest(category=ContentCategory.LESSON, topic="A"))
        second = await governor.request(ContentRequest(category=ContentCategory.LESSON, topic="B"))

        assert first.is_fallback
        assert second.source is AnswerSource.FRESH
        assert governor.ledger.calls_last_hour == 1

    @pytest.mark.asyncio
    async def test_throttled_request_counts_one_miss(self, build, make_provider):
        governor = build(make_provider(), limits=RateLimitConfig(1, 10, 30.0))
        await governor.request(ContentRequest(category=ContentCategory.LESSON, topic="A"))

        result = await governor.request(ContentRequest(category=ContentCategory.LESSON, topic="B"))

        assert result.is_fallback
        assert governor.cache.metrics.misses == 2


class TestDegradedFingerprint:
    @pytest.mark.asyncio
    async def test_degraded_key_is_not_cached(
        self, build, make_provider, lesson_request, monkeypatch
    ):
        def fail(descriptor):
            raise TypeError("not serializable")

        monkeypatch.setattr(sys.modules["call_governor.fingerprint"], "canonicalize", fail)
        provider = make_provider()
        governor = build(provider)

        first = await governor.request(lesson_request)
        second = await governor.request(lesson_request)

        assert first.fingerprint.startswith("request-")
        assert first.source is AnswerSource.FRESH
        assert second.source is AnswerSource.FRESH
        assert provider.call_count == 2
        assert len(governor.cache) == 0


class TestFailureRecovery:
    @pytest.mark.asyncio
    async def test_transport_failure_serves_fallback(
        self, build, make_provider, lesson_request, metrics
    ):
        provider = make_provider([TransportError("down")])
        governor = build(provider)

        result = await governor.request(lesson_request)

        assert result.is_fallback
        assert provider.call_count == 2
        assert governor.ledger.calls_last_hour == 0
        assert metrics.get_counter(
            FALLBACKS_SERVED_TOTAL, {"category": "lesson", "reason": "transport"}
        ) == 1

    @pytest.mark.asyncio
    async def test_transport_failure_without_fallback_raises(
        self, build, make_provider, lesson_request, metrics
    ):
        governor = build(make_provider([TransportError("down")]), fallback_enabled=False)

        with pytest.raises(ProviderChainExhaustedError):
            await governor.request(lesson_request)

        assert metrics.get_counter(
            REQUESTS_FAILED_TOTAL, {"category": "lesson", "reason": "transport"}
        ) == 1

    @pytest.mark.asyncio
    async def test_failure_after_cache_serves_stale(
        self, build, make_provider, lesson_request, lesson_reply
    ):
        provider = make_provider([lesson_reply, TransportError("down")])
        governor = build(provider)
        await governor.request(lesson_request)

        result = await governor.request(lesson_request.model_copy(update={"skip_cache": True}))

        assert result.source is AnswerSource.STALE

    @pytest.mark.asyncio
    async def test_unparseable_reply_serves_fallback(self, build, make_provider, lesson_request):
        governor = build(make_provider(["Sorry, I can't do that."]))
        result = await governor.request(lesson_request)
        assert result.is_fallback

    @pytest.mark.asyncio
    async def test_unparseable_reply_without_fallback(
        self, build, make_provider, lesson_request
    ):
        governor = build(make_provider(['{"title": "No chapters"}']), fallback_enabled=False)
        with pytest.raises(MalformedResponseError):
            await governor.request(lesson_request)
        assert governor.ledger.calls_last_hour == 0

    @pytest.mark.asyncio
    async def test_empty_quiz_serves_fallback(self, build, make_provider, quiz_request):
        governor = build(make_provider(['{"questions": []}']), category=ContentCategory.QUIZ)

        result = await governor.request(quiz_request)

        assert result.is_fallback
        assert isinstance(result.content, QuizContent)
        assert len(result.content.questions) == 3

    @pytest.mark.asyncio
    async def test_quiz_is_padded(self, build, make_provider, quiz_request, quiz_reply):
        governor = build(make_provider([quiz_reply]), category=ContentCategory.QUIZ)
        result = await governor.request(quiz_request)
        assert result.source is AnswerSource.FRESH
        assert len(result.content.questions) == 3

    @pytest.mark.asyncio
    async def test_unreadable_cached_content_is_replaced(
        self, build, make_provider, lesson_request
    ):
        provider = make_provider()
        governor = build(provider)
        first = await governor.request(lesson_request)
        governor.cache.put(first.fingerprint, {"kind": "lesson", "chapters": []}, 30)

        result = await governor.request(lesson_request)

        assert result.source is AnswerSource.FRESH
        assert provider.call_count == 2


class TestInFlight:
    @pytest.mark.asyncio
    async def test_identical_requests_share_one_call(
        self, build, make_provider, lesson_request, metrics
    ):
        provider = make_provider()
        provider.gate = asyncio.Event()
        governor = build(provider)

        first = asyncio.ensure_future(governor.request(lesson_request))
        second = asyncio.ensure_future(governor.request(lesson_request))
        await asyncio.sleep(0.01)
        assert governor.inflight == 1
        provider.gate.set()
        a, b = await asyncio.gather(first, second)

        assert provider.call_count == 1
        assert a.content == b.content
        assert governor.inflight == 0
        assert metrics.get_counter(INFLIGHT_COALESCED_TOTAL, {"category": "lesson"}) == 1

    @pytest.mark.asyncio
    async def test_cancelled_caller_still_populates_cache(
        self, build, make_provider, lesson_request
    ):
        provider = make_provider()
        provider.gate = asyncio.Event()
        governor = build(provider)

        caller = asyncio.ensure_future(governor.request(lesson_request))
        await asyncio.sleep(0.01)
        caller.cancel()
        with pytest.raises(asyncio.CancelledError):
            await caller

        provider.gate.set()
        await asyncio.sleep(0.05)

        result = await governor.request(lesson_request)
        assert result.source is AnswerSource.CACHED
        assert provider.call_count == 1
        assert governor.ledger.calls_last_hour == 1

    @pytest.mark.asyncio
    async def test_different_requests_do_not_share(self, build, make_provider):
        provider = make_provider()
        governor = build(provider)
        await asyncio.gather(
            governor.request(ContentRequest(category=ContentCategory.LESSON, topic="A")),
            governor.request(ContentRequest(category=ContentCategory.LESSON, topic="B")),
        )
        assert provider.call_count == 2


class TestComplete:
    TURNS = [ChatTurn("user", "What is a fraction?")]

    @pytest.mark.asyncio
    async def test_complete_caches_response(self, build, make_provider):
        provider = make_provider(["A part of a whole."])
        governor = build(provider, category=ContentCategory.CHAT)

        first = await governor.complete(self.TURNS)
        second = await governor.complete(self.TURNS)

        assert first.content == second.content == "A part of a whole."
        assert second.provider == "fake"
        assert provider.call_count == 1

    @pytest.mark.asyncio
    async def test_complete_throttled_raises(self, build, make_provider):
        governor = build(
            make_provider(["ok"]),
            category=ContentCategory.CHAT,
            limits=RateLimitConfig(1, 10, 30.0),
        )
        await governor.complete(self.TURNS)

        with pytest.raises(ThrottledError):
            await governor.complete([ChatTurn("user", "Something else")])

    @pytest.mark.asyncio
    async def test_complete_throttled_uses_cache(self, build, make_provider):
        governor = build(
            make_provider(["ok"]),
            category=ContentCategory.CHAT,
            limits=RateLimitConfig(1, 10, 30.0),
        )
        await governor.complete(self.TURNS)
        response = await governor.complete(self.TURNS, skip_cache=True)
        assert response.content == "ok"

    @pytest.mark.asyncio
    async def test_complete_transport_failure_propagates(self, build, make_provider):
        governor = build(make_provider([TransportError("down")]), category=ContentCategory.CHAT)
        with pytest.raises(TransportError):
            await governor.complete(self.TURNS)


class TestPersistence:
    @pytest.mark.asyncio
    async def test_restart_reads_persistent_tier(
        self, clock, make_provider, fast_retry, lesson_request
    ):
        store = MemoryStore()

        def governor_for(provider):
            return CallGovernor(
                ContentCategory.LESSON,
                RateLimitConfig(3, 20, 30.0),
                ProviderChain([provider], retry=fast_retry),
                cache=ResultCache(store=store, namespace="lesson", clock=clock),
                clock=clock,
            )

        await governor_for(make_provider()).request(lesson_request)
        provider = make_provider()
        result = await governor_for(provider).request(lesson_request)

        assert result.source is AnswerSource.CACHED
        assert provider.call_count == 0

    def test_get_stats(self, build, make_provider):
        stats = build(make_provider()).get_stats()
        assert stats["category"] == "lesson"
        assert stats["calls_last_minute"] == 0
        assert stats["inflight"] == 0
        assert stats["cache"]["size"] == 0
