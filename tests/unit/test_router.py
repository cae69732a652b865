"""Tests for the rate limiter and generation router."""

import pytest

from specwizard.core import config
from specwizard.core.config import RateLimitConfig
from specwizard.core.exceptions import GenerationProviderError, GenerationTimeoutError
from specwizard.domain.models.completeness import CompletenessState
from specwizard.domain.models.conversation import ConversationContext, ConversationStage
from specwizard.domain.models.message import user_message
from specwizard.domain.models.specification import empty_specification
from specwizard.llm.router import (
    FALLBACK_RESPONSE,
    GenerationRouter,
    RateLimiter,
    build_generation_router,
    fallback_chunks,
    history_messages,
)


class FakeTime:
    """Monotonic clock whose sleep advances time instantly."""

    def __init__(self):
        self.now = 0.0
        self.sleeps = []

    def clock(self):
        return self.now

    async def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds


class FakeClient:
    def __init__(self, chunks=(), error=None, fail_after=None):
        self.chunks = list(chunks)
        self.error = error
        self.fail_after = fail_after
        self.calls = []

    async def stream(self, messages, system=None):
        self.calls.append((messages, system))
        for i, chunk in enumerate(self.chunks):
            if self.fail_after is not None and i == self.fail_after:
                raise self.error
            yield chunk
        if self.error is not None and self.fail_after is None:
            raise self.error


@pytest.fixture
def context():
    return ConversationContext(
        session_id="s1",
        stage=ConversationStage.DISCOVERY,
        history=[user_message("I want a booking site")],
        specification=empty_specification("s1"),
        completeness=CompletenessState(),
    )


@pytest.fixture
def limiter():
    return RateLimiter(max_requests=100)


class TestRateLimiter:
    async def test_waits_for_oldest_request_to_expire(self):
        fake = FakeTime()
        limiter = RateLimiter(
            max_requests=2, window_seconds=60.0, clock=fake.clock, sleep=fake.sleep
        )

        assert await limiter.acquire() == 0.0
        fake.now = 10.0
        assert await limiter.acquire() == 0.0

        waited = await limiter.acquire()

        assert waited == 50.0
        assert fake.sleeps == [50.0]
        assert limiter.in_window == 2

    def test_try_acquire_never_waits(self):
        fake = FakeTime()
        limiter = RateLimiter(max_requests=1, window_seconds=1.0, clock=fake.clock)

        assert limiter.try_acquire() is True
        assert limiter.try_acquire() is False
        fake.now = 1.0
        assert limiter.try_acquire() is True

    def test_from_config(self):
        limiter = RateLimiter.from_config(
            RateLimitConfig(max_requests_per_minute=5, window_seconds=30)
        )
        assert limiter.max_requests == 5
        assert limiter.window_seconds == 30


class TestGenerationRouter:
    async def test_streams_from_primary(self, context, limiter):
        primary = FakeClient(chunks=["Who ", "uses it?"])
        router = GenerationRouter(
            {"anthropic": primary, "openai": FakeClient()},
            limiter,
            primary="anthropic",
            fallback="openai",
        )

        reply = await router.generate("system prompt", context)

        assert reply == "Who uses it?"
        messages, system = primary.calls[0]
        assert system == "system prompt"
        assert messages == [{"role": "user", "content": "I want a booking site"}]

    async def test_falls_back_to_alternate_provider(self, context, limiter):
        primary = FakeClient(error=GenerationTimeoutError("slow", provider="anthropic"))
        fallback = FakeClient(chunks=["From the fallback"])
        router = GenerationRouter(
            {"anthropic": primary, "openai": fallback},
            limiter,
            primary="anthropic",
            fallback="openai",
        )

        assert await router.generate("prompt", context) == "From the fallback"
        assert len(primary.calls) == 1
        assert len(fallback.calls) == 1

    async def test_canned_reply_when_every_provider_fails(self, context, limiter):
        router = GenerationRouter(
            {
                "anthropic": FakeClient(error=GenerationProviderError("down")),
                "openai": FakeClient(error=RuntimeError("also down")),
            },
            limiter,
            primary="anthropic",
            fallback="openai",
        )

        chunks = [c async for c in router.stream("prompt", context)]

        assert len(chunks) > 1
        assert "".join(chunks) == FALLBACK_RESPONSE
        assert "magic link" in FALLBACK_RESPONSE

    async def test_canned_reply_without_clients(self, context, limiter):
        router = GenerationRouter({}, limiter, primary="anthropic", fallback="openai")
        assert await router.generate("prompt", context) == FALLBACK_RESPONSE

    async def test_interrupted_stream_is_not_retried(self, context, limiter):
        primary = FakeClient(
            chunks=["Partial ", "reply", "never sent"],
            error=GenerationTimeoutError("slow"),
            fail_after=2,
        )
        fallback = FakeClient(chunks=["Duplicate"])
        router = GenerationRouter(
            {"anthropic": primary, "openai": fallback},
            limiter,
            primary="anthropic",
            fallback="openai",
        )

        assert await router.generate("prompt", context) == "Partial reply"
        assert fallback.calls == []

    async def test_explicit_provider_is_used(self, context, limiter):
        openai = FakeClient(chunks=["openai"])
        router = GenerationRouter(
            {"anthropic": FakeClient(chunks=["anthropic"]), "openai": openai},
            limiter,
            primary="anthropic",
            fallback="openai",
        )
        assert await router.generate("prompt", context, provider="openai") == "openai"

    async def test_every_turn_takes_a_rate_limit_slot(self, context):
        limiter = RateLimiter(max_requests=10)
        router = GenerationRouter(
            {"anthropic": FakeClient(chunks=["hi"])}, limiter, primary="anthropic", fallback=""
        )

        await router.generate("prompt", context)
        await router.generate("prompt", context)

        assert limiter.in_window == 2

    def test_provider_selection(self, limiter):
        router = GenerationRouter(
            {"openai": FakeClient()}, limiter, primary="anthropic", fallback="openai"
        )
        assert router.select_provider() == "openai"
        assert router.alternate_for("openai") is None


def test_fallback_chunks_rejoin_exactly():
    assert "".join(fallback_chunks(FALLBACK_RESPONSE)) == FALLBACK_RESPONSE


def test_history_messages(context):
    assert history_messages(context) == [
        {"role": "user", "content": "I want a booking site"}
    ]


def test_build_router_skips_providers_without_keys(monkeypatch):
    monkeypatch.setattr(config.settings, "llm_primary_provider", "anthropic")
    monkeypatch.setattr(config.settings, "llm_fallback_provider", "openai")
    monkeypatch.setattr(config.settings, "anthropic_api_key", None)
    monkeypatch.setattr(config.settings, "openai_api_key", "sk-test")

    router = build_generation_router(RateLimiter(max_requests=10))

    assert list(router.clients) == ["openai"]
    assert router.select_provider() == "openai"
