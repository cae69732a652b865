"""Tests for generation clients over a mocked HTTP transport."""

import json

import httpx
import pytest

from specwizard.core.exceptions import (
    ConfigurationError,
    GenerationProviderError,
    GenerationRateLimitError,
    GenerationTimeoutError,
)
from specwizard.llm import client as llm_client
from specwizard.llm.client import AnthropicClient, OpenAIClient, get_llm_client

MESSAGES = [
    {"role": "system", "content": "LOCKED IN DECISIONS"},
    {"role": "user", "content": "I want a booking site"},
]


def anthropic(handler):
    return AnthropicClient(
        model="claude-test",
        temperature=0.7,
        max_tokens=256,
        timeout=5.0,
        api_key="test-key",
        transport=httpx.MockTransport(handler),
    )


def openai(handler):
    return OpenAIClient(
        model="gpt-test",
        temperature=0.7,
        max_tokens=256,
        timeout=5.0,
        api_key="test-key",
        transport=httpx.MockTransport(handler),
    )


def sse(*events):
    lines = [f"data: {json.dumps(e) if isinstance(e, dict) else e}\n\n" for e in events]
    return "".join(lines).encode()


async def collect(client, messages, system=None):
    return [chunk async for chunk in client.stream(messages, system=system)]


class TestAnthropicClient:
    async def test_stream_yields_text_deltas(self):
        body = sse(
            {"type": "message_start"},
            {"type": "content_block_delta", "delta": {"type": "text_delta", "text": "Hello"}},
            {"type": "content_block_delta", "delta": {"type": "text_delta", "text": " there"}},
            {"type": "message_stop"},
        )

        def handler(request):
            assert json.loads(request.content)["stream"] is True
            return httpx.Response(200, content=body)

        chunks = await collect(anthropic(handler), MESSAGES)

        assert chunks == ["Hello", " there"]

    async def test_system_turns_are_folded_into_system_text(self):
        seen = {}

        def handler(request):
            seen["body"] = json.loads(request.content)
            seen["headers"] = request.headers
            return httpx.Response(200, content=sse({"type": "message_stop"}))

        await collect(anthropic(handler), MESSAGES, system="Be helpful")

        assert seen["headers"]["x-api-key"] == "test-key"
        assert seen["body"]["system"] == "Be helpful\n\nLOCKED IN DECISIONS"
        assert seen["body"]["messages"] == [
            {"role": "user", "content": "I want a booking site"}
        ]

    async def test_stream_rate_limit(self):
        with pytest.raises(GenerationRateLimitError) as exc_info:
            await collect(anthropic(lambda request: httpx.Response(429)), MESSAGES)
        assert exc_info.value.provider == "anthropic"

    async def test_server_error_is_not_retried(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(500)

        with pytest.raises(GenerationProviderError):
            await collect(anthropic(handler), MESSAGES)
        assert len(calls) == 1

    async def test_timeout_is_generation_timeout(self):
        def handler(request):
            raise httpx.ReadTimeout("slow", request=request)

        with pytest.raises(GenerationTimeoutError):
            await collect(anthropic(handler), MESSAGES)

    def test_missing_key_is_configuration_error(self, monkeypatch):
        monkeypatch.setattr(llm_client.settings, "anthropic_api_key", None)
        with pytest.raises(ConfigurationError):
            AnthropicClient(model="m", temperature=0.7, max_tokens=10, timeout=1.0)


class TestOpenAIClient:
    async def test_system_prompt_is_prepended(self):
        seen = {}

        def handler(request):
            seen["body"] = json.loads(request.content)
            seen["auth"] = request.headers["authorization"]
            return httpx.Response(200, content=sse("[DONE]"))

        await collect(openai(handler), MESSAGES[1:], system="Be helpful")

        assert seen["auth"] == "Bearer test-key"
        assert seen["body"]["messages"][0] == {"role": "system", "content": "Be helpful"}
        assert seen["body"]["stream"] is True

    async def test_stream_stops_at_done(self):
        body = sse(
            {"choices": [{"delta": {"role": "assistant"}}]},
            {"choices": [{"delta": {"content": "Who"}}]},
            {"choices": [{"delta": {"content": " uses it?"}}]},
            "[DONE]",
            {"choices": [{"delta": {"content": "ignored"}}]},
        )

        chunks = await collect(openai(lambda request: httpx.Response(200, content=body)), MESSAGES)

        assert chunks == ["Who", " uses it?"]

    def test_missing_key_is_configuration_error(self, monkeypatch):
        monkeypatch.setattr(llm_client.settings, "openai_api_key", None)
        with pytest.raises(ConfigurationError):
            OpenAIClient(model="m", temperature=0.7, max_tokens=10, timeout=1.0)


def test_unknown_provider():
    with pytest.raises(ConfigurationError):
        get_llm_client("kimi")
