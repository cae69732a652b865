"""
Text-generation client abstraction for multiple providers.

Provides async interface for generation calls with:
- Structured logging of requests/responses
- Timeout and rate-limit errors mapped to the generation error taxonomy
- Streaming over server-sent events

Supported providers:
- anthropic: Claude models via the Messages API
- openai: OpenAI chat completions (and any OpenAI-compatible endpoint)
"""

import json
from abc import ABC, abstractmethod
from typing import Any, AsyncIterator, Dict, List, Optional

import httpx
import structlog

from specwizard.core.config import settings
from specwizard.core.exceptions import (
    ConfigurationError,
    GenerationProviderError,
    GenerationRateLimitError,
    GenerationTimeoutError,
)

log = structlog.get_logger(__name__)

ChatMessage = Dict[str, str]

# =============================================================================
# Default configuration per provider
# =============================================================================

PROVIDER_DEFAULTS: Dict[str, Dict[str, Any]] = {
    "anthropic": dict(
        model="claude-sonnet-4-6",
        temperature=0.7,
        max_tokens=1024,
        timeout=30.0,
    ),
    "openai": dict(
        model="gpt-4o-mini",
        temperature=0.7,
        max_tokens=1024,
        timeout=30.0,
    ),
}


# =============================================================================
# Base Class
# =============================================================================


class LLMClient(ABC):
    """Abstract base for generation providers."""

    provider_name: str = "unknown"

    def __init__(
        self,
        model: str,
        temperature: float,
        max_tokens: int,
        timeout: float,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.timeout = timeout
        self.transport = transport

    @abstractmethod
    def _endpoint(self) -> str:
        pass

    @abstractmethod
    def _headers(self) -> Dict[str, str]:
        pass

    @abstractmethod
    def _payload(
        self, messages: List[ChatMessage], system: Optional[str], stream: bool
    ) -> Dict[str, Any]:
        pass

    @abstractmethod
    def _parse_stream_event(self, data: str) -> Optional[str]:
        """Text delta carried by one SSE data line, or None."""
        pass

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self.transport)

    async def stream(
        self, messages: List[ChatMessage], system: Optional[str] = None
    ) -> AsyncIterator[str]:
        """
        Stream text deltas over server-sent events.

        No retry here: once text has reached the caller a retry would
        duplicate it. The router handles fallback.
        """
        payload = self._payload(messages, system, stream=True)
        log.debug("llm_stream_start", provider=self.provider_name, model=self.model)
        try:
            async with self._client() as client:
                async with client.stream(
                    "POST", self._endpoint(), headers=self._headers(), json=payload
                ) as response:
                    if response.status_code == 429:
                        raise GenerationRateLimitError(
                            "Rate limit exceeded", provider=self.provider_name
                        )
                    if response.status_code >= 400:
                        raise GenerationProviderError(
                            f"{self.provider_name} returned HTTP {response.status_code}",
                            provider=self.provider_name,
                        )
                    async for line in response.aiter_lines():
                        if not line.startswith("data:"):
                            continue
                        data = line[len("data:"):].strip()
                        if data == "[DONE]":
                            break
                        delta = self._parse_stream_event(data)
                        if delta:
                            yield delta
        except httpx.TimeoutException as e:
            raise GenerationTimeoutError(
                f"Generation stream timed out (timeout={self.timeout}s)",
                provider=self.provider_name,
            ) from e


# =============================================================================
# Anthropic Client
# =============================================================================


class AnthropicClient(LLMClient):
    """Anthropic Claude API client (Messages API over httpx)."""

    provider_name = "anthropic"

    def __init__(
        self,
        model: str,
        temperature: float,
        max_tokens: int,
        timeout: float,
        api_key: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Raises:
            ConfigurationError: If API key is not configured
        """
        super().__init__(model, temperature, max_tokens, timeout, transport)
        self.api_key = api_key or settings.anthropic_api_key
        self.base_url = "https://api.anthropic.com/v1"

        if not self.api_key:
            raise ConfigurationError("ANTHROPIC_API_KEY not configured. Set it in .env.")

        log.info("anthropic_client_initialized", model=self.model, timeout=self.timeout)

    def _endpoint(self) -> str:
        return f"{self.base_url}/messages"

    def _headers(self) -> Dict[str, str]:
        return {
            "x-api-key": self.api_key,
            "content-type": "application/json",
            "anthropic-version": "2023-06-01",
        }

    def _payload(
        self, messages: List[ChatMessage], system: Optional[str], stream: bool
    ) -> Dict[str, Any]:
        # The Messages API takes system text separately; fold any system turns into it.
        system_parts = [system] if system else []
        turns = []
        for message in messages:
            if message["role"] == "system":
                system_parts.append(message["content"])
            else:
                turns.append({"role": message["role"], "content": message["content"]})

        payload: Dict[str, Any] = {
            "model": self.model,
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
            "messages": turns,
        }
        if system_parts:
            payload["system"] = "\n\n".join(system_parts)
        if stream:
            payload["stream"] = True
        return payload

    def _parse_stream_event(self, data: str) -> Optional[str]:
        event = json.loads(data)
        if event.get("type") == "content_block_delta":
            return event.get("delta", {}).get("text")
        return None


# =============================================================================
# OpenAI-Compatible Client
# =============================================================================


class OpenAICompatibleClient(LLMClient):
    """
    Client for APIs following the OpenAI chat completions format.
    """

    def __init__(
        self,
        model: str,
        temperature: float,
        max_tokens: int,
        timeout: float,
        base_url: str,
        provider_name: str,
        api_key: str,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(model, temperature, max_tokens, timeout, transport)
        self.base_url = base_url
        self.provider_name = provider_name
        self.api_key = api_key

        log.info(
            "openai_compatible_client_initialized",
            provider=self.provider_name,
            model=self.model,
            timeout=self.timeout,
        )

    def _endpoint(self) -> str:
        return f"{self.base_url}/chat/completions"

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    def _payload(
        self, messages: List[ChatMessage], system: Optional[str], stream: bool
    ) -> Dict[str, Any]:
        chat = [{"role": "system", "content": system}] if system else []
        chat.extend({"role": m["role"], "content": m["content"]} for m in messages)
        payload: Dict[str, Any] = {
            "model": self.model,
            "messages": chat,
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
        }
        if stream:
            payload["stream"] = True
        return payload

    def _parse_stream_event(self, data: str) -> Optional[str]:
        event = json.loads(data)
        choices = event.get("choices") or []
        if not choices:
            return None
        return choices[0].get("delta", {}).get("content")


class OpenAIClient(OpenAICompatibleClient):
    """OpenAI API client."""

    def __init__(
        self,
        model: str,
        temperature: float,
        max_tokens: int,
        timeout: float,
        api_key: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        api_key = api_key or settings.openai_api_key
        if not api_key:
            raise ConfigurationError("OPENAI_API_KEY not configured. Set it in .env.")

        super().__init__(
            model=model,
            temperature=temperature,
            max_tokens=max_tokens,
            timeout=timeout,
            base_url="https://api.openai.com/v1",
            provider_name="openai",
            api_key=api_key,
            transport=transport,
        )


# =============================================================================
# Client Factory
# =============================================================================


def get_llm_client(provider: str) -> LLMClient:
    """
    Factory for a generation client by provider name.

    Raises:
        ConfigurationError: If the provider is unknown or its API key is missing
    """
    defaults = PROVIDER_DEFAULTS.get(provider)
    if defaults is None:
        raise ConfigurationError(
            f"Unknown LLM provider '{provider}'. "
            f"Supported providers: {', '.join(PROVIDER_DEFAULTS)}"
        )

    if provider == "anthropic":
        return AnthropicClient(**defaults)
    return OpenAIClient(**defaults)
