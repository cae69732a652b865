"""
Generation router.

Routes one conversational turn to a text-generation provider:

1. Wait on the shared RateLimiter (sliding window over all sessions)
2. Stream from the selected provider
3. On failure before any text was produced, retry once on the alternate provider
4. If both fail, stream a canned fallback that tells the user the problem is
   temporary and what to do next

GenerationRouter.stream never raises to its caller.
"""

import asyncio
import time
from collections import deque
from typing import AsyncIterator, Awaitable, Callable, Deque, Dict, List, Optional

import structlog

from specwizard.core.config import RateLimitConfig, settings
from specwizard.core.exceptions import ConfigurationError
from specwizard.domain.models.conversation import ConversationContext
from specwizard.llm.client import ChatMessage, LLMClient, get_llm_client

log = structlog.get_logger(__name__)

FALLBACK_RESPONSE = (
    "I'm sorry, I'm having trouble responding right now. This is usually a "
    "temporary issue with high demand.\n\n"
    "Your conversation and specification have been saved. You can:\n"
    "1. Send your message again in a moment\n"
    "2. Carry on describing your project and I'll pick it up from here\n"
    "3. Come back later using your magic link\n"
)

# Words per fallback chunk, so the canned text arrives like a streamed reply.
FALLBACK_CHUNK_WORDS = 4


class RateLimiter:
    """
    Sliding-window request limiter.

    Construct once and share between all sessions. acquire() waits until a
    request slot is free; try_acquire() never waits.
    """

    def __init__(
        self,
        max_requests: int = 60,
        window_seconds: float = 60.0,
        clock: Optional[Callable[[], float]] = None,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
    ):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock or time.monotonic
        self._sleep = sleep or asyncio.sleep
        self._requests: Deque[float] = deque()
        self._lock = asyncio.Lock()

    @classmethod
    def from_config(cls, config: RateLimitConfig) -> "RateLimiter":
        return cls(
            max_requests=config.max_requests_per_minute,
            window_seconds=config.window_seconds,
        )

    def _evict(self, now: float) -> None:
        while self._requests and now - self._requests[0] >= self.window_seconds:
            self._requests.popleft()

    def try_acquire(self) -> bool:
        now = self._clock()
        self._evict(now)
        if len(self._requests) >= self.max_requests:
            return False
        self._requests.append(now)
        return True

    async def acquire(self) -> float:
        """Take a slot, sleeping until one frees up. Returns seconds waited."""
        waited = 0.0
        async with self._lock:
            while not self.try_acquire():
                delay = self.window_seconds - (self._clock() - self._requests[0])
                delay = max(delay, 0.0)
                log.info("rate_limit_wait", wait_seconds=round(delay, 3))
                await self._sleep(delay)
                waited += delay
        return waited

    @property
    def in_window(self) -> int:
        self._evict(self._clock())
        return len(self._requests)


class GenerationRouter:
    """Provider selection, one-step fallback and graceful degradation."""

    def __init__(
        self,
        clients: Dict[str, LLMClient],
        limiter: RateLimiter,
        primary: Optional[str] = None,
        fallback: Optional[str] = None,
    ):
        """
        Args:
            clients: Configured clients by provider name. A provider without
                a client is treated as unavailable.
            limiter: Shared rate limiter
            primary: Provider tried first (default: settings.llm_primary_provider)
            fallback: Provider tried on failure (default: settings.llm_fallback_provider)
        """
        self.clients = clients
        self.limiter = limiter
        self.primary = primary or settings.llm_primary_provider
        self.fallback = fallback if fallback is not None else settings.llm_fallback_provider

    def select_provider(self) -> Optional[str]:
        if self.primary in self.clients:
            return self.primary
        if self.fallback and self.fallback in self.clients:
            return self.fallback
        return None

    def alternate_for(self, provider: str) -> Optional[str]:
        for candidate in (self.fallback, self.primary):
            if candidate and candidate != provider and candidate in self.clients:
                return candidate
        return next((name for name in self.clients if name != provider), None)

    async def stream(
        self,
        prompt: str,
        context: ConversationContext,
        provider: Optional[str] = None,
    ) -> AsyncIterator[str]:
        """Stream the assistant reply for a turn. Never raises."""
        await self.limiter.acquire()

        selected = provider if provider in self.clients else self.select_provider()
        attempts: List[str] = []
        if selected:
            attempts.append(selected)
            alternate = self.alternate_for(selected)
            if alternate:
                attempts.append(alternate)

        messages = history_messages(context)
        for name in attempts:
            produced = False
            try:
                async for chunk in self.clients[name].stream(messages, system=prompt):
                    produced = True
                    yield chunk
                log.info(
                    "generation_complete", session_id=context.session_id, provider=name
                )
                return
            except Exception as e:
                if produced:
                    # Text already reached the caller; a retry would duplicate it.
                    log.error(
                        "generation_stream_interrupted",
                        session_id=context.session_id,
                        provider=name,
                        error=str(e),
                    )
                    return
                log.warning(
                    "generation_provider_failed",
                    session_id=context.session_id,
                    provider=name,
                    error_type=type(e).__name__,
                    error=str(e),
                )

        log.error(
            "generation_fallback_response",
            session_id=context.session_id,
            providers_tried=attempts,
        )
        for chunk in fallback_chunks(FALLBACK_RESPONSE):
            yield chunk

    async def generate(
        self,
        prompt: str,
        context: ConversationContext,
        provider: Optional[str] = None,
    ) -> str:
        """Collect a full streamed reply."""
        parts = [chunk async for chunk in self.stream(prompt, context, provider)]
        return "".join(parts)


def history_messages(context: ConversationContext) -> List[ChatMessage]:
    return [
        {"role": message.role.value, "content": message.content}
        for message in context.history
    ]


def fallback_chunks(text: str) -> List[str]:
    words = text.split(" ")
    return [
        " ".join(words[i : i + FALLBACK_CHUNK_WORDS])
        + (" " if i + FALLBACK_CHUNK_WORDS < len(words) else "")
        for i in range(0, len(words), FALLBACK_CHUNK_WORDS)
    ]


def build_generation_router(limiter: RateLimiter) -> GenerationRouter:
    """Router over every provider that has credentials configured."""
    clients: Dict[str, LLMClient] = {}
    for name in (settings.llm_primary_provider, settings.llm_fallback_provider):
        if not name or name in clients:
            continue
        try:
            clients[name] = get_llm_client(name)
        except ConfigurationError as e:
            log.warning("generation_provider_unavailable", provider=name, error=str(e))
    return GenerationRouter(clients, limiter)
