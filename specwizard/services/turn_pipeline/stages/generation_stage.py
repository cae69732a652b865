"""
Stage 2: Generate the assistant reply.

Streams the reply from the GenerationRouter and collects it. The router
never raises; provider failures surface as its canned fallback text.
"""

from typing import TYPE_CHECKING

import structlog

from ..base import TurnStage
from .context_loading_stage import stamped_after
from specwizard.domain.models.message import assistant_message
from specwizard.llm.prompts import get_conversation_system_prompt
from specwizard.llm.router import GenerationRouter

log = structlog.get_logger(__name__)

if TYPE_CHECKING:
    from ..context import PipelineContext


class GenerationStage(TurnStage):
    """Populates PipelineContext.response_text and assistant_message."""

    requires = ("conversation_context", "user_message")

    def __init__(self, router: GenerationRouter):
        self.router = router

    async def process(self, context: "PipelineContext") -> "PipelineContext":
        prompt = get_conversation_system_prompt(context.conversation_context)
        chunks = []
        async for chunk in self.router.stream(prompt, context.conversation_context):
            chunks.append(chunk)

        context.response_text = "".join(chunks)
        context.assistant_message = stamped_after(
            assistant_message(context.response_text), context.user_message.timestamp
        )

        log.debug(
            "response_generated",
            session_id=context.session_id,
            response_length=len(context.response_text),
        )
        return context
