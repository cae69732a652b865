"""
Stage 1: Load session context.

Reconstructs the session, records the incoming user message and builds the
pruned ConversationContext the generator will see.
"""

from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Optional

import structlog

from ..base import TurnStage
from specwizard.domain.models.message import Message, user_message
from specwizard.services.completeness_tracker import CompletenessTracker
from specwizard.services.context_builder import build_conversation_context
from specwizard.services.conversation_stage import ConversationStageEngine
from specwizard.services.session_store import SessionStore

log = structlog.get_logger(__name__)

if TYPE_CHECKING:
    from ..context import PipelineContext


class ContextLoadingStage(TurnStage):
    """
    Load session context at the start of turn processing.

    Populates PipelineContext with:
    - The reconstructed session
    - The user message (stamped after the stored history)
    - The stage before this turn
    - The conversation context for generation
    """

    def __init__(
        self,
        session_store: SessionStore,
        stage_engine: ConversationStageEngine,
        tracker: CompletenessTracker,
    ):
        self.session_store = session_store
        self.stage_engine = stage_engine
        self.tracker = tracker

    async def process(self, context: "PipelineContext") -> "PipelineContext":
        session = await self.session_store.require_session(context.session_id)
        state = session.state

        history = state.conversation_history
        message = stamped_after(
            user_message(context.user_input),
            history[-1].timestamp if history else None,
        )

        context.session = session
        context.user_message = message
        context.previous_stage = self.stage_engine.stage_for_state(state)
        context.conversation_context = build_conversation_context(
            context.session_id,
            state.model_copy(update={"conversation_history": history + [message]}),
            stage=context.previous_stage,
            stage_engine=self.stage_engine,
            tracker=self.tracker,
        )

        log.debug(
            "context_loaded",
            session_id=context.session_id,
            history_length=len(history),
            stage=context.previous_stage.value,
            spec_version=state.specification.version,
        )
        return context


def stamped_after(message: Message, floor: Optional[datetime]) -> Message:
    """The message, restamped if needed so it sorts after `floor`."""
    if floor is None or message.timestamp > floor:
        return message
    return message.model_copy(update={"timestamp": floor + timedelta(microseconds=1)})
