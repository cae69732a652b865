"""
Stage 6: Persist the turn.

Writes the user and assistant messages, the specification version (if new)
and any checkpoint through SessionStore.save_session_state.
"""

from typing import TYPE_CHECKING

from ..base import TurnStage
from specwizard.services.session_store import SessionStore

if TYPE_CHECKING:
    from ..context import PipelineContext


class PersistenceStage(TurnStage):
    requires = ("session", "user_message")

    def __init__(self, session_store: SessionStore):
        self.session_store = session_store

    async def process(self, context: "PipelineContext") -> "PipelineContext":
        session = context.require_session()
        state = session.state

        new_messages = [
            m for m in (context.user_message, context.assistant_message) if m is not None
        ]
        locked = list(state.locked_sections)
        if context.locked_section is not None:
            locked.append(context.locked_section)

        saved = state.model_copy(
            update={
                "conversation_history": state.conversation_history + new_messages,
                "specification": context.specification or state.specification,
                "completeness": context.completeness or state.completeness,
                "progress": context.progress or state.progress,
                "locked_sections": locked,
            }
        )
        await self.session_store.save_session_state(context.session_id, saved)
        context.saved_state = saved
        return context
