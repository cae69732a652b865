"""
Stage 5: Recompute completeness and the conversation stage.

Evaluates the (possibly new) specification, recomputes the stage with this
turn's two messages counted, and locks a checkpoint on a forward
transition. Also plans the next follow-up question.
"""

from typing import TYPE_CHECKING

import structlog

from ..base import TurnStage
from specwizard.services.completeness_tracker import CompletenessTracker
from specwizard.services.conversation_stage import ConversationStageEngine
from specwizard.services.follow_up_service import FollowUpPlanner

log = structlog.get_logger(__name__)

if TYPE_CHECKING:
    from ..context import PipelineContext

MESSAGES_PER_TURN = 2


class CompletenessStage(TurnStage):
    requires = ("session",)

    def __init__(
        self,
        tracker: CompletenessTracker,
        stage_engine: ConversationStageEngine,
        planner: FollowUpPlanner,
    ):
        self.tracker = tracker
        self.stage_engine = stage_engine
        self.planner = planner

    async def process(self, context: "PipelineContext") -> "PipelineContext":
        session = context.require_session()
        specification = context.specification or session.state.specification

        completeness, progress = self.tracker.evaluate(specification)
        message_count = len(session.state.conversation_history) + MESSAGES_PER_TURN
        stage = self.stage_engine.determine_stage(message_count, specification, completeness)

        context.completeness = completeness
        context.progress = progress
        context.stage = stage
        context.locked_section = self.stage_engine.checkpoint_for_transition(
            context.previous_stage or stage,
            stage,
            specification,
            session.state.locked_sections,
        )
        context.follow_up_questions = self.planner.next_questions(
            context.session_id, completeness, progress.project_type
        )

        if context.previous_stage is not None and stage != context.previous_stage:
            log.info(
                "conversation_stage_changed",
                session_id=context.session_id,
                previous_stage=context.previous_stage.value,
                stage=stage.value,
            )
        return context
