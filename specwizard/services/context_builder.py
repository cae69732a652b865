"""Assembles the bounded ConversationContext handed to the text generator."""

from typing import Optional

from specwizard.domain.models.conversation import ConversationContext, ConversationStage
from specwizard.domain.models.session import SessionState
from specwizard.services.completeness_tracker import CompletenessTracker
from specwizard.services.conversation_stage import ConversationStageEngine
from specwizard.services.extraction_service import derive_user_intent


def build_conversation_context(
    session_id: str,
    state: SessionState,
    stage: Optional[ConversationStage] = None,
    stage_engine: Optional[ConversationStageEngine] = None,
    tracker: Optional[CompletenessTracker] = None,
) -> ConversationContext:
    """
    Build the context for one turn from a state snapshot.

    History is pruned to the configured window; older messages collapse into
    a single locked-decisions system message.

    Args:
        session_id: Session the context belongs to
        state: State snapshot (may already include the incoming user message)
        stage: Stage to report; computed from the snapshot when None
        stage_engine: Stage engine (default config if None)
        tracker: Completeness tracker used for project-type inference
    """
    stage_engine = stage_engine or ConversationStageEngine()
    tracker = tracker or CompletenessTracker()

    if stage is None:
        stage = stage_engine.stage_for_state(state)

    history = stage_engine.prune_history(
        state.conversation_history, state.locked_sections
    )
    project_type = (
        state.progress.project_type
        if state.progress is not None
        else tracker.determine_project_type(state.specification)
    )

    return ConversationContext(
        session_id=session_id,
        stage=stage,
        history=history,
        specification=state.specification,
        completeness=state.completeness,
        locked_sections=state.active_locked_sections(),
        project_type=project_type,
        user_intent=derive_user_intent(state.specification, state.conversation_history),
    )
