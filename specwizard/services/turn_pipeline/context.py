"""
Turn processing pipeline context.

Carries state through the pipeline stages. Each stage reads what earlier
stages produced and fills in its own fields:

- ContextLoadingStage: session, user_message, previous_stage, conversation_context
- GenerationStage: response_text, assistant_message
- ExtractionStage: extraction
- SpecificationUpdateStage: specification
- CompletenessStage: completeness, progress, stage, locked_section, follow_up_questions
- PersistenceStage: saved_state
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional

from specwizard.domain.models.completeness import CompletenessState, ProgressState
from specwizard.domain.models.conversation import ConversationContext, ConversationStage
from specwizard.domain.models.extraction import ExtractedInformation
from specwizard.domain.models.message import Message
from specwizard.domain.models.session import LockedSection, Session, SessionState
from specwizard.domain.models.specification import Specification


@dataclass
class PipelineContext:
    """Accumulated state for one conversational turn."""

    # Input parameters
    session_id: str
    user_input: str

    # Stage 1: context loading
    session: Optional[Session] = None
    user_message: Optional[Message] = None
    previous_stage: Optional[ConversationStage] = None
    conversation_context: Optional[ConversationContext] = None

    # Stage 2: generation
    response_text: str = ""
    assistant_message: Optional[Message] = None

    # Stage 3: extraction
    extraction: Optional[ExtractedInformation] = None

    # Stage 4: specification update
    specification: Optional[Specification] = None

    # Stage 5: completeness and stage
    completeness: Optional[CompletenessState] = None
    progress: Optional[ProgressState] = None
    stage: Optional[ConversationStage] = None
    locked_section: Optional[LockedSection] = None
    follow_up_questions: List[str] = field(default_factory=list)

    # Stage 6: persistence
    saved_state: Optional[SessionState] = None

    stage_timings: Dict[str, float] = field(default_factory=dict)
    failed_stage: Optional[str] = None

    def require_session(self) -> Session:
        if self.session is None:
            raise RuntimeError(
                "Pipeline contract violation: session accessed before "
                "ContextLoadingStage completed."
            )
        return self.session

    def state_snapshot(self) -> Optional[SessionState]:
        """
        State to preserve when the turn fails.

        The loaded state plus the incoming user message; derived changes from
        the failed turn are left out.
        """
        if self.session is None:
            return None
        state = self.session.state
        if self.user_message is None:
            return state
        return state.model_copy(
            update={
                "conversation_history": state.conversation_history + [self.user_message]
            }
        )
