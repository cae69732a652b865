"""Conversation stage and context models."""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field

from specwizard.domain.models.completeness import CompletenessState, ProjectType
from specwizard.domain.models.extraction import UserIntent
from specwizard.domain.models.message import Message
from specwizard.domain.models.session import LockedSection
from specwizard.domain.models.specification import Specification


class ConversationStage(str, Enum):
    """Linear conversation stages.

    The stage is never stored; it is recomputed from a state snapshot on
    every turn.
    """

    INITIAL = "initial"
    DISCOVERY = "discovery"
    REFINEMENT = "refinement"
    VALIDATION = "validation"
    COMPLETION = "completion"

    @property
    def order(self) -> int:
        return _STAGE_ORDER.index(self)


_STAGE_ORDER = [
    ConversationStage.INITIAL,
    ConversationStage.DISCOVERY,
    ConversationStage.REFINEMENT,
    ConversationStage.VALIDATION,
    ConversationStage.COMPLETION,
]


class ConversationContext(BaseModel):
    """Bounded view of a session handed to the text generator."""

    session_id: str
    stage: ConversationStage
    history: List[Message] = Field(default_factory=list)
    specification: Specification
    completeness: CompletenessState
    locked_sections: List[LockedSection] = Field(default_factory=list)
    project_type: ProjectType = ProjectType.UNKNOWN
    user_intent: Optional[UserIntent] = None
