"""
Result object for turn processing pipeline.

Returned by the pipeline after all stages complete.
"""

from dataclasses import dataclass, field
from typing import List, Optional

from specwizard.domain.models.completeness import CompletenessState, ProgressState
from specwizard.domain.models.conversation import ConversationStage
from specwizard.domain.models.session import LockedSection
from specwizard.domain.models.specification import Specification


@dataclass
class TurnResult:
    """Result of processing a single turn."""

    session_id: str
    response: str
    stage: ConversationStage
    specification: Specification
    completeness: CompletenessState
    progress: Optional[ProgressState] = None
    extracted_topic: Optional[str] = None  # tag of the extraction applied this turn
    locked_section: Optional[LockedSection] = None
    follow_up_questions: List[str] = field(default_factory=list)
    latency_ms: int = 0
