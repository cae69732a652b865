"""
API request/response schemas.

Pydantic models for API validation and serialization. Domain models
(Session state, Specification, Submission) are returned as-is where they
already have the right shape.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from specwizard.domain.models.completeness import CompletenessState, ProgressState
from specwizard.domain.models.conversation import ConversationStage
from specwizard.domain.models.message import Message
from specwizard.domain.models.session import (
    ContactInfo,
    LockedSection,
    Session,
    SessionState,
    SessionStatus,
)
from specwizard.domain.models.specification import Specification
from specwizard.services.turn_pipeline import TurnResult


# ============ SESSION SCHEMAS ============


class SessionResponse(BaseModel):
    """Session details with the stage derived from its state."""

    id: str
    created_at: datetime
    last_accessed_at: datetime
    status: SessionStatus
    magic_link_token: Optional[str] = None
    stage: ConversationStage
    state: SessionState

    @classmethod
    def from_session(cls, session: Session, stage: ConversationStage) -> "SessionResponse":
        return cls(
            id=session.id,
            created_at=session.created_at,
            last_accessed_at=session.last_accessed_at,
            status=session.status,
            magic_link_token=session.magic_link_token,
            stage=stage,
            state=session.state,
        )


class MagicLinkResponse(BaseModel):
    session_id: str
    token: str


# ============ MESSAGE SCHEMAS ============


class MessageRequest(BaseModel):
    """Request to process a user message."""

    text: str = Field(..., min_length=1, max_length=5000, description="User's message text")


class MessageSyncRequest(BaseModel):
    """Messages written while offline, in the order they were queued."""

    messages: List[Message] = Field(..., min_length=1)


class TurnResponse(BaseModel):
    """Response to a processed message."""

    session_id: str
    response: str
    stage: ConversationStage
    specification: Specification
    completeness: CompletenessState
    progress: Optional[ProgressState] = None
    extracted_topic: Optional[str] = None
    locked_section: Optional[LockedSection] = None
    follow_up_questions: List[str] = Field(default_factory=list)
    latency_ms: int = 0

    @classmethod
    def from_result(cls, result: TurnResult) -> "TurnResponse":
        return cls(
            session_id=result.session_id,
            response=result.response,
            stage=result.stage,
            specification=result.specification,
            completeness=result.completeness,
            progress=result.progress,
            extracted_topic=result.extracted_topic,
            locked_section=result.locked_section,
            follow_up_questions=result.follow_up_questions,
            latency_ms=result.latency_ms,
        )


# ============ SUBMISSION SCHEMAS ============


class SubmitRequest(BaseModel):
    """Contact details for handing a specification off."""

    contact_info: ContactInfo
