"""Session domain models for wizard lifecycle management.

Core Models:
    - Session: durable container with metadata, status and magic-link token
    - SessionState: full reconstructed state (history, current spec, derived views)
    - LockedSection: checkpoint of a settled decision
    - ContactInfo: business-owner details captured at handoff
    - ErrorRecord: immutable record of a failed operation and its input

Session Lifecycle:
    1. Created with an empty version-0 specification
    2. State saved after every turn (messages appended, new spec versions written)
    3. Optionally abandoned; abandonment is a status flag, nothing is deleted
"""

from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional
from uuid import uuid4

from pydantic import BaseModel, Field

from specwizard.domain.models.completeness import CompletenessState, ProgressState
from specwizard.domain.models.message import Message
from specwizard.domain.models.specification import Specification


def _now() -> datetime:
    return datetime.now(timezone.utc)


class SessionStatus(str, Enum):
    """Session lifecycle status."""

    ACTIVE = "active"
    ABANDONED = "abandoned"


class LockedSection(BaseModel):
    """Checkpoint that later turns must not re-open.

    A redo appends a new checkpoint naming the replaced one in
    ``supersedes``; the replaced checkpoint itself is never modified.
    """

    id: str = Field(default_factory=lambda: str(uuid4()))
    name: str
    summary: str
    locked_at: datetime = Field(default_factory=_now)
    supersedes: Optional[str] = Field(
        default=None, description="Id of the checkpoint this one replaces"
    )


class ContactInfo(BaseModel):
    """Contact details supplied at submission time.

    Fields are plain strings; itemised validation happens in the
    submission service so every bad field can be reported at once.
    """

    name: str = ""
    email: str = ""
    phone: str = ""
    budget_range: Optional[str] = None
    timeline: Optional[str] = None
    referral_source: Optional[str] = None
    urgency: Optional[str] = None


class SessionState(BaseModel):
    """Everything needed to resume a conversation."""

    conversation_history: List[Message] = Field(default_factory=list)
    specification: Specification
    completeness: CompletenessState = Field(default_factory=CompletenessState)
    progress: Optional[ProgressState] = None
    locked_sections: List[LockedSection] = Field(default_factory=list)
    user_info: Optional[ContactInfo] = None

    def active_locked_sections(self) -> List[LockedSection]:
        """Locked sections that have not been replaced by a redo."""
        return active_locked_sections(self.locked_sections)


class Session(BaseModel):
    """Top-level wizard session.

    Status Transitions:
        - 'active' -> 'abandoned': explicit abandon (idempotent)
    """

    id: str
    created_at: datetime = Field(default_factory=_now)
    last_accessed_at: datetime = Field(default_factory=_now)
    status: SessionStatus = SessionStatus.ACTIVE
    magic_link_token: Optional[str] = None
    state: SessionState


class ErrorRecord(BaseModel):
    """Immutable failure record written on the error path."""

    id: str = Field(default_factory=lambda: str(uuid4()))
    session_id: str
    error_message: str
    error_stack: Optional[str] = None
    user_input: Optional[str] = None
    timestamp: datetime = Field(default_factory=_now)


def active_locked_sections(sections: List[LockedSection]) -> List[LockedSection]:
    """Filter out checkpoints superseded by a later one, keeping log order."""
    superseded = {s.supersedes for s in sections if s.supersedes}
    return [s for s in sections if s.id not in superseded]
