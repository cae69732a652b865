"""Domain models package."""

from .message import Message, MessageRole
from .specification import (
    FormalDocument,
    MvpDefinition,
    NonFunctionalRequirement,
    PlainSummary,
    Priority,
    ProjectComplexity,
    Requirement,
    Specification,
    empty_specification,
)
from .completeness import (
    CompletenessState,
    ProgressState,
    ProjectType,
    Topic,
    TopicStatus,
)
from .session import (
    ContactInfo,
    ErrorRecord,
    LockedSection,
    Session,
    SessionState,
    SessionStatus,
)
from .submission import Submission, SubmissionStatus
from .extraction import ExtractedInformation, UserIntent
from .conversation import ConversationContext, ConversationStage

__all__ = [
    "Message",
    "MessageRole",
    "FormalDocument",
    "MvpDefinition",
    "NonFunctionalRequirement",
    "PlainSummary",
    "Priority",
    "ProjectComplexity",
    "Requirement",
    "Specification",
    "empty_specification",
    "CompletenessState",
    "ProgressState",
    "ProjectType",
    "Topic",
    "TopicStatus",
    "ContactInfo",
    "ErrorRecord",
    "LockedSection",
    "Session",
    "SessionState",
    "SessionStatus",
    "Submission",
    "SubmissionStatus",
    "ExtractedInformation",
    "UserIntent",
    "ConversationContext",
    "ConversationStage",
]
