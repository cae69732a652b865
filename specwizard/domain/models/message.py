"""Conversation message model.

Messages are immutable once written and form an append-only log per
session, ordered by timestamp (ties broken by write order).
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field


class MessageRole(str, Enum):
    """Author of a message.

    Values:
        - USER: business owner describing the idea
        - ASSISTANT: generated reply
        - SYSTEM: synthetic context (e.g. locked-decision summaries)
    """

    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


class Message(BaseModel):
    """Single conversation message."""

    model_config = ConfigDict(frozen=True, from_attributes=True)

    id: str = Field(default_factory=lambda: str(uuid4()))
    role: MessageRole
    content: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    metadata: Optional[Dict[str, Any]] = None


def user_message(content: str, **metadata: Any) -> Message:
    """Build a user message stamped now."""
    return Message(role=MessageRole.USER, content=content, metadata=metadata or None)


def assistant_message(content: str, **metadata: Any) -> Message:
    """Build an assistant message stamped now."""
    return Message(
        role=MessageRole.ASSISTANT, content=content, metadata=metadata or None
    )
