"""Submission (handoff) model."""

from datetime import datetime, timezone
from enum import Enum
from uuid import uuid4

from pydantic import BaseModel, Field

from specwizard.domain.models.session import ContactInfo


class SubmissionStatus(str, Enum):
    PENDING = "pending"
    REVIEWED = "reviewed"
    QUOTED = "quoted"


class Submission(BaseModel):
    """A specification version handed off with contact details.

    reference_number is unique across all submissions and is never reused,
    including references generated for attempts that later failed.
    """

    id: str = Field(default_factory=lambda: str(uuid4()))
    session_id: str
    contact_info: ContactInfo
    specification_version: int = Field(ge=0)
    submitted_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    status: SubmissionStatus = SubmissionStatus.PENDING
    reference_number: str
