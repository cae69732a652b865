"""Completeness and progress models.

Both are derived views over a specification version. They are stored only
next to the version they were computed from and are never authoritative.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import List

from pydantic import BaseModel, Field

from specwizard.domain.models.specification import ProjectComplexity


class ProjectType(str, Enum):
    """Project archetypes recognised by the keyword classifier."""

    BOOKING_SYSTEM = "booking-system"
    ECOMMERCE = "e-commerce"
    CRM = "crm"
    MOBILE_APP = "mobile-app"
    API = "api"
    WEBSITE = "website"
    UNKNOWN = "unknown"


class TopicStatus(str, Enum):
    """Coverage of a single topic."""

    NOT_STARTED = "not-started"
    IN_PROGRESS = "in-progress"
    COMPLETE = "complete"


class Topic(BaseModel):
    """Topic tracked for progress."""

    id: str
    name: str
    status: TopicStatus = TopicStatus.NOT_STARTED
    required: bool = True


class ProgressState(BaseModel):
    """Per-topic progress for the current specification version."""

    topics: List[Topic] = Field(default_factory=list)
    overall_completeness: int = Field(default=0, ge=0, le=100)
    project_complexity: ProjectComplexity = ProjectComplexity.SIMPLE
    project_type: ProjectType = ProjectType.UNKNOWN


class CompletenessState(BaseModel):
    """Gap analysis between required topics and the current specification.

    missing_sections keeps the order of the required-topic list and holds
    no duplicates.
    """

    missing_sections: List[str] = Field(default_factory=list)
    ready_for_handoff: bool = False
    last_evaluated: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
