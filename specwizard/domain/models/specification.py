"""Specification domain models.

A Specification holds two views of the same facts:

    - PlainSummary: business-language view shown to the user
    - FormalDocument: requirements document with EARS acceptance criteria

Versions are append-only. Version 0 is the empty specification every
session starts with; each accepted update produces version + 1.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class Priority(str, Enum):
    """Requirement priority."""

    MUST_HAVE = "must-have"
    NICE_TO_HAVE = "nice-to-have"


class ProjectComplexity(str, Enum):
    """Complexity tier estimated from specification content."""

    SIMPLE = "Simple"
    MEDIUM = "Medium"
    COMPLEX = "Complex"


class MvpDefinition(BaseModel):
    """What is in and out of the first release."""

    included: List[str] = Field(default_factory=list)
    excluded: List[str] = Field(default_factory=list)


class PlainSummary(BaseModel):
    """User-facing specification view."""

    overview: str = ""
    target_users: str = ""
    key_features: List[str] = Field(default_factory=list)
    integrations: List[str] = Field(default_factory=list)
    flows: List[str] = Field(default_factory=list)
    rules_and_constraints: List[str] = Field(default_factory=list)
    non_functional: List[str] = Field(default_factory=list)
    mvp_definition: MvpDefinition = Field(default_factory=MvpDefinition)
    estimated_complexity: Optional[ProjectComplexity] = None


class Requirement(BaseModel):
    """Functional requirement with EARS-worded acceptance criteria."""

    id: str
    user_story: str
    acceptance_criteria: List[str] = Field(default_factory=list)
    priority: Priority = Priority.MUST_HAVE

    def text(self) -> str:
        """User story and criteria as one lowercase string for keyword checks."""
        return f"{self.user_story} {' '.join(self.acceptance_criteria)}".lower()


class NonFunctionalRequirement(BaseModel):
    """Quality attribute requirement (performance, security, ...)."""

    id: str
    category: str
    description: str


class FormalDocument(BaseModel):
    """Formal requirements document view."""

    introduction: str = ""
    glossary: Dict[str, str] = Field(default_factory=dict)
    requirements: List[Requirement] = Field(default_factory=list)
    non_functional_requirements: List[NonFunctionalRequirement] = Field(
        default_factory=list
    )


class Specification(BaseModel):
    """Versioned pair of specification views.

    Invariants:
        - id equals the owning session id
        - version >= 0, and increases by exactly one per accepted update
        - plain_summary and formal_document describe the same facts
    """

    id: str
    version: int = Field(default=0, ge=0)
    plain_summary: PlainSummary = Field(default_factory=PlainSummary)
    formal_document: FormalDocument = Field(default_factory=FormalDocument)
    last_updated: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


def empty_specification(
    session_id: str, last_updated: Optional[datetime] = None
) -> Specification:
    """Version-0 specification for a session that has no stored version yet."""
    return Specification(
        id=session_id,
        version=0,
        last_updated=last_updated or datetime.now(timezone.utc),
    )
