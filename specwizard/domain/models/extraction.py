"""Extracted-information models.

Information pulled out of a user turn is a tagged union discriminated by
``topic``. Each variant carries a typed payload so the specification
ledger can dispatch exhaustively instead of probing an open dict.

Variants:
    - overview: one-paragraph description of the project
    - users: who will use the system
    - features: business features in the owner's words
    - integrations: external systems to connect to
    - workflows: step-by-step flows
    - rules: business rules and constraints
    - non_functional: quality notes (speed, security, scale)
    - mvp: what is in and out of the first release
"""

from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter


class _ExtractionBase(BaseModel):
    confidence: float = Field(default=0.8, ge=0.0, le=1.0)


class OverviewExtraction(_ExtractionBase):
    topic: Literal["overview"] = "overview"
    overview: str = Field(min_length=1)


class UsersExtraction(_ExtractionBase):
    topic: Literal["users"] = "users"
    target_users: str = Field(min_length=1)


class FeaturesExtraction(_ExtractionBase):
    topic: Literal["features"] = "features"
    features: List[str] = Field(min_length=1)


class IntegrationsExtraction(_ExtractionBase):
    topic: Literal["integrations"] = "integrations"
    integrations: List[str] = Field(min_length=1)


class WorkflowsExtraction(_ExtractionBase):
    topic: Literal["workflows"] = "workflows"
    flows: List[str] = Field(min_length=1)


class RulesExtraction(_ExtractionBase):
    topic: Literal["rules"] = "rules"
    rules: List[str] = Field(min_length=1)


class NonFunctionalExtraction(_ExtractionBase):
    topic: Literal["non_functional"] = "non_functional"
    notes: List[str] = Field(min_length=1)


class MvpExtraction(_ExtractionBase):
    topic: Literal["mvp"] = "mvp"
    included: List[str] = Field(default_factory=list)
    excluded: List[str] = Field(default_factory=list)


ExtractedInformation = Annotated[
    Union[
        OverviewExtraction,
        UsersExtraction,
        FeaturesExtraction,
        IntegrationsExtraction,
        WorkflowsExtraction,
        RulesExtraction,
        NonFunctionalExtraction,
        MvpExtraction,
    ],
    Field(discriminator="topic"),
]

extracted_information_adapter: TypeAdapter[ExtractedInformation] = TypeAdapter(
    ExtractedInformation
)


class UserIntent(BaseModel):
    """Business intent gathered from the conversation so far.

    Input to formal document generation. Every field may be empty; an empty
    intent is valid and produces requirements only from the history.
    """

    business_goal: Optional[str] = None
    target_users: List[str] = Field(default_factory=list)
    features: List[str] = Field(default_factory=list)
    workflows: List[str] = Field(default_factory=list)
    integrations: List[str] = Field(default_factory=list)
    rules: List[str] = Field(default_factory=list)
