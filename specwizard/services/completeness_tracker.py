"""Completeness tracker: derived progress over a specification version.

Decides from specification content alone which topics are required, how
far each one is covered, and what is still missing before handoff.

Required topics:
1. Core topics (overview, users, features), always required
2. Complexity-tier topics, chosen by a weighted score:
       requirements * 1 + non-functional * 2 + features * 0.5 + integrations * 1.5
3. Archetype topics, chosen by a keyword classifier over overview + features

Archetype topic ids are disjoint across archetypes, so two specifications
classified differently never expose the same non-core topic set.

Everything here is a pure function of its inputs: evaluating the same
specification twice (with the same evaluation time) yields equal results.
"""

import re
from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple

import structlog

from specwizard.core.config import CompletenessConfig
from specwizard.domain.models.completeness import (
    CompletenessState,
    ProgressState,
    ProjectType,
    Topic,
    TopicStatus,
)
from specwizard.domain.models.specification import ProjectComplexity, Specification

log = structlog.get_logger(__name__)

# (id, display name, required)
TopicSpec = Tuple[str, str, bool]

CORE_TOPICS: List[TopicSpec] = [
    ("overview", "Project Overview", True),
    ("users", "Target Users", True),
    ("features", "Key Features", True),
]

COMPLEXITY_TOPICS: Dict[ProjectComplexity, List[TopicSpec]] = {
    ProjectComplexity.SIMPLE: [
        ("integrations", "Integrations", False),
    ],
    ProjectComplexity.MEDIUM: [
        ("integrations", "Integrations", True),
        ("data", "Data Requirements", True),
        ("workflows", "User Workflows", False),
    ],
    ProjectComplexity.COMPLEX: [
        ("integrations", "Integrations", True),
        ("data", "Data Requirements", True),
        ("workflows", "User Workflows", True),
        ("security", "Security Requirements", True),
        ("performance", "Performance Requirements", True),
        ("scalability", "Scalability Requirements", False),
    ],
}

ARCHETYPE_TOPICS: Dict[ProjectType, List[TopicSpec]] = {
    ProjectType.BOOKING_SYSTEM: [
        ("calendar", "Calendar & Availability", True),
        ("notifications", "Notification System", True),
        ("cancellations", "Cancellations & Rescheduling", False),
    ],
    ProjectType.ECOMMERCE: [
        ("products", "Product Catalog", True),
        ("cart", "Shopping Cart", True),
        ("payments", "Payment Processing", True),
        ("shipping", "Shipping & Fulfillment", True),
    ],
    ProjectType.CRM: [
        ("contacts", "Contact Management", True),
        ("reporting", "Reporting & Analytics", True),
        ("automation", "Workflow Automation", False),
    ],
    ProjectType.MOBILE_APP: [
        ("platforms", "Platform Requirements", True),
        ("offline", "Offline Functionality", False),
        ("push-notifications", "Push Notifications", False),
    ],
    ProjectType.API: [
        ("endpoints", "API Endpoints", True),
        ("authentication", "Authentication", True),
        ("rate-limiting", "Rate Limiting", False),
    ],
    ProjectType.WEBSITE: [
        ("seo", "SEO Requirements", False),
        ("content", "Content Management", False),
    ],
    ProjectType.UNKNOWN: [],
}

# Checked in order; first match wins.
PROJECT_TYPE_PATTERNS: List[Tuple[ProjectType, re.Pattern]] = [
    (
        ProjectType.BOOKING_SYSTEM,
        re.compile(r"\b(bookings?|appointments?|reservations?|schedul\w*)\b"),
    ),
    (
        ProjectType.ECOMMERCE,
        re.compile(
            r"\b(e-?commerce|online store|shop\w*|stores?|storefront|products?|carts?|checkout)\b"
        ),
    ),
    (
        ProjectType.CRM,
        re.compile(r"\b(crm|customer relationship|contact management|leads?)\b"),
    ),
    (
        ProjectType.MOBILE_APP,
        re.compile(r"\b(mobile app|ios|android|smartphones?)\b"),
    ),
    (
        ProjectType.API,
        re.compile(r"\b(apis?|endpoints?|rest api|graphql)\b"),
    ),
    (
        ProjectType.WEBSITE,
        re.compile(r"\b(websites?|landing page|marketing site|blog)\b"),
    ),
]

TOPIC_KEYWORDS: Dict[str, List[str]] = {
    "seo": ["seo", "search engine", "optimization"],
    "content": ["content", "cms"],
    "calendar": ["calendar", "schedule", "appointment", "availability"],
    "notifications": ["notification", "notify", "alert", "reminder", "email"],
    "cancellations": ["cancel", "reschedul", "no-show"],
    "products": ["product", "catalog", "inventory"],
    "cart": ["cart", "basket", "shopping"],
    "payments": ["payment", "pay", "stripe", "paypal", "checkout"],
    "shipping": ["shipping", "delivery", "fulfillment"],
    "contacts": ["contact", "customer", "client"],
    "reporting": ["report", "analytics", "dashboard"],
    "automation": ["automation", "automate", "workflow"],
    "platforms": ["ios", "android", "platform"],
    "offline": ["offline", "sync"],
    "push-notifications": ["push"],
    "endpoints": ["endpoint", "route", "api"],
    "authentication": ["auth", "login", "sign in"],
    "rate-limiting": ["rate limit", "throttl"],
}


class CompletenessTracker:
    """Computes progress and missing sections for a specification."""

    def __init__(self, config: Optional[CompletenessConfig] = None):
        self.config = config or CompletenessConfig()

    # ------------------------------------------------------------------
    # Classification
    # ------------------------------------------------------------------

    def determine_project_type(self, specification: Specification) -> ProjectType:
        summary = specification.plain_summary
        text = f"{summary.overview} {' '.join(summary.key_features)}".lower()
        for project_type, pattern in PROJECT_TYPE_PATTERNS:
            if pattern.search(text):
                return project_type
        return ProjectType.UNKNOWN

    def complexity_score(self, specification: Specification) -> float:
        document = specification.formal_document
        summary = specification.plain_summary
        return (
            len(document.requirements) * 1
            + len(document.non_functional_requirements) * 2
            + len(summary.key_features) * 0.5
            + len(summary.integrations) * 1.5
        )

    def determine_complexity(self, specification: Specification) -> ProjectComplexity:
        score = self.complexity_score(specification)
        if score <= self.config.simple_max_score:
            return ProjectComplexity.SIMPLE
        if score <= self.config.medium_max_score:
            return ProjectComplexity.MEDIUM
        return ProjectComplexity.COMPLEX

    # ------------------------------------------------------------------
    # Topics
    # ------------------------------------------------------------------

    def required_topics(
        self, project_type: ProjectType, complexity: ProjectComplexity
    ) -> List[Topic]:
        """Core ∪ complexity-tier ∪ archetype topics, first occurrence wins."""
        topics: List[Topic] = []
        seen = set()
        for topic_id, name, required in (
            CORE_TOPICS
            + COMPLEXITY_TOPICS[complexity]
            + ARCHETYPE_TOPICS.get(project_type, [])
        ):
            if topic_id in seen:
                continue
            seen.add(topic_id)
            topics.append(Topic(id=topic_id, name=name, required=required))
        return topics

    def topic_status(self, topic_id: str, specification: Specification) -> TopicStatus:
        summary = specification.plain_summary
        document = specification.formal_document

        if topic_id == "overview":
            return _length_status(summary.overview, 20)
        if topic_id == "users":
            return _length_status(summary.target_users, 10)
        if topic_id == "features":
            if not summary.key_features:
                return TopicStatus.NOT_STARTED
            if len(summary.key_features) < 3:
                return TopicStatus.IN_PROGRESS
            return TopicStatus.COMPLETE
        if topic_id == "integrations":
            return TopicStatus.COMPLETE if summary.integrations else TopicStatus.NOT_STARTED
        if topic_id == "data":
            count = sum(1 for r in document.requirements if "data" in r.text())
            if count == 0:
                return TopicStatus.NOT_STARTED
            return TopicStatus.IN_PROGRESS if count < 2 else TopicStatus.COMPLETE
        if topic_id == "workflows":
            has_workflow = bool(summary.flows) or any(
                "workflow" in r.text() for r in document.requirements
            )
            return TopicStatus.COMPLETE if has_workflow else TopicStatus.NOT_STARTED
        if topic_id in ("security", "performance", "scalability"):
            has_category = any(
                n.category.lower() == topic_id
                for n in document.non_functional_requirements
            )
            return TopicStatus.COMPLETE if has_category else TopicStatus.NOT_STARTED
        if topic_id in TOPIC_KEYWORDS:
            text = _searchable_text(specification)
            found = any(term in text for term in TOPIC_KEYWORDS[topic_id])
            return TopicStatus.COMPLETE if found else TopicStatus.NOT_STARTED
        return TopicStatus.NOT_STARTED

    # ------------------------------------------------------------------
    # Aggregates
    # ------------------------------------------------------------------

    def update_progress(self, specification: Specification) -> ProgressState:
        complexity = self.determine_complexity(specification)
        project_type = self.determine_project_type(specification)
        topics = [
            topic.model_copy(update={"status": self.topic_status(topic.id, specification)})
            for topic in self.required_topics(project_type, complexity)
        ]
        return ProgressState(
            topics=topics,
            overall_completeness=calculate_completeness(topics),
            project_complexity=complexity,
            project_type=project_type,
        )

    def evaluate(
        self,
        specification: Specification,
        evaluated_at: Optional[datetime] = None,
    ) -> Tuple[CompletenessState, ProgressState]:
        """Recompute missing sections and progress for one version.

        A required topic is missing until its status is complete. Missing
        sections keep topic order.
        """
        progress = self.update_progress(specification)
        missing = [
            t.id
            for t in progress.topics
            if t.required and t.status != TopicStatus.COMPLETE
        ]
        completeness = CompletenessState(
            missing_sections=missing,
            ready_for_handoff=not missing,
            last_evaluated=evaluated_at or datetime.now(timezone.utc),
        )

        log.debug(
            "completeness_evaluated",
            session_id=specification.id,
            version=specification.version,
            project_type=progress.project_type.value,
            complexity=progress.project_complexity.value,
            missing=missing,
            overall=progress.overall_completeness,
        )
        return completeness, progress

    def default_missing_sections(self) -> List[str]:
        """Required topics of an empty specification."""
        return [
            t.id
            for t in self.required_topics(ProjectType.UNKNOWN, ProjectComplexity.SIMPLE)
            if t.required
        ]


def calculate_completeness(topics: List[Topic]) -> int:
    """Percentage over required topics, in-progress counting half."""
    if not topics:
        return 0
    required = [t for t in topics if t.required]
    if not required:
        return 100
    complete = sum(1 for t in required if t.status == TopicStatus.COMPLETE)
    in_progress = sum(1 for t in required if t.status == TopicStatus.IN_PROGRESS)
    return round((complete + in_progress * 0.5) / len(required) * 100)


def _length_status(text: str, min_length: int) -> TopicStatus:
    if not text:
        return TopicStatus.NOT_STARTED
    if len(text) < min_length:
        return TopicStatus.IN_PROGRESS
    return TopicStatus.COMPLETE


def _searchable_text(specification: Specification) -> str:
    summary = specification.plain_summary
    parts = [
        summary.overview,
        " ".join(summary.key_features),
        " ".join(summary.integrations),
        " ".join(r.user_story for r in specification.formal_document.requirements),
    ]
    return " ".join(parts).lower()
