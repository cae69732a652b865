"""Specification ledger: builds new specification versions.

The plain summary is the fact store; the formal document is recomposed from
it on every update, so a fact entering one view is in the other before the
version is returned. Acceptance criteria use EARS wording:

    THE <system> SHALL <response>
    WHEN <trigger>, THE <system> SHALL <response>
    WHILE <condition>, THE <system> SHALL <response>
    IF <condition>, THEN THE <system> SHALL <response>
    WHERE <option>, THE <system> SHALL <response>

Every call to update_specification produces version = previous + 1 and
leaves its inputs untouched.
"""

import re
from datetime import datetime, timezone
from typing import Callable, Dict, Iterable, List, Optional, Sequence

import structlog
from pydantic import BaseModel, Field

from specwizard.domain.models.extraction import (
    ExtractedInformation,
    FeaturesExtraction,
    IntegrationsExtraction,
    MvpExtraction,
    NonFunctionalExtraction,
    OverviewExtraction,
    RulesExtraction,
    UserIntent,
    UsersExtraction,
    WorkflowsExtraction,
)
from specwizard.domain.models.message import Message, MessageRole
from specwizard.domain.models.specification import (
    FormalDocument,
    MvpDefinition,
    NonFunctionalRequirement,
    PlainSummary,
    Priority,
    ProjectComplexity,
    Requirement,
    Specification,
)

log = structlog.get_logger(__name__)

INTRODUCTION_PREFIX = "This specification describes "
USERS_SENTENCE_PREFIX = " Intended users: "
DEFAULT_INTRODUCTION = "This specification describes a software system."

CORE_TOPICS = [
    "overview",
    "users",
    "features",
    "integrations",
    "data",
    "workflows",
    "non_functional",
]

EARS_PATTERN = re.compile(
    r"^(?:(?:WHEN|WHILE|WHERE) .+, THE .+ SHALL .+"
    r"|IF .+, THEN THE .+ SHALL .+"
    r"|THE .+ SHALL .+)$"
)

# Ordered: first match wins.
BUSINESS_TO_TECHNICAL = [
    (re.compile(r"\b(log ?in|sign ?in|sign-in)\b"), "authenticate the user and create a session"),
    (re.compile(r"\bsearch\w*\b"), "query the stored records and return matching results"),
    (re.compile(r"\b(pay|payments?|checkout)\b"), "process the payment through the payment gateway"),
    (re.compile(r"\bupload\w*\b"), "accept the file and keep it in file storage"),
    (re.compile(r"\bdownload\w*\b"), "retrieve the file and deliver it to the user"),
    (re.compile(r"\b(emails?|send)\b"), "deliver the message through the email service"),
    (re.compile(r"\b(save|store)\b"), "persist the data to the database"),
    (re.compile(r"\b(book\w*|reserv\w*|appointments?)\b"), "record the booking and confirm the reserved time slot"),
]

NFR_CATEGORIES = [
    (
        "Performance",
        re.compile(r"\b(fast|faster|speed|speedy|quick|performance|responsive|latency|slow)\b"),
        "THE System SHALL respond to user actions within 2 seconds",
    ),
    (
        "Security",
        re.compile(r"\b(secure|security|safe|privacy|private|encrypt\w*|gdpr)\b"),
        "THE System SHALL encrypt all sensitive data at rest and in transit",
    ),
    (
        "Scalability",
        re.compile(r"\b(scale|scalable|scaling|growth|grow|concurrent)\b"),
        "THE System SHALL support concurrent usage by multiple users",
    ),
    (
        "Availability",
        re.compile(r"\b(uptime|available|availability|reliable|reliability)\b"),
        "THE System SHALL remain available during business hours without unplanned outages",
    ),
]

VAGUE_TERMS = re.compile(
    r"\b(quickly|slowly|adequate|appropriate|reasonable|sufficient|good|bad|easy|"
    r"hard|simple|complex|many|few|some|several|etc)\b"
)

NEGATION = re.compile(r"\b(not|never|cannot|no)\b")

STOP_WORDS = {
    "a", "an", "the", "and", "or", "of", "to", "in", "on", "for", "with", "is",
    "be", "it", "as", "i", "my", "so", "that", "can", "not", "never", "cannot", "no",
}

SYSTEM_MENTION = re.compile(
    r"\bthe (system|app|application|platform|website|site|software|tool)\b", re.I
)


class ConflictPair(BaseModel):
    requirement1: str
    requirement2: str
    conflict_description: str


class ValidationResult(BaseModel):
    """Outcome of validate_completeness.

    is_complete holds iff all three feedback lists are empty.
    """

    is_complete: bool
    missing_topics: List[str] = Field(default_factory=list)
    ambiguous_requirements: List[str] = Field(default_factory=list)
    conflicting_requirements: List[ConflictPair] = Field(default_factory=list)


class SpecificationLedger:
    """Produces new, internally consistent specification versions."""

    def __init__(self, clock: Optional[Callable[[], datetime]] = None):
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    # ------------------------------------------------------------------
    # Versioning
    # ------------------------------------------------------------------

    def update_specification(
        self,
        current: Optional[Specification],
        extracted: ExtractedInformation,
        history: Sequence[Message] = (),
        session_id: Optional[str] = None,
    ) -> Specification:
        """Apply one topic of extracted facts and return the next version.

        Args:
            current: Current version, or None for a session with no versions
            extracted: Tagged extraction to apply
            history: Conversation so far (used for glossary terms)
            session_id: Required when current is None

        Returns:
            New Specification with version = (current.version or 0) + 1
        """
        if current is None and not session_id:
            raise ValueError("session_id is required when there is no current specification")

        spec_id = current.id if current is not None else session_id
        base_version = current.version if current is not None else 0
        summary = (
            current.plain_summary.model_copy(deep=True)
            if current is not None
            else PlainSummary()
        )
        glossary = (
            dict(current.formal_document.glossary) if current is not None else {}
        )

        _apply_extraction(summary, extracted)
        glossary.update(_glossary_terms(summary, history))
        document = compose_formal_document(summary, glossary)
        summary.estimated_complexity = estimate_complexity(document)

        updated = Specification(
            id=spec_id,
            version=base_version + 1,
            plain_summary=summary,
            formal_document=document,
            last_updated=self._clock(),
        )

        log.info(
            "specification_updated",
            session_id=spec_id,
            topic=extracted.topic,
            version=updated.version,
            requirements=len(document.requirements),
        )
        return updated

    # ------------------------------------------------------------------
    # Whole-document synthesis
    # ------------------------------------------------------------------

    def generate_formal_document(
        self, user_intent: Optional[UserIntent], history: Sequence[Message] = ()
    ) -> FormalDocument:
        """Synthesize a formal document from business intent and conversation.

        Each feature yields at least one requirement. Non-functional
        requirements come from quality words in the user's own messages.
        """
        intent = user_intent or UserIntent()
        user_text = [m.content for m in history if m.role == MessageRole.USER]

        introduction = DEFAULT_INTRODUCTION
        if intent.business_goal:
            introduction = f"{INTRODUCTION_PREFIX}{intent.business_goal}"
        else:
            first = next((t for t in user_text if len(t) > 20), None)
            if first:
                introduction = f"{INTRODUCTION_PREFIX}{first}"
        if intent.target_users:
            introduction += f"{USERS_SENTENCE_PREFIX}{', '.join(intent.target_users)}."

        glossary: Dict[str, str] = {}
        mention = SYSTEM_MENTION.search(" ".join(user_text))
        if mention:
            glossary["System"] = f"The {mention.group(1).lower()} being specified"
        elif intent.business_goal or intent.features:
            glossary["System"] = "The software system being specified"

        counter = _Counter()
        requirements: List[Requirement] = []
        for feature in _dedupe(intent.features):
            requirements.append(requirement_from_feature(feature, counter.next()))
        for flow in _dedupe(intent.workflows):
            requirements.append(requirement_from_workflow(flow, counter.next()))
        for integration in _dedupe(intent.integrations):
            requirements.append(requirement_from_integration(integration, counter.next()))
        for rule in _dedupe(intent.rules):
            requirements.append(requirement_from_rule(rule, counter.next()))

        quality_text = " ".join(user_text + intent.features).lower()
        nfrs = []
        for category, pattern, description in NFR_CATEGORIES:
            if pattern.search(quality_text):
                nfrs.append(
                    NonFunctionalRequirement(
                        id=f"nfr-{len(nfrs) + 1}",
                        category=category,
                        description=description,
                    )
                )

        return FormalDocument(
            introduction=introduction,
            glossary=glossary,
            requirements=requirements,
            non_functional_requirements=nfrs,
        )

    def generate_plain_summary(self, formal_document: FormalDocument) -> PlainSummary:
        """Derive the business view from a formal document.

        Features are read back from requirement user stories, one per
        requirement at most (deduplicated, capped at ten).
        """
        overview, target_users = _split_introduction(formal_document.introduction)

        features: List[str] = []
        flows: List[str] = []
        rules: List[str] = []
        user_types: List[str] = []
        for requirement in formal_document.requirements:
            phrase = _feature_phrase(requirement.user_story)
            if phrase.lower() not in {f.lower() for f in features}:
                features.append(phrase)
            role = _story_role(requirement.user_story)
            if role and role not in ("user", "business owner") and role not in user_types:
                user_types.append(role)
            for criterion in requirement.acceptance_criteria:
                flow = _match(r"^WHEN a user initiates (.+?), THE", criterion)
                if flow and flow not in flows:
                    flows.append(flow)
                rule = _match(r'^IF a request breaks the rule "(.+)", THEN', criterion)
                if rule and rule not in rules:
                    rules.append(rule)

        if not target_users and user_types:
            target_users = ", ".join(user_types)
        elif not target_users and formal_document.requirements:
            target_users = "General users"

        return PlainSummary(
            overview=overview,
            target_users=target_users,
            key_features=features[:10],
            integrations=_integrations_from_requirements(formal_document.requirements),
            flows=flows,
            rules_and_constraints=rules,
            non_functional=[
                f"{n.category}: {n.description}"
                for n in formal_document.non_functional_requirements
            ],
            mvp_definition=MvpDefinition(
                included=[
                    _feature_phrase(r.user_story)
                    for r in formal_document.requirements
                    if r.priority == Priority.MUST_HAVE
                ]
                if any(r.priority == Priority.NICE_TO_HAVE for r in formal_document.requirements)
                else [],
                excluded=[
                    _feature_phrase(r.user_story)
                    for r in formal_document.requirements
                    if r.priority == Priority.NICE_TO_HAVE
                ],
            ),
            estimated_complexity=estimate_complexity(formal_document)
            if formal_document.requirements
            else None,
        )

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def validate_completeness(self, specification: Specification) -> ValidationResult:
        covered = covered_topics(specification)
        missing = [topic for topic in CORE_TOPICS if topic not in covered]

        requirements = specification.formal_document.requirements
        ambiguous = [r.id for r in requirements if is_ambiguous(r)]
        conflicts = detect_conflicts(requirements)

        return ValidationResult(
            is_complete=not missing and not ambiguous and not conflicts,
            missing_topics=missing,
            ambiguous_requirements=ambiguous,
            conflicting_requirements=conflicts,
        )


# ----------------------------------------------------------------------
# Requirement builders
# ----------------------------------------------------------------------


class _Counter:
    def __init__(self) -> None:
        self.value = 0

    def next(self) -> int:
        self.value += 1
        return self.value


def translate_business_to_technical(feature: str) -> str:
    """Map a business phrase onto the system behaviour it implies."""
    lowered = feature.lower()
    for pattern, technical in BUSINESS_TO_TECHNICAL:
        if pattern.search(lowered):
            return technical
    return f"provide {feature}"


def requirement_from_feature(
    feature: str, index: int, priority: Priority = Priority.MUST_HAVE
) -> Requirement:
    return Requirement(
        id=f"req-{index}",
        user_story=f"As a user, I want {feature}, so that I can accomplish my goals",
        acceptance_criteria=[
            f"WHEN a user requests {feature}, THE System SHALL "
            f"{translate_business_to_technical(feature)}",
        ],
        priority=priority,
    )


def requirement_from_workflow(flow: str, index: int) -> Requirement:
    return Requirement(
        id=f"req-{index}",
        user_story=f"As a user, I want to {flow}, so that I can complete my tasks",
        acceptance_criteria=[
            f"WHEN a user initiates {flow}, THE System SHALL run each step of the workflow in order",
        ],
    )


def requirement_from_integration(integration: str, index: int) -> Requirement:
    return Requirement(
        id=f"req-{index}",
        user_story=(
            f"As a business owner, I want the system to connect with {integration}, "
            f"so that information stays in step across tools"
        ),
        acceptance_criteria=[
            f"WHERE the {integration} integration is configured, THE System SHALL "
            f"exchange data with {integration}",
        ],
    )


def requirement_from_rule(rule: str, index: int) -> Requirement:
    return Requirement(
        id=f"req-{index}",
        user_story=f"As a business owner, I want to enforce {rule}, so that the business rules hold",
        acceptance_criteria=[
            f'IF a request breaks the rule "{rule}", THEN THE System SHALL reject the '
            f"request and explain the rule to the user",
        ],
    )


def nfr_from_note(note: str, index: int) -> NonFunctionalRequirement:
    lowered = note.lower()
    for category, pattern, description in NFR_CATEGORIES:
        if pattern.search(lowered):
            return NonFunctionalRequirement(
                id=f"nfr-{index}", category=category, description=description
            )
    return NonFunctionalRequirement(
        id=f"nfr-{index}",
        category="General",
        description=f"THE System SHALL meet this quality expectation: {note}",
    )


def compose_formal_document(
    summary: PlainSummary, glossary: Optional[Dict[str, str]] = None
) -> FormalDocument:
    """Build the formal view from the plain summary.

    Requirement ids follow summary order (features, flows, integrations,
    rules), so ids stay stable while the summary lists only grow.
    """
    introduction = ""
    if summary.overview:
        introduction = f"{INTRODUCTION_PREFIX}{summary.overview}"
    if summary.target_users:
        introduction = (introduction or DEFAULT_INTRODUCTION) + (
            f"{USERS_SENTENCE_PREFIX}{summary.target_users}."
        )

    deferred = {item.lower() for item in summary.mvp_definition.excluded}
    counter = _Counter()
    requirements: List[Requirement] = []
    for feature in summary.key_features:
        priority = Priority.NICE_TO_HAVE if feature.lower() in deferred else Priority.MUST_HAVE
        requirements.append(requirement_from_feature(feature, counter.next(), priority))
    for flow in summary.flows:
        requirements.append(requirement_from_workflow(flow, counter.next()))
    for integration in summary.integrations:
        requirements.append(requirement_from_integration(integration, counter.next()))
    for rule in summary.rules_and_constraints:
        requirements.append(requirement_from_rule(rule, counter.next()))

    return FormalDocument(
        introduction=introduction,
        glossary=dict(glossary or {}),
        requirements=requirements,
        non_functional_requirements=[
            nfr_from_note(note, i) for i, note in enumerate(summary.non_functional, 1)
        ],
    )


def estimate_complexity(document: FormalDocument) -> ProjectComplexity:
    """Requirements plus doubled non-functional entries, tiered at 5 and 15."""
    total = len(document.requirements) + len(document.non_functional_requirements) * 2
    if total <= 5:
        return ProjectComplexity.SIMPLE
    if total <= 15:
        return ProjectComplexity.MEDIUM
    return ProjectComplexity.COMPLEX


# ----------------------------------------------------------------------
# Validation helpers
# ----------------------------------------------------------------------


def covered_topics(specification: Specification) -> List[str]:
    summary = specification.plain_summary
    document = specification.formal_document
    covered = []
    if summary.overview:
        covered.append("overview")
    if summary.target_users:
        covered.append("users")
    if summary.key_features:
        covered.append("features")
    if summary.integrations:
        covered.append("integrations")
    if any(re.search(r"\bdata\b", r.text()) for r in document.requirements):
        covered.append("data")
    if summary.flows or any("workflow" in r.text() for r in document.requirements):
        covered.append("workflows")
    if document.non_functional_requirements:
        covered.append("non_functional")
    return covered


def is_ambiguous(requirement: Requirement) -> bool:
    """True when the requirement leans on vague wording or breaks EARS form."""
    if VAGUE_TERMS.search(requirement.text()):
        return True
    return not all(EARS_PATTERN.match(c) for c in requirement.acceptance_criteria)


def detect_conflicts(requirements: Sequence[Requirement]) -> List[ConflictPair]:
    """Pairs where one side negates what the other mandates on shared content."""
    conflicts = []
    for i, first in enumerate(requirements):
        for second in requirements[i + 1 :]:
            text1, text2 = first.text(), second.text()
            negated1 = bool(NEGATION.search(text1))
            negated2 = bool(NEGATION.search(text2))
            if negated1 == negated2:
                continue
            shared = _content_words(text1) & _content_words(text2)
            if len(shared) > 3:
                conflicts.append(
                    ConflictPair(
                        requirement1=first.id,
                        requirement2=second.id,
                        conflict_description=(
                            "Potential contradiction on: " + ", ".join(sorted(shared))
                        ),
                    )
                )
    return conflicts


def find_view_divergence(specification: Specification) -> List[str]:
    """Facts present in one view and missing from the other."""
    summary = specification.plain_summary
    document = specification.formal_document
    stories = [r.user_story for r in document.requirements]
    problems = []

    for label, items in (
        ("feature", summary.key_features),
        ("workflow", summary.flows),
        ("integration", summary.integrations),
        ("rule", summary.rules_and_constraints),
    ):
        for item in items:
            if not any(item in story for story in stories):
                problems.append(f"{label} '{item}' has no requirement")

    if len(summary.non_functional) != len(document.non_functional_requirements):
        problems.append(
            f"{len(summary.non_functional)} non-functional notes but "
            f"{len(document.non_functional_requirements)} non-functional requirements"
        )
    if summary.overview and summary.overview not in document.introduction:
        problems.append("overview is not reflected in the introduction")
    if summary.target_users and summary.target_users not in document.introduction:
        problems.append("target users are not reflected in the introduction")

    expected = len(summary.key_features) + len(summary.flows) + len(summary.integrations) + len(
        summary.rules_and_constraints
    )
    if expected != len(document.requirements):
        problems.append(
            f"summary implies {expected} requirements but document has "
            f"{len(document.requirements)}"
        )
    return problems


# ----------------------------------------------------------------------
# Internals
# ----------------------------------------------------------------------


def _apply_extraction(summary: PlainSummary, extracted: ExtractedInformation) -> None:
    if isinstance(extracted, OverviewExtraction):
        summary.overview = extracted.overview.strip()
    elif isinstance(extracted, UsersExtraction):
        summary.target_users = extracted.target_users.strip()
    elif isinstance(extracted, FeaturesExtraction):
        summary.key_features = _merge(summary.key_features, extracted.features)
    elif isinstance(extracted, IntegrationsExtraction):
        summary.integrations = _merge(summary.integrations, extracted.integrations)
    elif isinstance(extracted, WorkflowsExtraction):
        summary.flows = _merge(summary.flows, extracted.flows)
    elif isinstance(extracted, RulesExtraction):
        summary.rules_and_constraints = _merge(
            summary.rules_and_constraints, extracted.rules
        )
    elif isinstance(extracted, NonFunctionalExtraction):
        summary.non_functional = _merge(summary.non_functional, extracted.notes)
    elif isinstance(extracted, MvpExtraction):
        _apply_mvp(summary, extracted)
    else:
        raise TypeError(f"Unhandled extraction topic: {type(extracted).__name__}")


def _apply_mvp(summary: PlainSummary, extracted: MvpExtraction) -> None:
    included = _merge(summary.mvp_definition.included, extracted.included)
    excluded = _merge(summary.mvp_definition.excluded, extracted.excluded)
    # Latest statement wins when an item moves between lists.
    newly_in = {i.lower() for i in extracted.included}
    newly_out = {i.lower() for i in extracted.excluded}
    included = [i for i in included if i.lower() not in newly_out]
    excluded = [i for i in excluded if i.lower() not in newly_in]
    summary.mvp_definition = MvpDefinition(included=included, excluded=excluded)
    summary.key_features = _merge(summary.key_features, extracted.included + extracted.excluded)


def _merge(existing: List[str], new: Iterable[str]) -> List[str]:
    merged = list(existing)
    seen = {item.lower() for item in merged}
    for item in new:
        item = item.strip()
        if item and item.lower() not in seen:
            seen.add(item.lower())
            merged.append(item)
    return merged


def _dedupe(items: Iterable[str]) -> List[str]:
    return _merge([], items)


def _glossary_terms(summary: PlainSummary, history: Sequence[Message]) -> Dict[str, str]:
    text = " ".join(m.content for m in history if m.role == MessageRole.USER)
    mention = SYSTEM_MENTION.search(text)
    if mention:
        return {"System": f"The {mention.group(1).lower()} being specified"}
    if summary.overview or summary.key_features:
        return {"System": "The software system being specified"}
    return {}


def _split_introduction(introduction: str):
    text = introduction
    users = ""
    if USERS_SENTENCE_PREFIX in text:
        text, users = text.split(USERS_SENTENCE_PREFIX, 1)
        users = users.rstrip(".")
    if text == DEFAULT_INTRODUCTION:
        return "", users
    if text.startswith(INTRODUCTION_PREFIX):
        text = text[len(INTRODUCTION_PREFIX):]
    return text.strip(), users.strip()


def _feature_phrase(user_story: str) -> str:
    match = re.search(r"I want (?:the system to connect with |to )?(.+), so that", user_story)
    return match.group(1) if match else user_story


def _story_role(user_story: str) -> Optional[str]:
    return _match(r"^As an? (.+?),", user_story)


def _match(pattern: str, text: str) -> Optional[str]:
    found = re.search(pattern, text)
    return found.group(1) if found else None


def _integrations_from_requirements(requirements: Sequence[Requirement]) -> List[str]:
    found: List[str] = []
    for requirement in requirements:
        named = _match(r"I want the system to connect with (.+), so that", requirement.user_story)
        if named:
            if named not in found:
                found.append(named)
            continue
        text = requirement.text()
        for needle, label in (
            ("payment gateway", "Payment Gateway"),
            ("email service", "Email Service"),
            ("file storage", "File Storage"),
        ):
            if needle in text and label not in found:
                found.append(label)
    return found


def _words(text: str) -> set:
    return set(re.findall(r"[a-z0-9']+", text.lower()))


def _template_words() -> set:
    """Vocabulary the requirement builders add around business phrases."""
    words = set(STOP_WORDS)
    for builder in (
        requirement_from_feature,
        requirement_from_workflow,
        requirement_from_integration,
        requirement_from_rule,
    ):
        words |= _words(builder("x", 1).text())
    for _, technical in BUSINESS_TO_TECHNICAL:
        words |= _words(technical)
    words.discard("x")
    return words


TEMPLATE_WORDS = _template_words()


def _content_words(text: str) -> set:
    return {w for w in _words(text) if w not in TEMPLATE_WORDS and len(w) > 2}
