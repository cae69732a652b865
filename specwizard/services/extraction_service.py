"""
Extraction service for user turns.

Deterministic keyword heuristics classify one user message into at most one
tagged extraction. Checks run from most to least specific:

1. mvp (first release / later)
2. integrations (connect, integrate, named tools)
3. non_functional (speed, security, scale, uptime)
4. rules (must not, only, policy)
5. workflows (step, process, flow)
6. features (should be able to, feature)
7. users (user, customer, audience)
8. overview (build, create, want, need)

Returns None when nothing meaningful is found.
"""

import re
from typing import List, Optional, Sequence

import structlog

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
from specwizard.domain.models.message import Message
from specwizard.domain.models.specification import Specification

log = structlog.get_logger(__name__)

KNOWN_INTEGRATIONS = [
    "Stripe",
    "PayPal",
    "Square",
    "Google Calendar",
    "Outlook",
    "Mailchimp",
    "Salesforce",
    "HubSpot",
    "QuickBooks",
    "Xero",
    "Slack",
    "Zapier",
    "Shopify",
    "Twilio",
    "WhatsApp",
]

MVP = re.compile(
    r"\b(mvp|first (version|release)|launch with|phase (one|1)|v1|"
    r"(come|wait|add(ed)?) later|later (version|phase|release))\b"
)
MVP_DEFERRED = re.compile(r"\b(later|not (in|for) (the )?(first|initial)|phase (two|2)|eventually)\b")
INTEGRATION = re.compile(r"\b(integrat\w*|connect\w*|sync with|api)\b")
NON_FUNCTIONAL = re.compile(
    r"\b(fast|speed|quick|performance|responsive|secure|security|safe|privacy|"
    r"scale|scalable|growth|uptime|reliable)\b"
)
RULE = re.compile(r"\b(must not|must never|cannot|can't|only|rule|policy|not allowed|at least|at most)\b")
WORKFLOW = re.compile(r"\b(steps?|process|flow|workflow|first .+ then)\b")
FEATURE = re.compile(r"\b(features?|functionality|should be able to|able to|needs? to let)\b")
USERS = re.compile(r"\b(users?|customers?|clients?|audience|staff|members?)\b")
OVERVIEW = re.compile(r"\b(build|create|make|want|need|idea|business)\b")

LIST_SPLIT = re.compile(r"\s*(?:,|;|\band\b|\bor\b)\s*")
FEATURE_LEAD = re.compile(
    r"^.*?\b(?:should be able to|be able to|able to|features? (?:like|such as|are|is)|"
    r"functionality (?:like|for)|needs? to let \w+)\s*",
    re.I,
)


class ExtractionService:
    """Keyword-based extraction of specification facts from a user turn."""

    def __init__(self, min_word_count: int = 2):
        self.min_word_count = min_word_count

    def extract_information(
        self, user_message: str, assistant_response: str = ""
    ) -> Optional[ExtractedInformation]:
        text = user_message.strip()
        if len(text.split()) < self.min_word_count:
            return None
        lowered = text.lower()

        extracted: Optional[ExtractedInformation] = None
        if MVP.search(lowered):
            extracted = self._mvp(text, lowered)
        elif INTEGRATION.search(lowered) or _named_integrations(text):
            extracted = IntegrationsExtraction(
                integrations=_named_integrations(text) or [text], confidence=0.8
            )
        elif NON_FUNCTIONAL.search(lowered):
            extracted = NonFunctionalExtraction(notes=[text], confidence=0.7)
        elif RULE.search(lowered):
            extracted = RulesExtraction(rules=[text.rstrip(".")], confidence=0.6)
        elif WORKFLOW.search(lowered):
            extracted = WorkflowsExtraction(flows=[text.rstrip(".")], confidence=0.6)
        elif FEATURE.search(lowered):
            extracted = FeaturesExtraction(features=_split_items(text), confidence=0.8)
        elif USERS.search(lowered):
            extracted = UsersExtraction(target_users=text, confidence=0.7)
        elif OVERVIEW.search(lowered):
            extracted = OverviewExtraction(overview=text, confidence=0.7)

        if extracted is not None:
            log.debug(
                "information_extracted",
                topic=extracted.topic,
                confidence=extracted.confidence,
            )
        return extracted

    def _mvp(self, text: str, lowered: str) -> MvpExtraction:
        items = _split_items(text)
        if MVP_DEFERRED.search(lowered):
            return MvpExtraction(excluded=items, confidence=0.6)
        return MvpExtraction(included=items, confidence=0.6)


def derive_user_intent(
    specification: Optional[Specification], history: Sequence[Message] = ()
) -> UserIntent:
    """Business intent as currently captured by the specification."""
    if specification is None:
        return UserIntent()
    summary = specification.plain_summary
    return UserIntent(
        business_goal=summary.overview or None,
        target_users=[summary.target_users] if summary.target_users else [],
        features=list(summary.key_features),
        workflows=list(summary.flows),
        integrations=list(summary.integrations),
        rules=list(summary.rules_and_constraints),
    )


def _named_integrations(text: str) -> List[str]:
    lowered = text.lower()
    return [name for name in KNOWN_INTEGRATIONS if name.lower() in lowered]


def _split_items(text: str) -> List[str]:
    body = FEATURE_LEAD.sub("", text.strip().rstrip(".")) or text.strip()
    items = [item.strip(" .") for item in LIST_SPLIT.split(body)]
    items = [item for item in items if len(item) > 2]
    return items or [text.strip()]
