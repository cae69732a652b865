"""
Follow-up question planning.

Picks the next missing section and phrases a business-language question
for it, adapted to the project archetype. Topics already asked in a session
are skipped so the user is never asked the same thing twice.

Asked topics live in an AskedTopicTracker that the caller constructs once
and passes in; nothing is kept in module globals.
"""

from collections import defaultdict
from typing import Dict, List, Optional, Set

import structlog

from specwizard.domain.models.completeness import CompletenessState, ProjectType

log = structlog.get_logger(__name__)

FALLBACK_QUESTION = "Is there anything else you'd like to add or clarify?"

QUESTION_TEMPLATES: Dict[str, str] = {
    "overview": "Can you tell me more about what you want to build?",
    "users": "Who will be using this software? What are their main needs?",
    "features": "What are the most important features you need?",
    "integrations": "Do you need to connect with any existing systems or services?",
    "data": "What kind of information will the system need to store and manage?",
    "workflows": "Can you walk me through how people will move through the system, step by step?",
    "security": "Is there any sensitive information we need to protect?",
    "performance": "How quickly should things respond when people use it?",
    "scalability": "How many people do you expect to use it as the business grows?",
    "calendar": "How should availability and time slots be managed?",
    "notifications": "How should customers be reminded or notified about their bookings?",
    "cancellations": "What should happen when someone cancels or needs to reschedule?",
    "products": "What will you be selling, and how should it be organised?",
    "cart": "How should customers collect items before they buy?",
    "payments": "How would you like to take payments?",
    "shipping": "How will orders reach your customers?",
    "contacts": "What do you need to keep track of for each customer?",
    "reporting": "Which numbers or reports do you look at to run the business?",
    "platforms": "Will this be for iPhone, Android, or both?",
    "endpoints": "Which other systems will call into this one, and what do they need?",
    "authentication": "Who should be allowed in, and how should they sign in?",
}

PROJECT_TYPE_ADAPTATIONS: Dict[ProjectType, Dict[str, str]] = {
    ProjectType.BOOKING_SYSTEM: {
        "features": "What types of bookings or reservations do you need to handle?",
        "workflows": "How should customers make and manage their bookings?",
    },
    ProjectType.ECOMMERCE: {
        "features": "What products will you be selling, and how should customers browse and purchase?",
        "integrations": "Which payment processors and shipping providers do you want to use?",
    },
    ProjectType.MOBILE_APP: {
        "users": "Will this be for iPhone, Android, or both? Who are your target users?",
        "features": "What are the core features people will need on their phone?",
    },
    ProjectType.CRM: {
        "features": "How do you find, track and follow up with customers today?",
    },
}


class AskedTopicTracker:
    """Per-session record of topics already asked about."""

    def __init__(self) -> None:
        self._asked: Dict[str, Set[str]] = defaultdict(set)

    def mark_asked(self, session_id: str, topic: str) -> None:
        self._asked[session_id].add(topic.lower())

    def was_asked(self, session_id: str, topic: str) -> bool:
        return topic.lower() in self._asked.get(session_id, set())

    def asked_topics(self, session_id: str) -> Set[str]:
        return set(self._asked.get(session_id, set()))

    def forget(self, session_id: str) -> None:
        self._asked.pop(session_id, None)


class FollowUpPlanner:
    def __init__(self, tracker: Optional[AskedTopicTracker] = None):
        self.tracker = tracker or AskedTopicTracker()

    def question_for_topic(
        self, topic: str, project_type: ProjectType = ProjectType.UNKNOWN
    ) -> str:
        adapted = PROJECT_TYPE_ADAPTATIONS.get(project_type, {}).get(topic)
        if adapted:
            return adapted
        return QUESTION_TEMPLATES.get(
            topic, f"Can you tell me about {topic.replace('-', ' ')}?"
        )

    def next_questions(
        self,
        session_id: str,
        completeness: Optional[CompletenessState],
        project_type: ProjectType = ProjectType.UNKNOWN,
    ) -> List[str]:
        """One question for the first missing section not yet asked."""
        missing = completeness.missing_sections if completeness else []
        for topic in missing:
            if self.tracker.was_asked(session_id, topic):
                continue
            self.tracker.mark_asked(session_id, topic)
            log.debug("follow_up_planned", session_id=session_id, topic=topic)
            return [self.question_for_topic(topic, project_type)]
        return [FALLBACK_QUESTION]
