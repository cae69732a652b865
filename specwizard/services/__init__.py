# noqa
from specwizard.services.completeness_tracker import CompletenessTracker
from specwizard.services.conversation_stage import ConversationStageEngine
from specwizard.services.session_store import SessionStore
from specwizard.services.specification_ledger import SpecificationLedger
from specwizard.services.magic_link import MagicLinkResolver
from specwizard.services.submission_service import SubmissionService
from specwizard.services.follow_up_service import AskedTopicTracker, FollowUpPlanner
from specwizard.services.extraction_service import ExtractionService

__all__ = [
    "CompletenessTracker",
    "ConversationStageEngine",
    "SessionStore",
    "SpecificationLedger",
    "MagicLinkResolver",
    "SubmissionService",
    "AskedTopicTracker",
    "FollowUpPlanner",
    "ExtractionService",
]
