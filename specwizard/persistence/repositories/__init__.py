"""Repository implementations."""

from specwizard.persistence.repositories.session_repo import (
    SessionRecord,
    SessionRepository,
)
from specwizard.persistence.repositories.message_repo import MessageRepository
from specwizard.persistence.repositories.specification_repo import (
    SpecificationRecord,
    SpecificationRepository,
)
from specwizard.persistence.repositories.locked_section_repo import (
    LockedSectionRepository,
)
from specwizard.persistence.repositories.error_repo import ErrorRepository
from specwizard.persistence.repositories.submission_repo import SubmissionRepository

__all__ = [
    "SessionRecord",
    "SessionRepository",
    "MessageRepository",
    "SpecificationRecord",
    "SpecificationRepository",
    "LockedSectionRepository",
    "ErrorRepository",
    "SubmissionRepository",
]
