"""
Submission (handoff) service.

Validates contact details and the current specification, then records a
Submission under a fresh reference number. Validation problems are
collected and raised together so every bad field can be shown at once.
"""

import re
import secrets
import string
import time
from typing import Callable, List, Optional

import structlog

from specwizard.core.exceptions import (
    DuplicateRecordError,
    SubmissionNotFoundError,
    ValidationError,
)
from specwizard.domain.models.session import ContactInfo
from specwizard.domain.models.submission import Submission
from specwizard.persistence.repositories import SubmissionRepository
from specwizard.services.session_store import SessionStore
from specwizard.services.specification_ledger import SpecificationLedger

log = structlog.get_logger(__name__)

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
PHONE_PATTERN = re.compile(r"^\+?\d{10,}$")
BASE36_ALPHABET = string.digits + string.ascii_uppercase
MAX_REFERENCE_ATTEMPTS = 5


def validate_contact_info(contact_info: ContactInfo) -> List[str]:
    """One message per invalid field; empty when the contact is usable."""
    errors = []
    if not contact_info.name.strip():
        errors.append("Name is required")

    email = contact_info.email.strip()
    if not email:
        errors.append("Email is required")
    elif not EMAIL_PATTERN.match(email):
        errors.append("Email format is invalid")

    phone = contact_info.phone.strip()
    if not phone:
        errors.append("Phone number is required")
    elif not PHONE_PATTERN.match(re.sub(r"[^\d+]", "", phone)):
        errors.append("Phone number must contain at least 10 digits")
    return errors


def to_base36(value: int) -> str:
    if value == 0:
        return "0"
    digits = []
    while value:
        value, remainder = divmod(value, 36)
        digits.append(BASE36_ALPHABET[remainder])
    return "".join(reversed(digits))


def generate_reference_number(now_ms: Optional[int] = None) -> str:
    """REF-<base36 millis>-<4 random base36 chars>."""
    millis = now_ms if now_ms is not None else int(time.time() * 1000)
    suffix = "".join(secrets.choice(BASE36_ALPHABET) for _ in range(4))
    return f"REF-{to_base36(millis)}-{suffix}"


class SubmissionService:
    def __init__(
        self,
        session_store: SessionStore,
        submission_repo: SubmissionRepository,
        ledger: Optional[SpecificationLedger] = None,
        reference_factory: Callable[[], str] = generate_reference_number,
    ):
        self.session_store = session_store
        self.submission_repo = submission_repo
        self.ledger = ledger or SpecificationLedger()
        self.reference_factory = reference_factory

    async def submit(self, session_id: str, contact_info: ContactInfo) -> Submission:
        """Hand off the session's current specification.

        Raises:
            SessionNotFoundError: unknown session
            ValidationError: contact or specification problems (itemised)
        """
        session = await self.session_store.require_session(session_id)
        specification = session.state.specification

        errors = validate_contact_info(contact_info)
        result = self.ledger.validate_completeness(specification)
        if result.missing_topics:
            errors.append(f"Missing topics: {', '.join(result.missing_topics)}")
        if result.ambiguous_requirements:
            errors.append(
                f"Ambiguous requirements: {', '.join(result.ambiguous_requirements)}"
            )
        if result.conflicting_requirements:
            pairs = ", ".join(
                f"{c.requirement1}/{c.requirement2}"
                for c in result.conflicting_requirements
            )
            errors.append(f"Conflicting requirements: {pairs}")

        if errors:
            log.info("submission_rejected", session_id=session_id, errors=errors)
            raise ValidationError("Submission is not ready", errors=errors)

        for _ in range(MAX_REFERENCE_ATTEMPTS):
            submission = Submission(
                session_id=session_id,
                contact_info=contact_info,
                specification_version=specification.version,
                reference_number=self.reference_factory(),
            )
            try:
                return await self.submission_repo.create(submission)
            except DuplicateRecordError:
                log.warning(
                    "reference_number_collision",
                    session_id=session_id,
                    reference_number=submission.reference_number,
                )
        raise DuplicateRecordError("Could not allocate a unique reference number")

    async def get_submission(self, submission_id: str) -> Submission:
        submission = await self.submission_repo.get(submission_id)
        if submission is None:
            raise SubmissionNotFoundError(f"Submission {submission_id} not found")
        return submission
