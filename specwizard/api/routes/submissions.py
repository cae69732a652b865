"""
Submission API routes.

Handing a finished specification off for a quote.
"""

from fastapi import APIRouter, status
import structlog

from specwizard.api.dependencies import SubmissionServiceDep
from specwizard.api.schemas import SubmitRequest
from specwizard.core.logging import bind_context
from specwizard.domain.models.submission import Submission

log = structlog.get_logger(__name__)

router = APIRouter(tags=["submissions"])


@router.post(
    "/sessions/{session_id}/submit",
    response_model=Submission,
    status_code=status.HTTP_201_CREATED,
)
async def submit_session(
    session_id: str, request: SubmitRequest, service: SubmissionServiceDep
):
    """Submit the session's current specification.

    Returns 400 with one message per problem when the contact details or the
    specification are not ready.
    """
    bind_context(session_id=session_id)
    submission = await service.submit(session_id, request.contact_info)
    log.info(
        "submission_created",
        session_id=session_id,
        reference_number=submission.reference_number,
    )
    return submission


@router.get("/submissions/{submission_id}", response_model=Submission)
async def get_submission(submission_id: str, service: SubmissionServiceDep):
    return await service.get_submission(submission_id)
