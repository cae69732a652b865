"""Submission repository."""

from typing import Optional

import aiosqlite
import structlog

from specwizard.core.exceptions import DuplicateRecordError
from specwizard.domain.models.session import ContactInfo
from specwizard.domain.models.submission import Submission, SubmissionStatus
from specwizard.persistence.repositories.base import (
    connect,
    from_db_timestamp,
    to_db_timestamp,
)

log = structlog.get_logger(__name__)


class SubmissionRepository:
    """Repository for handoff submissions."""

    def __init__(self, db_path: str):
        self.db_path = db_path

    async def create(self, submission: Submission) -> Submission:
        """Insert a submission.

        Raises:
            DuplicateRecordError: reference number (or id) already used
        """
        async with connect(self.db_path, "create_submission") as db:
            try:
                await db.execute(
                    "INSERT INTO submissions (id, session_id, reference_number, "
                    "contact_info, specification_version, submitted_at, status) "
                    "VALUES (?, ?, ?, ?, ?, ?, ?)",
                    (
                        submission.id,
                        submission.session_id,
                        submission.reference_number,
                        submission.contact_info.model_dump_json(),
                        submission.specification_version,
                        to_db_timestamp(submission.submitted_at),
                        submission.status.value,
                    ),
                )
            except aiosqlite.IntegrityError as e:
                if "reference_number" in str(e) or "submissions.id" in str(e):
                    raise DuplicateRecordError(
                        f"Submission key already used: {submission.reference_number}"
                    ) from e
                raise
            await db.commit()

        log.info(
            "submission_created",
            session_id=submission.session_id,
            reference_number=submission.reference_number,
        )
        return submission

    async def get(self, submission_id: str) -> Optional[Submission]:
        async with connect(self.db_path, "get_submission") as db:
            cursor = await db.execute(
                "SELECT * FROM submissions WHERE id = ?", (submission_id,)
            )
            row = await cursor.fetchone()
            return self._row_to_submission(row) if row else None

    def _row_to_submission(self, row: aiosqlite.Row) -> Submission:
        return Submission(
            id=row["id"],
            session_id=row["session_id"],
            reference_number=row["reference_number"],
            contact_info=ContactInfo.model_validate_json(row["contact_info"]),
            specification_version=row["specification_version"],
            submitted_at=from_db_timestamp(row["submitted_at"]),
            status=SubmissionStatus(row["status"]),
        )
