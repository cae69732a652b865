"""Versioned specification repository.

Each row is one immutable specification version keyed by
(session_id, version). The current version is the highest one. Derived
completeness and progress are stored on the version they were computed for
and nowhere else.
"""

from dataclasses import dataclass
from typing import List, Optional

import aiosqlite
import structlog

from specwizard.core.exceptions import SpecificationVersionConflictError
from specwizard.domain.models.completeness import CompletenessState, ProgressState
from specwizard.domain.models.specification import (
    FormalDocument,
    PlainSummary,
    Specification,
)
from specwizard.persistence.repositories.base import (
    connect,
    from_db_timestamp,
    to_db_timestamp,
)

log = structlog.get_logger(__name__)


@dataclass
class SpecificationRecord:
    """A stored version plus the derived views computed against it."""

    specification: Specification
    completeness: Optional[CompletenessState] = None
    progress: Optional[ProgressState] = None


class SpecificationRepository:
    """Append-only ledger of specification versions."""

    def __init__(self, db_path: str):
        self.db_path = db_path

    async def append(
        self,
        specification: Specification,
        completeness: Optional[CompletenessState] = None,
        progress: Optional[ProgressState] = None,
    ) -> None:
        """Write a new version.

        The write is accepted only when the version is exactly one above the
        stored current version (or 0 for a session with no versions yet).
        A stale or skipping writer, or one that loses a race on the
        (session_id, version) key, gets SpecificationVersionConflictError.
        """
        session_id = specification.id
        async with connect(self.db_path, "append_specification") as db:
            await db.execute("BEGIN IMMEDIATE")
            cursor = await db.execute(
                "SELECT MAX(version) FROM specifications WHERE session_id = ?",
                (session_id,),
            )
            row = await cursor.fetchone()
            current = row[0] if row else None

            expected = 0 if current is None else current + 1
            if specification.version != expected:
                await db.rollback()
                raise SpecificationVersionConflictError(
                    session_id, specification.version, current or 0
                )

            try:
                await db.execute(
                    "INSERT INTO specifications (session_id, version, plain_summary, "
                    "formal_document, completeness, progress, last_updated) "
                    "VALUES (?, ?, ?, ?, ?, ?, ?)",
                    (
                        session_id,
                        specification.version,
                        specification.plain_summary.model_dump_json(),
                        specification.formal_document.model_dump_json(),
                        completeness.model_dump_json() if completeness else None,
                        progress.model_dump_json() if progress else None,
                        to_db_timestamp(specification.last_updated),
                    ),
                )
            except aiosqlite.IntegrityError as e:
                await db.rollback()
                raise SpecificationVersionConflictError(
                    session_id, specification.version, current or 0
                ) from e
            await db.commit()

        log.info(
            "specification_version_written",
            session_id=session_id,
            version=specification.version,
        )

    async def get_current(self, session_id: str) -> Optional[SpecificationRecord]:
        """Highest stored version, or None when nothing has been written."""
        async with connect(self.db_path, "get_current_specification") as db:
            cursor = await db.execute(
                "SELECT * FROM specifications WHERE session_id = ? "
                "ORDER BY version DESC LIMIT 1",
                (session_id,),
            )
            row = await cursor.fetchone()
            return self._row_to_record(row) if row else None

    async def current_version(self, session_id: str) -> Optional[int]:
        async with connect(self.db_path, "get_current_version") as db:
            cursor = await db.execute(
                "SELECT MAX(version) FROM specifications WHERE session_id = ?",
                (session_id,),
            )
            row = await cursor.fetchone()
            return row[0] if row else None

    async def list_versions(self, session_id: str) -> List[int]:
        async with connect(self.db_path, "list_specification_versions") as db:
            cursor = await db.execute(
                "SELECT version FROM specifications WHERE session_id = ? ORDER BY version",
                (session_id,),
            )
            rows = await cursor.fetchall()
            return [row["version"] for row in rows]

    def _row_to_record(self, row: aiosqlite.Row) -> SpecificationRecord:
        specification = Specification(
            id=row["session_id"],
            version=row["version"],
            plain_summary=PlainSummary.model_validate_json(row["plain_summary"]),
            formal_document=FormalDocument.model_validate_json(row["formal_document"]),
            last_updated=from_db_timestamp(row["last_updated"]),
        )
        return SpecificationRecord(
            specification=specification,
            completeness=(
                CompletenessState.model_validate_json(row["completeness"])
                if row["completeness"]
                else None
            ),
            progress=(
                ProgressState.model_validate_json(row["progress"])
                if row["progress"]
                else None
            ),
        )
