"""Append-only checkpoint (locked section) repository."""

from typing import List

import aiosqlite

from specwizard.domain.models.session import LockedSection
from specwizard.persistence.repositories.base import (
    connect,
    from_db_timestamp,
    to_db_timestamp,
)


class LockedSectionRepository:
    """Repository for per-session locked sections, in lock order."""

    def __init__(self, db_path: str):
        self.db_path = db_path

    async def append(self, session_id: str, sections: List[LockedSection]) -> int:
        """Insert checkpoints not yet stored. Returns rows inserted."""
        if not sections:
            return 0
        inserted = 0
        async with connect(self.db_path, "append_locked_sections") as db:
            for section in sections:
                cursor = await db.execute(
                    "INSERT OR IGNORE INTO locked_sections "
                    "(id, session_id, name, summary, locked_at, supersedes) "
                    "VALUES (?, ?, ?, ?, ?, ?)",
                    (
                        section.id,
                        session_id,
                        section.name,
                        section.summary,
                        to_db_timestamp(section.locked_at),
                        section.supersedes,
                    ),
                )
                inserted += cursor.rowcount
            await db.commit()
        return inserted

    async def list_for_session(self, session_id: str) -> List[LockedSection]:
        async with connect(self.db_path, "list_locked_sections") as db:
            cursor = await db.execute(
                "SELECT * FROM locked_sections WHERE session_id = ? ORDER BY seq",
                (session_id,),
            )
            rows = await cursor.fetchall()
            return [self._row_to_section(row) for row in rows]

    def _row_to_section(self, row: aiosqlite.Row) -> LockedSection:
        return LockedSection(
            id=row["id"],
            name=row["name"],
            summary=row["summary"],
            locked_at=from_db_timestamp(row["locked_at"]),
            supersedes=row["supersedes"],
        )
