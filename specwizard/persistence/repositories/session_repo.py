"""Session metadata repository.

Holds only session metadata (timestamps, status, magic-link token). The
message log and specification versions live in their own repositories.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

import aiosqlite
import structlog

from specwizard.core.exceptions import DuplicateRecordError
from specwizard.domain.models.session import SessionStatus
from specwizard.persistence.repositories.base import (
    connect,
    from_db_timestamp,
    to_db_timestamp,
)

log = structlog.get_logger(__name__)


@dataclass
class SessionRecord:
    """Row of the sessions table."""

    id: str
    created_at: datetime
    last_accessed_at: datetime
    status: SessionStatus
    magic_link_token: Optional[str] = None


class SessionRepository:
    """Repository for session metadata."""

    def __init__(self, db_path: str):
        self.db_path = db_path

    async def create(self, record: SessionRecord) -> SessionRecord:
        async with connect(self.db_path, "create_session") as db:
            await db.execute(
                "INSERT INTO sessions (id, created_at, last_accessed_at, status, magic_link_token) "
                "VALUES (?, ?, ?, ?, ?)",
                (
                    record.id,
                    to_db_timestamp(record.created_at),
                    to_db_timestamp(record.last_accessed_at),
                    record.status.value,
                    record.magic_link_token,
                ),
            )
            await db.commit()
        return record

    async def get(self, session_id: str) -> Optional[SessionRecord]:
        """Get session metadata by ID, or None if it was never created."""
        async with connect(self.db_path, "get_session") as db:
            cursor = await db.execute(
                "SELECT * FROM sessions WHERE id = ?", (session_id,)
            )
            row = await cursor.fetchone()
            return self._row_to_record(row) if row else None

    async def touch(self, session_id: str, accessed_at: datetime) -> None:
        """Record an access; the only metadata write on the read path."""
        async with connect(self.db_path, "touch_session") as db:
            await db.execute(
                "UPDATE sessions SET last_accessed_at = ? WHERE id = ?",
                (to_db_timestamp(accessed_at), session_id),
            )
            await db.commit()

    async def set_status(self, session_id: str, status: SessionStatus) -> bool:
        """Set lifecycle status. Returns False if the session does not exist."""
        async with connect(self.db_path, "set_session_status") as db:
            cursor = await db.execute(
                "UPDATE sessions SET status = ? WHERE id = ?",
                (status.value, session_id),
            )
            await db.commit()
            return cursor.rowcount > 0

    async def set_magic_link_token(self, session_id: str, token: str) -> bool:
        """Replace the session's token. Returns False if the session does not exist."""
        async with connect(self.db_path, "set_magic_link_token") as db:
            try:
                cursor = await db.execute(
                    "UPDATE sessions SET magic_link_token = ? WHERE id = ?",
                    (token, session_id),
                )
            except aiosqlite.IntegrityError as e:
                raise DuplicateRecordError("Magic link token already issued") from e
            await db.commit()
            return cursor.rowcount > 0

    async def get_by_magic_link_token(self, token: str) -> Optional[SessionRecord]:
        async with connect(self.db_path, "get_session_by_token") as db:
            cursor = await db.execute(
                "SELECT * FROM sessions WHERE magic_link_token = ?", (token,)
            )
            row = await cursor.fetchone()
            return self._row_to_record(row) if row else None

    async def count(self) -> int:
        async with connect(self.db_path, "count_sessions") as db:
            cursor = await db.execute("SELECT COUNT(*) FROM sessions")
            row = await cursor.fetchone()
            return row[0] if row else 0

    def _row_to_record(self, row: aiosqlite.Row) -> SessionRecord:
        return SessionRecord(
            id=row["id"],
            created_at=from_db_timestamp(row["created_at"]),
            last_accessed_at=from_db_timestamp(row["last_accessed_at"]),
            status=SessionStatus(row["status"]),
            magic_link_token=row["magic_link_token"],
        )
