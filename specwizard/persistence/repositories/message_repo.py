"""Append-only message log repository."""

import json
from typing import List, Sequence, Set

import aiosqlite
import structlog

from specwizard.domain.models.message import Message, MessageRole
from specwizard.persistence.repositories.base import (
    connect,
    from_db_timestamp,
    to_db_timestamp,
)

log = structlog.get_logger(__name__)


class MessageRepository:
    """Repository for the per-session message log.

    There is no update or delete: rows are only ever inserted.
    """

    def __init__(self, db_path: str):
        self.db_path = db_path

    async def append(self, session_id: str, messages: Sequence[Message]) -> int:
        """Insert messages in the given order, skipping ids this session already has.

        Returns:
            Number of rows actually inserted.
        """
        if not messages:
            return 0

        inserted = 0
        async with connect(self.db_path, "append_messages") as db:
            for message in messages:
                cursor = await db.execute(
                    "INSERT OR IGNORE INTO messages "
                    "(id, session_id, role, content, timestamp, metadata) "
                    "VALUES (?, ?, ?, ?, ?, ?)",
                    (
                        message.id,
                        session_id,
                        message.role.value,
                        message.content,
                        to_db_timestamp(message.timestamp),
                        json.dumps(message.metadata) if message.metadata else None,
                    ),
                )
                inserted += cursor.rowcount
            await db.commit()

        log.debug("messages_appended", session_id=session_id, count=inserted)
        return inserted

    async def list_for_session(self, session_id: str) -> List[Message]:
        """Full message log ordered by timestamp, ties broken by write order."""
        async with connect(self.db_path, "list_messages") as db:
            cursor = await db.execute(
                "SELECT * FROM messages WHERE session_id = ? ORDER BY timestamp, seq",
                (session_id,),
            )
            rows = await cursor.fetchall()
            return [self._row_to_message(row) for row in rows]

    async def list_ids(self, session_id: str) -> Set[str]:
        async with connect(self.db_path, "list_message_ids") as db:
            cursor = await db.execute(
                "SELECT id FROM messages WHERE session_id = ?", (session_id,)
            )
            rows = await cursor.fetchall()
            return {row["id"] for row in rows}

    def _row_to_message(self, row: aiosqlite.Row) -> Message:
        return Message(
            id=row["id"],
            role=MessageRole(row["role"]),
            content=row["content"],
            timestamp=from_db_timestamp(row["timestamp"]),
            metadata=json.loads(row["metadata"]) if row["metadata"] else None,
        )
