"""Append-only error record repository."""

from typing import List

import aiosqlite

from specwizard.domain.models.session import ErrorRecord
from specwizard.persistence.repositories.base import (
    connect,
    from_db_timestamp,
    to_db_timestamp,
)


class ErrorRepository:
    """Immutable failure records, one row per preserved error."""

    def __init__(self, db_path: str):
        self.db_path = db_path

    async def append(self, record: ErrorRecord) -> None:
        async with connect(self.db_path, "append_error_record") as db:
            await db.execute(
                "INSERT INTO errors (id, session_id, error_message, error_stack, "
                "user_input, timestamp) VALUES (?, ?, ?, ?, ?, ?)",
                (
                    record.id,
                    record.session_id,
                    record.error_message,
                    record.error_stack,
                    record.user_input,
                    to_db_timestamp(record.timestamp),
                ),
            )
            await db.commit()

    async def list_for_session(self, session_id: str) -> List[ErrorRecord]:
        async with connect(self.db_path, "list_error_records") as db:
            cursor = await db.execute(
                "SELECT * FROM errors WHERE session_id = ? ORDER BY timestamp",
                (session_id,),
            )
            rows = await cursor.fetchall()
            return [self._row_to_record(row) for row in rows]

    def _row_to_record(self, row: aiosqlite.Row) -> ErrorRecord:
        return ErrorRecord(
            id=row["id"],
            session_id=row["session_id"],
            error_message=row["error_message"],
            error_stack=row["error_stack"],
            user_input=row["user_input"],
            timestamp=from_db_timestamp(row["timestamp"]),
        )
