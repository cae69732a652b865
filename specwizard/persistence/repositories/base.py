"""Shared connection and serialization helpers for repositories."""

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import AsyncIterator, Union

import aiosqlite
import structlog

from specwizard.core.exceptions import PersistenceError

log = structlog.get_logger(__name__)


@asynccontextmanager
async def connect(
    db_path: Union[str, Path], operation: str
) -> AsyncIterator[aiosqlite.Connection]:
    """Open a connection with foreign keys and Row access enabled.

    Store errors raised inside the block surface as PersistenceError, so
    callers see one error type regardless of the driver.
    """
    try:
        async with aiosqlite.connect(db_path) as db:
            await db.execute("PRAGMA foreign_keys = ON")
            db.row_factory = aiosqlite.Row
            yield db
    except aiosqlite.Error as e:
        log.error("persistence_operation_failed", operation=operation, error=str(e))
        raise PersistenceError(f"{operation} failed: {e}") from e


def to_db_timestamp(value: datetime) -> str:
    """UTC ISO-8601 with fixed microsecond precision so text order is time order."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def from_db_timestamp(value: str) -> datetime:
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
