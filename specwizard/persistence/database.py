"""
Durable record store bootstrap.

The wizard keeps six append-only record sets in one SQLite file (see
schema.sql). This module creates them and answers health checks; all reads
and writes go through the repositories.
"""

from pathlib import Path
from typing import Dict

import aiosqlite
import structlog

from specwizard.core.config import settings

log = structlog.get_logger(__name__)

SCHEMA_FILE = Path(__file__).parent / "schema.sql"

RECORD_TABLES = (
    "sessions",
    "messages",
    "specifications",
    "locked_sections",
    "errors",
    "submissions",
)


async def init_database(db_path: Path | None = None) -> None:
    """
    Create the record store at db_path (default: settings.database_path).

    Safe to run on every startup: the schema only uses CREATE ... IF NOT
    EXISTS, so existing records are never touched.

    Raises:
        FileNotFoundError: If schema.sql is missing from the package
    """
    db_path = Path(db_path or settings.database_path)
    db_path.parent.mkdir(parents=True, exist_ok=True)

    if not SCHEMA_FILE.exists():
        log.error("schema_file_not_found", path=str(SCHEMA_FILE))
        raise FileNotFoundError(f"Schema file not found: {SCHEMA_FILE}")

    async with aiosqlite.connect(db_path) as db:
        await db.execute("PRAGMA journal_mode = WAL")
        await db.executescript(SCHEMA_FILE.read_text())
        await db.commit()

    log.info("database_initialized", path=str(db_path), tables=len(RECORD_TABLES))


async def count_records(db: aiosqlite.Connection) -> Dict[str, int]:
    counts = {}
    for table in RECORD_TABLES:
        cursor = await db.execute(f"SELECT COUNT(*) FROM {table}")
        row = await cursor.fetchone()
        counts[table] = row[0] if row else 0
    return counts


async def check_database_health(db_path: Path | None = None) -> dict:
    """
    Check the record store.

    Returns:
        {"status": "healthy", "session_count", "record_counts", "integrity",
        "path"} or {"status": "unhealthy", "error"}. Never raises.
    """
    db_path = db_path or settings.database_path
    try:
        async with aiosqlite.connect(db_path) as db:
            counts = await count_records(db)
            cursor = await db.execute("PRAGMA quick_check")
            integrity = await cursor.fetchone()
    except aiosqlite.Error as e:
        log.error("database_health_check_failed", path=str(db_path), error=str(e))
        return {"status": "unhealthy", "error": str(e)}

    return {
        "status": "healthy",
        "session_count": counts["sessions"],
        "record_counts": counts,
        "integrity": integrity[0] if integrity else "unknown",
        "path": str(db_path),
    }
