"""
Session store: single source of truth for session existence and state.

Reconstructs full session state from the durable store and writes it back
idempotently:

- Messages are diffed by id; only unseen messages are appended
- A specification version is written only when it differs from the stored
  current version (replaying an unchanged version is a no-op), and only as
  the next consecutive version
- Completeness and progress are recomputed for each written version and
  stored next to it

Store errors propagate to callers, except inside preserve_error_state,
which runs on failure paths and must never raise.
"""

import traceback
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional, Sequence
from uuid import uuid4

import structlog

from specwizard.core.exceptions import (
    NotFoundError,
    SessionNotFoundError,
    ValidationError,
)
from specwizard.domain.models.message import Message
from specwizard.domain.models.session import (
    ErrorRecord,
    LockedSection,
    Session,
    SessionState,
    SessionStatus,
    active_locked_sections,
)
from specwizard.domain.models.specification import empty_specification
from specwizard.persistence.repositories import (
    ErrorRepository,
    LockedSectionRepository,
    MessageRepository,
    SessionRecord,
    SessionRepository,
    SpecificationRepository,
)
from specwizard.services.completeness_tracker import CompletenessTracker
from specwizard.services.conversation_stage import ConversationStageEngine

log = structlog.get_logger(__name__)


class SessionStore:
    """Orchestrates repositories, tracker and stage engine per session."""

    def __init__(
        self,
        db_path: str,
        tracker: Optional[CompletenessTracker] = None,
        stage_engine: Optional[ConversationStageEngine] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """
        Args:
            db_path: SQLite database path
            tracker: Completeness tracker (default config if None)
            stage_engine: Stage engine used for checkpoint redo
            clock: Returns the current UTC time (injectable for tests)
        """
        self.db_path = db_path
        self.sessions = SessionRepository(db_path)
        self.messages = MessageRepository(db_path)
        self.specifications = SpecificationRepository(db_path)
        self.locked_sections = LockedSectionRepository(db_path)
        self.errors = ErrorRepository(db_path)
        self.tracker = tracker or CompletenessTracker()
        self.stage_engine = stage_engine or ConversationStageEngine()
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def create_session(self) -> Session:
        """Create a session with an empty version-0 specification."""
        now = self._clock()
        session_id = str(uuid4())
        specification = empty_specification(session_id, last_updated=now)
        completeness, progress = self.tracker.evaluate(specification, evaluated_at=now)

        record = SessionRecord(
            id=session_id,
            created_at=now,
            last_accessed_at=now,
            status=SessionStatus.ACTIVE,
        )
        await self.sessions.create(record)
        await self.specifications.append(specification, completeness, progress)

        log.info("session_created", session_id=session_id)
        return Session(
            id=session_id,
            created_at=now,
            last_accessed_at=now,
            status=SessionStatus.ACTIVE,
            state=SessionState(
                specification=specification,
                completeness=completeness,
                progress=progress,
            ),
        )

    async def get_session(self, session_id: str) -> Optional[Session]:
        """Reconstruct a session, or None if its metadata does not exist.

        Abandoned sessions are returned like active ones. Updates
        last_accessed_at as a side effect.
        """
        record = await self.sessions.get(session_id)
        if record is None:
            return None

        history = await self.messages.list_for_session(session_id)
        stored = await self.specifications.get_current(session_id)
        locked = await self.locked_sections.list_for_session(session_id)

        if stored is None:
            specification = empty_specification(session_id, last_updated=record.created_at)
            completeness, progress = self.tracker.evaluate(
                specification, evaluated_at=record.created_at
            )
        else:
            specification = stored.specification
            completeness, progress = stored.completeness, stored.progress
            if completeness is None or progress is None:
                completeness, progress = self.tracker.evaluate(
                    specification, evaluated_at=specification.last_updated
                )

        accessed_at = self._clock()
        await self.sessions.touch(session_id, accessed_at)

        return Session(
            id=record.id,
            created_at=record.created_at,
            last_accessed_at=accessed_at,
            status=record.status,
            magic_link_token=record.magic_link_token,
            state=SessionState(
                conversation_history=history,
                specification=specification,
                completeness=completeness,
                progress=progress,
                locked_sections=locked,
            ),
        )

    async def require_session(self, session_id: str) -> Session:
        session = await self.get_session(session_id)
        if session is None:
            raise SessionNotFoundError(f"Session {session_id} not found")
        return session

    async def save_session_state(self, session_id: str, state: SessionState) -> None:
        """Persist state idempotently.

        Raises:
            SessionNotFoundError: session metadata does not exist
            ValidationError: the specification belongs to another session
            SpecificationVersionConflictError: version is neither the stored
                one nor the one right after it; nothing is written
        """
        record = await self.sessions.get(session_id)
        if record is None:
            raise SessionNotFoundError(f"Session {session_id} not found")

        specification = state.specification
        if specification.id != session_id:
            raise ValidationError(
                "Specification does not belong to this session",
                errors=[f"specification.id must equal {session_id}"],
            )

        # The version write is the compare-and-swap; nothing else is written
        # unless it succeeds.
        current_version = await self.specifications.current_version(session_id)
        version_written = False
        if current_version != specification.version:
            completeness, progress = self.tracker.evaluate(
                specification, evaluated_at=specification.last_updated
            )
            await self.specifications.append(specification, completeness, progress)
            version_written = True

        stored_ids = await self.messages.list_ids(session_id)
        new_messages = [m for m in state.conversation_history if m.id not in stored_ids]
        appended = await self.messages.append(session_id, new_messages)

        locked_added = await self.locked_sections.append(session_id, state.locked_sections)
        await self.sessions.touch(session_id, self._clock())

        log.info(
            "session_state_saved",
            session_id=session_id,
            messages_appended=appended,
            specification_version=specification.version,
            version_written=version_written,
            locked_sections_added=locked_added,
        )

    async def abandon_session(self, session_id: str) -> None:
        """Mark a session abandoned. Repeated calls succeed."""
        updated = await self.sessions.set_status(session_id, SessionStatus.ABANDONED)
        if not updated:
            raise SessionNotFoundError(f"Session {session_id} not found")
        log.info("session_abandoned", session_id=session_id)

    # ------------------------------------------------------------------
    # Failure path
    # ------------------------------------------------------------------

    async def preserve_error_state(
        self,
        session_id: str,
        error: BaseException,
        user_input: Optional[str],
        current_state: Optional[SessionState] = None,
    ) -> None:
        """Record an error and its triggering input. Never raises."""
        try:
            record = ErrorRecord(
                session_id=session_id,
                error_message=str(error) or type(error).__name__,
                error_stack="".join(
                    traceback.format_exception(type(error), error, error.__traceback__)
                ),
                user_input=user_input,
                timestamp=self._clock(),
            )
            await self.errors.append(record)
            log.warning(
                "error_state_preserved",
                session_id=session_id,
                error_type=type(error).__name__,
            )
        except Exception as e:
            log.error("error_record_write_failed", session_id=session_id, error=str(e))

        if current_state is None:
            return
        try:
            await self.save_session_state(session_id, current_state)
        except Exception as e:
            log.error("error_state_snapshot_failed", session_id=session_id, error=str(e))

    async def reconstruct_context_after_error(
        self, session_id: str
    ) -> Optional[SessionState]:
        session = await self.get_session(session_id)
        return session.state if session else None

    async def list_error_records(self, session_id: str) -> List[ErrorRecord]:
        return await self.errors.list_for_session(session_id)

    # ------------------------------------------------------------------
    # Appends outside a turn
    # ------------------------------------------------------------------

    async def append_messages(
        self, session_id: str, messages: Sequence[Message]
    ) -> Session:
        """Append messages after the current end of the history, in order.

        Messages are restamped so they sort after everything already stored;
        the original timestamp is kept in metadata under ``queued_at``.
        """
        session = await self.require_session(session_id)
        history = session.state.conversation_history
        floor = history[-1].timestamp if history else session.created_at
        now = self._clock()
        start = now if now > floor else floor + timedelta(microseconds=1)

        restamped = []
        for offset, message in enumerate(messages):
            metadata = dict(message.metadata or {})
            metadata["queued_at"] = message.timestamp.isoformat()
            restamped.append(
                message.model_copy(
                    update={
                        "timestamp": start + timedelta(microseconds=offset),
                        "metadata": metadata,
                    }
                )
            )

        await self.messages.append(session_id, restamped)
        log.info("messages_merged", session_id=session_id, count=len(restamped))
        return await self.require_session(session_id)

    async def redo_locked_section(self, session_id: str, name: str) -> LockedSection:
        """Replace an active checkpoint with one built from the current spec.

        Raises:
            NotFoundError: no active checkpoint has this name
            ValidationError: the current specification has nothing to summarise
        """
        session = await self.require_session(session_id)
        active = active_locked_sections(session.state.locked_sections)
        existing = next((s for s in reversed(active) if s.name == name), None)
        if existing is None:
            raise NotFoundError(f"No locked section named '{name}'")

        replacement = self.stage_engine.supersede_checkpoint(
            existing, session.state.specification, locked_at=self._clock()
        )
        if replacement is None:
            raise ValidationError(
                f"Cannot redo '{name}'",
                errors=[f"The current specification has no content for '{name}'"],
            )

        await self.locked_sections.append(session_id, [replacement])
        log.info(
            "locked_section_superseded",
            session_id=session_id,
            section=name,
            supersedes=existing.id,
        )
        return replacement
