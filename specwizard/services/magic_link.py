"""Magic-link resolver.

A magic link is an opaque bearer token resolving to exactly one session.
Issuing a new token overwrites the previous one, so only the latest token
for a session resolves.
"""

import secrets

import structlog

from specwizard.core.exceptions import (
    DuplicateRecordError,
    MagicLinkNotFoundError,
    SessionNotFoundError,
)
from specwizard.domain.models.session import Session
from specwizard.services.session_store import SessionStore

log = structlog.get_logger(__name__)

MAX_ISSUE_ATTEMPTS = 3


class MagicLinkResolver:
    def __init__(self, session_store: SessionStore, token_bytes: int = 16):
        self.session_store = session_store
        self.token_bytes = token_bytes

    async def generate_magic_link(self, session_id: str) -> str:
        """Issue a fresh token for a session, invalidating any earlier one."""
        for _ in range(MAX_ISSUE_ATTEMPTS):
            token = secrets.token_urlsafe(self.token_bytes)
            try:
                updated = await self.session_store.sessions.set_magic_link_token(
                    session_id, token
                )
            except DuplicateRecordError:
                log.warning("magic_link_token_collision", session_id=session_id)
                continue
            if not updated:
                raise SessionNotFoundError(f"Session {session_id} not found")
            log.info("magic_link_issued", session_id=session_id)
            return token
        raise DuplicateRecordError("Could not issue a unique magic link token")

    async def restore_session_from_magic_link(self, token: str) -> Session:
        """Resolve a token to its full session, active or abandoned."""
        if not token:
            raise MagicLinkNotFoundError("Magic link token is empty")

        record = await self.session_store.sessions.get_by_magic_link_token(token)
        if record is None:
            raise MagicLinkNotFoundError("Magic link is invalid or has been replaced")

        session = await self.session_store.get_session(record.id)
        if session is None:
            raise MagicLinkNotFoundError("Magic link is invalid or has been replaced")

        log.info("session_restored_from_magic_link", session_id=session.id)
        return session
