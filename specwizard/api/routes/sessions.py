"""
Session API routes.

Endpoints for session lifecycle, magic-link recovery, conversational turns,
offline sync and locked-section redo.
"""

from fastapi import APIRouter, status
import structlog

from specwizard.api.dependencies import (
    ConversationServiceDep,
    MagicLinkResolverDep,
    SessionStoreDep,
)
from specwizard.api.schemas import (
    MagicLinkResponse,
    MessageRequest,
    MessageSyncRequest,
    SessionResponse,
    TurnResponse,
)
from specwizard.core.logging import bind_context
from specwizard.domain.models.session import LockedSection, Session, SessionState
from specwizard.services.session_store import SessionStore

log = structlog.get_logger(__name__)

router = APIRouter(prefix="/sessions", tags=["sessions"])


def _response(session_store: SessionStore, session: Session) -> SessionResponse:
    stage = session_store.stage_engine.stage_for_state(session.state)
    return SessionResponse.from_session(session, stage)


# ============ SESSION LIFECYCLE ============


@router.post(
    "",
    response_model=SessionResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_session(session_store: SessionStoreDep):
    """Create a session with an empty version-0 specification."""
    session = await session_store.create_session()
    return _response(session_store, session)


@router.get("/restore/{token}", response_model=SessionResponse)
async def restore_session(token: str, resolver: MagicLinkResolverDep):
    """Restore a session (active or abandoned) from its magic-link token."""
    session = await resolver.restore_session_from_magic_link(token)
    return _response(resolver.session_store, session)


@router.get("/{session_id}", response_model=SessionResponse)
async def get_session(session_id: str, session_store: SessionStoreDep):
    """Get a session with its full reconstructed state."""
    bind_context(session_id=session_id)
    session = await session_store.require_session(session_id)
    return _response(session_store, session)


@router.put("/{session_id}/state", response_model=SessionResponse)
async def save_session_state(
    session_id: str, state: SessionState, session_store: SessionStoreDep
):
    """Persist a state snapshot.

    Unseen messages are appended; a specification version is written only
    when it differs from the stored one. A stale version returns 409.
    """
    bind_context(session_id=session_id)
    await session_store.save_session_state(session_id, state)
    session = await session_store.require_session(session_id)
    return _response(session_store, session)


@router.post("/{session_id}/abandon", status_code=status.HTTP_204_NO_CONTENT)
async def abandon_session(session_id: str, session_store: SessionStoreDep):
    """Mark a session abandoned. Its data is kept and stays restorable."""
    bind_context(session_id=session_id)
    await session_store.abandon_session(session_id)


@router.post(
    "/{session_id}/magic-link",
    response_model=MagicLinkResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_magic_link(session_id: str, resolver: MagicLinkResolverDep):
    """Issue a new magic link; any earlier link for the session stops resolving."""
    bind_context(session_id=session_id)
    token = await resolver.generate_magic_link(session_id)
    return MagicLinkResponse(session_id=session_id, token=token)


# ============ CONVERSATION ============


@router.post("/{session_id}/messages", response_model=TurnResponse)
async def send_message(
    session_id: str,
    request: MessageRequest,
    conversation: ConversationServiceDep,
):
    """Process one user message and return the assistant reply."""
    bind_context(session_id=session_id)
    result = await conversation.process_message(session_id, request.text)
    return TurnResponse.from_result(result)


@router.post("/{session_id}/messages/sync", response_model=SessionResponse)
async def sync_messages(
    session_id: str,
    request: MessageSyncRequest,
    session_store: SessionStoreDep,
):
    """Append messages queued while offline after the current history end."""
    bind_context(session_id=session_id)
    session = await session_store.append_messages(session_id, request.messages)
    return _response(session_store, session)


@router.post(
    "/{session_id}/locked-sections/{name}/redo",
    response_model=LockedSection,
    status_code=status.HTTP_201_CREATED,
)
async def redo_locked_section(
    session_id: str, name: str, session_store: SessionStoreDep
):
    """Replace a locked section with one rebuilt from the current specification."""
    bind_context(session_id=session_id)
    return await session_store.redo_locked_section(session_id, name)
