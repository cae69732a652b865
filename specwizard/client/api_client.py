"""API client for the specification wizard backend.

Async httpx client used by front ends and scripts. Sending a message while
the server is unreachable does not fail: the message is buffered in the
OfflineQueue and replayed before the next successful send.

    client = APIClient(offline_queue=OfflineQueue(JSONFileStorage(path)))
    session = await client.create_session()
    turn = await client.send_message(session["id"], "I want a booking site")
"""

from typing import Any, Dict, Optional, Sequence

import httpx
import structlog

from specwizard.client.offline_queue import JSONFileStorage, OfflineQueue
from specwizard.core.config import settings
from specwizard.domain.models.message import Message, user_message

log = structlog.get_logger(__name__)


class APIClient:
    """HTTP client for the wizard API.

    Args:
        base_url: API base URL (default: http://localhost:8000)
        timeout: Request timeout in seconds (default: 30.0)
        offline_queue: Buffer for messages sent while offline (default: JSON
            files under settings.offline_queue_dir)
        transport: Optional httpx transport (tests use ASGI or mock transports)
    """

    def __init__(
        self,
        base_url: str = "http://localhost:8000",
        timeout: float = 30.0,
        offline_queue: Optional[OfflineQueue] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.offline_queue = offline_queue or OfflineQueue(
            JSONFileStorage(settings.offline_queue_dir)
        )
        self.transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url, timeout=self.timeout, transport=self.transport
        )

    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        async with self._client() as client:
            response = await client.request(method, path, **kwargs)
            response.raise_for_status()
            return response

    # ============ SESSIONS ============

    async def create_session(self) -> Dict[str, Any]:
        response = await self._request("POST", "/sessions")
        return response.json()

    async def get_session(self, session_id: str) -> Dict[str, Any]:
        response = await self._request("GET", f"/sessions/{session_id}")
        return response.json()

    async def abandon_session(self, session_id: str) -> None:
        await self._request("POST", f"/sessions/{session_id}/abandon")

    async def generate_magic_link(self, session_id: str) -> str:
        response = await self._request("POST", f"/sessions/{session_id}/magic-link")
        return response.json()["token"]

    async def restore_session(self, token: str) -> Dict[str, Any]:
        response = await self._request("GET", f"/sessions/restore/{token}")
        return response.json()

    # ============ MESSAGES ============

    async def send_message(self, session_id: str, text: str) -> Optional[Dict[str, Any]]:
        """Send a user message.

        Any messages queued earlier are synced first, so the server sees them
        in order. Returns the turn result, or None if the server could not be
        reached and the message was queued instead.

        Raises:
            httpx.HTTPStatusError: If the server answered with an error status
        """
        message = user_message(text)
        try:
            await self.sync_offline_messages(session_id)
            response = await self._request(
                "POST", f"/sessions/{session_id}/messages", json={"text": text}
            )
        except httpx.TransportError as e:
            log.warning(
                "message_send_failed_offline",
                session_id=session_id,
                error_type=type(e).__name__,
            )
            self.offline_queue.queue_offline_message(session_id, message)
            return None
        return response.json()

    async def append_messages(
        self, session_id: str, messages: Sequence[Message]
    ) -> Dict[str, Any]:
        """Append messages to the server-side history without running a turn."""
        response = await self._request(
            "POST",
            f"/sessions/{session_id}/messages/sync",
            json={"messages": [m.model_dump(mode="json") for m in messages]},
        )
        return response.json()

    async def sync_offline_messages(self, session_id: str) -> int:
        return await self.offline_queue.sync_offline_messages(session_id, self)

    # ============ SUBMISSIONS ============

    async def submit(self, session_id: str, contact_info: Dict[str, Any]) -> Dict[str, Any]:
        response = await self._request(
            "POST",
            f"/sessions/{session_id}/submit",
            json={"contact_info": contact_info},
        )
        return response.json()
