"""
Client-side offline message queue.

Messages written while the server is unreachable are buffered per session
in local storage and replayed, in their original order, once the
connection comes back. The buffer is cleared only after the server has
accepted the merge.

Local storage is best-effort: every storage failure is logged and turned
into a no-op (an empty read, a dropped write) so the conversation UI keeps
working without it.
"""

import json
import re
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, List, Optional, Protocol, Sequence

import structlog

from specwizard.domain.models.message import Message

log = structlog.get_logger(__name__)

KEY_PREFIX = "offline_messages_"
_UNSAFE_KEY_CHARS = re.compile(r"[^A-Za-z0-9_.-]")


class OfflineStorage(ABC):
    """Minimal key/value store holding one serialized buffer per session."""

    @abstractmethod
    def get_item(self, key: str) -> Optional[str]:
        pass

    @abstractmethod
    def set_item(self, key: str, value: str) -> None:
        pass

    @abstractmethod
    def remove_item(self, key: str) -> None:
        pass


class InMemoryStorage(OfflineStorage):
    def __init__(self) -> None:
        self._items: Dict[str, str] = {}

    def get_item(self, key: str) -> Optional[str]:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._items[key] = value

    def remove_item(self, key: str) -> None:
        self._items.pop(key, None)


class JSONFileStorage(OfflineStorage):
    """One JSON file per key under a local directory."""

    def __init__(self, directory: Path):
        self.directory = Path(directory)

    def _path(self, key: str) -> Path:
        return self.directory / f"{_UNSAFE_KEY_CHARS.sub('_', key)}.json"

    def get_item(self, key: str) -> Optional[str]:
        path = self._path(key)
        if not path.exists():
            return None
        return path.read_text(encoding="utf-8")

    def set_item(self, key: str, value: str) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        path = self._path(key)
        tmp_path = path.with_suffix(".tmp")
        tmp_path.write_text(value, encoding="utf-8")
        tmp_path.replace(path)

    def remove_item(self, key: str) -> None:
        self._path(key).unlink(missing_ok=True)


class MessageSink(Protocol):
    """Anything that can append messages to the authoritative history."""

    async def append_messages(self, session_id: str, messages: Sequence[Message]): ...


class OfflineQueue:
    """Per-session buffer of messages waiting to be sent."""

    def __init__(self, storage: OfflineStorage):
        self.storage = storage

    @staticmethod
    def _key(session_id: str) -> str:
        return f"{KEY_PREFIX}{session_id}"

    def get_offline_messages(self, session_id: str) -> List[Message]:
        """Buffered messages in insertion order; empty if storage fails."""
        try:
            stored = self.storage.get_item(self._key(session_id))
            if not stored:
                return []
            items = json.loads(stored)
            if not isinstance(items, list):
                raise ValueError(f"expected a list, got {type(items).__name__}")
            return [Message.model_validate(item) for item in items]
        except Exception as e:
            log.warning("offline_queue_read_failed", session_id=session_id, error=str(e))
            return []

    def queue_offline_message(self, session_id: str, message: Message) -> None:
        try:
            existing = self.get_offline_messages(session_id)
            existing.append(message)
            payload = json.dumps([m.model_dump(mode="json") for m in existing])
            self.storage.set_item(self._key(session_id), payload)
            log.info(
                "offline_message_queued",
                session_id=session_id,
                queued=len(existing),
            )
        except Exception as e:
            log.warning("offline_queue_write_failed", session_id=session_id, error=str(e))

    def clear_offline_messages(self, session_id: str) -> None:
        try:
            self.storage.remove_item(self._key(session_id))
        except Exception as e:
            log.warning("offline_queue_clear_failed", session_id=session_id, error=str(e))

    async def sync_offline_messages(self, session_id: str, sink: MessageSink) -> int:
        """
        Merge buffered messages onto the end of the server-side history.

        The buffer is cleared only after the sink accepts the merge; if it
        raises, the messages stay queued and the error propagates.

        Returns:
            Number of messages synced
        """
        messages = self.get_offline_messages(session_id)
        if not messages:
            return 0

        await sink.append_messages(session_id, messages)
        self.clear_offline_messages(session_id)

        log.info("offline_messages_synced", session_id=session_id, count=len(messages))
        return len(messages)
