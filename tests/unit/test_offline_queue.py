"""Tests for the client-side offline message queue."""

from unittest.mock import AsyncMock

import pytest

from specwizard.client.offline_queue import (
    KEY_PREFIX,
    InMemoryStorage,
    JSONFileStorage,
    OfflineQueue,
    OfflineStorage,
)
from specwizard.domain.models.message import user_message


class BrokenStorage(OfflineStorage):
    """Storage that fails like a full or read-only disk."""

    def get_item(self, key):
        raise OSError("disk unavailable")

    def set_item(self, key, value):
        raise OSError("disk unavailable")

    def remove_item(self, key):
        raise OSError("disk unavailable")


class FailingBackend(OfflineStorage):
    """Storage whose driver raises something other than an I/O error."""

    def get_item(self, key):
        raise RuntimeError("storage quota exceeded")

    def set_item(self, key, value):
        raise RuntimeError("storage quota exceeded")

    def remove_item(self, key):
        raise RuntimeError("storage quota exceeded")


@pytest.fixture
def queue():
    return OfflineQueue(InMemoryStorage())


def test_messages_keep_insertion_order(queue):
    messages = [user_message(f"message {i}") for i in range(3)]
    for message in messages:
        queue.queue_offline_message("s1", message)

    assert queue.get_offline_messages("s1") == messages


def test_sessions_are_buffered_separately(queue):
    queue.queue_offline_message("s1", user_message("for s1"))
    assert queue.get_offline_messages("s2") == []


def test_clear_empties_the_buffer(queue):
    queue.queue_offline_message("s1", user_message("hello"))
    queue.clear_offline_messages("s1")
    assert queue.get_offline_messages("s1") == []


def test_broken_storage_is_a_no_op():
    queue = OfflineQueue(BrokenStorage())

    queue.queue_offline_message("s1", user_message("hello"))
    queue.clear_offline_messages("s1")

    assert queue.get_offline_messages("s1") == []


def test_corrupt_buffer_reads_as_empty():
    storage = InMemoryStorage()
    storage.set_item(f"{KEY_PREFIX}s1", "{not json")
    assert OfflineQueue(storage).get_offline_messages("s1") == []


def test_any_backend_error_is_a_no_op():
    queue = OfflineQueue(FailingBackend())

    queue.queue_offline_message("s1", user_message("hello"))
    queue.clear_offline_messages("s1")

    assert queue.get_offline_messages("s1") == []


@pytest.mark.parametrize("payload", ["null", "5", '"text"', '{"role": "user"}'])
def test_non_list_buffer_reads_as_empty(payload):
    storage = InMemoryStorage()
    storage.set_item(f"{KEY_PREFIX}s1", payload)
    queue = OfflineQueue(storage)

    assert queue.get_offline_messages("s1") == []

    queue.queue_offline_message("s1", user_message("after corruption"))
    assert [m.content for m in queue.get_offline_messages("s1")] == ["after corruption"]


def test_json_file_storage_round_trip(tmp_path):
    queue = OfflineQueue(JSONFileStorage(tmp_path / "offline"))
    message = user_message("queued while offline")

    queue.queue_offline_message("session/../1", message)

    assert queue.get_offline_messages("session/../1") == [message]
    assert all(p.parent == tmp_path / "offline" for p in (tmp_path / "offline").iterdir())


async def test_sync_clears_after_successful_merge(queue):
    messages = [user_message("one"), user_message("two")]
    for message in messages:
        queue.queue_offline_message("s1", message)
    sink = AsyncMock()

    synced = await queue.sync_offline_messages("s1", sink)

    assert synced == 2
    sink.append_messages.assert_awaited_once_with("s1", messages)
    assert queue.get_offline_messages("s1") == []


async def test_failed_merge_keeps_messages(queue):
    queue.queue_offline_message("s1", user_message("one"))
    sink = AsyncMock()
    sink.append_messages.side_effect = ConnectionError("offline")

    with pytest.raises(ConnectionError):
        await queue.sync_offline_messages("s1", sink)

    assert len(queue.get_offline_messages("s1")) == 1


async def test_sync_with_empty_buffer_skips_sink(queue):
    sink = AsyncMock()
    assert await queue.sync_offline_messages("s1", sink) == 0
    sink.append_messages.assert_not_awaited()
