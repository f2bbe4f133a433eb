"""
Unit tests for the message store.

Tests cover:
- Posting and id assignment
- Edit and soft delete with ownership enforcement
- Tombstone immutability and repeated deletes
- Channel listing
"""

import pytest
import pytest_asyncio
from sqlalchemy.exc import DataError, OperationalError

from chatserver.core.exceptions import (
    ForbiddenError,
    NotFoundError,
    StorageUnavailableError,
)
from chatserver.db.session import Database
from chatserver.models.message import MessageTag
from chatserver.services.message_store import MessageStore

from tests.conftest import make_settings


class TestAppend:

    @pytest.mark.asyncio
    async def test_append(self, message_store, clock):
        message = await message_store.append("general", "alice", "hello")

        assert message.id is not None
        assert message.channel == "general"
        assert message.username == "alice"
        assert message.body == "hello"
        assert message.tag is MessageTag.none
        assert message.timestamp == clock.now

        stored = await message_store.get(message.id)
        assert stored.body == "hello"
        assert stored.tag is MessageTag.none

    @pytest.mark.asyncio
    async def test_ids_increase(self, message_store):
        ids = [(await message_store.append("general", "alice", f"m{i}")).id for i in range(5)]
        assert ids == sorted(ids)
        assert len(set(ids)) == 5

    @pytest.mark.asyncio
    async def test_client_time_is_only_a_hint(self, message_store, clock):
        message = await message_store.append("general", "alice", "hi", sent_at=clock.now - 3_600_000)
        assert message.timestamp == clock.now

    @pytest.mark.asyncio
    async def test_client_time_trusted_when_configured(self, database, clock):
        store = MessageStore(database, clock=clock, trust_client_timestamps=True)
        message = await store.append("general", "alice", "hi", sent_at=12345)
        assert message.timestamp == 12345


class TestEdit:

    @pytest_asyncio.fixture
    async def message(self, message_store):
        return await message_store.append("general", "alice", "hello")

    @pytest.mark.asyncio
    async def test_author_can_edit(self, message_store, clock, message):
        edited_at = clock.advance(500)

        edited = await message_store.edit(message.id, "alice", "hello world")

        assert edited.id == message.id
        assert edited.body == "hello world"
        assert edited.tag is MessageTag.edited
        assert edited.timestamp == edited_at

    @pytest.mark.asyncio
    async def test_other_user_forbidden(self, message_store, clock, message):
        clock.advance(500)

        with pytest.raises(ForbiddenError):
            await message_store.edit(message.id, "bob", "hijacked")

        stored = await message_store.get(message.id)
        assert stored.body == "hello"
        assert stored.tag is MessageTag.none
        assert stored.timestamp == message.timestamp

    @pytest.mark.asyncio
    async def test_missing_message(self, message_store):
        with pytest.raises(NotFoundError):
            await message_store.edit(9999, "alice", "anything")

    @pytest.mark.asyncio
    async def test_tombstone_cannot_be_edited(self, message_store, clock, message):
        deleted = await message_store.soft_delete(message.id, "alice")
        clock.advance(500)

        with pytest.raises(NotFoundError):
            await message_store.edit(message.id, "alice", "resurrected")

        stored = await message_store.get(message.id)
        assert stored.body == ""
        assert stored.is_deleted
        assert stored.tag is MessageTag.deleted
        assert stored.timestamp == deleted.timestamp


class TestSoftDelete:

    @pytest_asyncio.fixture
    async def message(self, message_store):
        return await message_store.append("general", "alice", "hello")

    @pytest.mark.asyncio
    async def test_delete_writes_tombstone(self, message_store, clock, message):
        deleted_at = clock.advance(1000)

        deleted = await message_store.soft_delete(message.id, "alice")

        assert deleted.id == message.id
        assert deleted.body == ""
        assert deleted.tag is MessageTag.deleted
        assert deleted.timestamp == deleted_at
        # Still addressable
        assert await message_store.get(message.id) is not None

    @pytest.mark.asyncio
    async def test_delete_twice(self, message_store, clock, message):
        first = await message_store.soft_delete(message.id, "alice")
        clock.advance(10)
        second = await message_store.soft_delete(message.id, "alice")

        assert (second.body, second.tag, second.channel, second.username) == (
            first.body,
            first.tag,
            first.channel,
            first.username,
        )
        assert second.timestamp == first.timestamp + 10

    @pytest.mark.asyncio
    async def test_other_user_forbidden(self, message_store, message):
        with pytest.raises(ForbiddenError):
            await message_store.soft_delete(message.id, "bob")

        stored = await message_store.get(message.id)
        assert stored.body == "hello"
        assert stored.tag is MessageTag.none

    @pytest.mark.asyncio
    async def test_missing_message(self, message_store):
        with pytest.raises(NotFoundError):
            await message_store.soft_delete(9999, "alice")


class TestChannels:

    @pytest.mark.asyncio
    async def test_list_channels(self, message_store):
        assert await message_store.list_channels() == set()

        await message_store.append("general", "alice", "a")
        await message_store.append("general", "bob", "b")
        gone = await message_store.append("random", "alice", "c")
        await message_store.soft_delete(gone.id, "alice")

        assert await message_store.list_channels() == {"general", "random"}


class TestStorageUnavailable:

    @pytest.mark.asyncio
    async def test_append_fails_fast(self, tmp_path, clock):
        missing = tmp_path / "missing-dir" / "chat.db"
        database = Database(make_settings(DATABASE_URL=f"sqlite+aiosqlite:///{missing}"))
        store = MessageStore(database, clock=clock)
        try:
            with pytest.raises(StorageUnavailableError):
                await store.append("general", "alice", "hello")
        finally:
            await database.dispose()

    @pytest.mark.asyncio
    async def test_connectivity_fault_is_translated(self, database):
        with pytest.raises(StorageUnavailableError):
            async with database.transaction():
                raise OperationalError("SELECT 1", {}, Exception("server closed the connection"))

    @pytest.mark.asyncio
    async def test_data_error_propagates(self, database):
        """Errors caused by the request itself are not storage outages."""
        with pytest.raises(DataError):
            async with database.transaction():
                raise DataError("INSERT", {}, Exception("value too long"))
