"""Tests for Storage."""

from datetime import datetime, timedelta, timezone

import aiosqlite
import pytest

from wa_assistant.models import Direction, Session, StoredMessage
from wa_assistant.storage import Storage


def _message(msg_id, session_id="conv1", provider_id=None, content="hola", ts=None):
    return StoredMessage(
        id=msg_id,
        session_id=session_id,
        direction=Direction.INCOMING,
        message_type="text",
        content=content,
        timestamp=ts or datetime.now(timezone.utc),
        provider_message_id=provider_id,
    )


class TestStorageInit:
    """Tests for Storage initialization."""

    async def test_init_creates_tables(self, storage):
        """Test that init creates all tables."""
        async with storage._conn.execute(
            "SELECT name FROM sqlite_master WHERE type='table'"
        ) as cursor:
            tables = [row[0] for row in await cursor.fetchall()]
            assert "users" in tables
            assert "conversations" in tables
            assert "sessions" in tables
            assert "messages" in tables

    async def test_uninitialized_storage_raises(self):
        """Test that using storage before init raises RuntimeError."""
        st = Storage(":memory:")
        assert st.connected is False
        with pytest.raises(RuntimeError, match="Storage not initialized"):
            await st.ping()


class TestStorageUsers:
    """Tests for user storage."""

    async def test_upsert_creates_user(self, storage):
        """Test that upsert creates a user with an internal id."""
        user = await storage.upsert_user("57300", "Ana")
        assert user.wa_id == "57300"
        assert user.profile_name == "Ana"
        assert user.id

    async def test_upsert_keeps_id_and_name(self, storage):
        """Test that a second upsert without a name keeps the stored one."""
        first = await storage.upsert_user("57300", "Ana")
        second = await storage.upsert_user("57300", None)
        assert second.id == first.id
        assert second.profile_name == "Ana"

    async def test_upsert_refreshes_name(self, storage):
        """Test that a new non-empty name replaces the old one."""
        await storage.upsert_user("57300", "Ana")
        user = await storage.upsert_user("57300", "Ana María")
        assert user.profile_name == "Ana María"

    async def test_get_nonexistent_user(self, storage):
        """Test retrieving nonexistent user returns None."""
        assert await storage.get_user("missing") is None


class TestStorageConversations:
    """Tests for conversation storage."""

    async def test_latest_conversation(self, storage):
        """Test that the most recently touched conversation is returned."""
        user = await storage.upsert_user("57300")
        assert await storage.get_latest_conversation(user.id) is None

        old = await storage.create_conversation(user.id)
        new = await storage.create_conversation(user.id)
        # A message touches the older conversation
        await storage.save_message(
            _message("m1", session_id=old, ts=datetime.now(timezone.utc) + timedelta(seconds=5))
        )

        assert new != old
        assert await storage.get_latest_conversation(user.id) == old


class TestStorageMessages:
    """Tests for message storage."""

    async def test_messages_in_chronological_order(self, storage):
        """Test that get_messages returns the latest N oldest first."""
        base = datetime(2024, 1, 1, tzinfo=timezone.utc)
        for i in range(5):
            await storage.save_message(
                _message(f"m{i}", content=f"msg {i}", ts=base + timedelta(minutes=i))
            )

        messages = await storage.get_messages("conv1", limit=3)
        assert [m.content for m in messages] == ["msg 2", "msg 3", "msg 4"]
        assert messages[0].direction == Direction.INCOMING

    async def test_duplicate_provider_id_rejected(self, storage):
        """Test that a repeated provider message id raises IntegrityError."""
        await storage.save_message(_message("m1", provider_id="wamid.1"))
        with pytest.raises(aiosqlite.IntegrityError):
            await storage.save_message(_message("m2", provider_id="wamid.1"))

        messages = await storage.get_messages("conv1")
        assert len(messages) == 1

    async def test_get_message_by_provider_id(self, storage):
        """Test lookup by provider message id."""
        await storage.save_message(_message("m1", provider_id="wamid.1"))
        found = await storage.get_message_by_provider_id("wamid.1")
        assert found is not None
        assert found.id == "m1"
        assert await storage.get_message_by_provider_id("wamid.other") is None

    async def test_messages_without_provider_id(self, storage):
        """Test that outgoing messages without provider ids do not collide."""
        await storage.save_message(_message("m1"))
        await storage.save_message(_message("m2"))
        assert len(await storage.get_messages("conv1")) == 2


class TestStorageSessions:
    """Tests for session storage."""

    async def test_save_and_get_session(self, storage):
        """Test session round trip."""
        now = datetime.now(timezone.utc)
        await storage.save_session(
            Session(
                user_id="57300",
                session_id="conv1",
                state={"turns": [], "note": "ñ"},
                updated_at=now,
                expires_at=now + timedelta(hours=1),
            )
        )

        session = await storage.get_session("57300", now)
        assert session is not None
        assert session.session_id == "conv1"
        assert session.state["note"] == "ñ"

    async def test_save_session_replaces(self, storage):
        """Test that each user has a single session row."""
        now = datetime.now(timezone.utc)
        await storage.save_session(Session("57300", "conv1", {"v": 1}, now))
        await storage.save_session(Session("57300", "conv2", {"v": 2}, now))

        session = await storage.get_session("57300", now)
        assert session.session_id == "conv2"
        assert session.state == {"v": 2}

    async def test_expired_session_not_returned(self, storage):
        """Test that expired sessions are invisible and purgeable."""
        now = datetime.now(timezone.utc)
        await storage.save_session(
            Session("old", "c1", {}, now - timedelta(hours=2), now - timedelta(hours=1))
        )
        await storage.save_session(Session("forever", "c2", {}, now, None))

        assert await storage.get_session("old", now) is None
        assert await storage.get_session("forever", now) is not None

        deleted = await storage.delete_expired_sessions(now)
        assert deleted == 1
        assert await storage.get_session("forever", now) is not None


class TestStorageClear:
    """Tests for Storage.clear()."""

    async def test_clear_removes_everything(self, storage):
        """Test that clear empties all tables."""
        user = await storage.upsert_user("57300")
        await storage.create_conversation(user.id)
        await storage.save_message(_message("m1"))
        await storage.save_session(Session("57300", "c1", {}, datetime.now(timezone.utc)))

        await storage.clear()

        assert await storage.get_user("57300") is None
        assert await storage.get_messages("conv1") == []
