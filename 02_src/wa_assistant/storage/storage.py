"""SQLite storage implementation."""

import asyncio
import json
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Protocol

import aiosqlite

from ..config import resolve_db_path
from ..errors import PersistenceError
from ..models import Direction, Session, StoredMessage, User


def _iso(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat()


def _parse(value: str | None) -> datetime | None:
    if not value:
        return None
    ts = datetime.fromisoformat(value)
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts


class IStorage(Protocol):
    """Persistent storage for users, conversations, sessions and messages."""

    async def init(self) -> None:
        """Initialize database and create tables."""
        ...

    async def close(self) -> None:
        """Close database connection."""
        ...

    async def ping(self) -> None:
        """Run a trivial query; raises when the database is unreachable."""
        ...

    # Users
    async def upsert_user(self, wa_id: str, profile_name: str | None = None) -> User:
        """Create a user or refresh its profile name."""
        ...

    async def get_user(self, wa_id: str) -> User | None:
        """Get a user by WhatsApp id."""
        ...

    # Conversations
    async def get_latest_conversation(self, user_id: str) -> str | None:
        """Most recently updated conversation id for a user."""
        ...

    async def create_conversation(self, user_id: str, title: str | None = None) -> str:
        """Create a conversation and return its id."""
        ...

    # Messages
    async def save_message(self, message: StoredMessage) -> None:
        """Append a message. Raises IntegrityError on a duplicate provider id."""
        ...

    async def get_message_by_provider_id(
        self, provider_message_id: str
    ) -> StoredMessage | None:
        """Look up a message by provider message id."""
        ...

    async def get_messages(self, session_id: str, limit: int = 20) -> list[StoredMessage]:
        """Most recent messages of a conversation in chronological order."""
        ...

    # Sessions
    async def save_session(self, session: Session) -> None:
        """Insert or replace the session of a user."""
        ...

    async def get_session(self, user_id: str, now: datetime) -> Session | None:
        """Get the non-expired session of a user."""
        ...

    async def delete_expired_sessions(self, now: datetime) -> int:
        """Delete sessions whose expiry has passed. Returns the count."""
        ...

    # Lifecycle
    async def clear(self) -> None:
        """Clear all data."""
        ...


class Storage:
    """SQLite storage implementation."""

    def __init__(self, db_path: str | Path | None = None):
        if db_path is None:
            self._db_path = resolve_db_path()
        else:
            self._db_path = resolve_db_path(db_path)
        self._conn: aiosqlite.Connection | None = None
        # One connection is shared; writes and their commit must not interleave.
        self._write_lock = asyncio.Lock()

    async def init(self) -> None:
        """Initialize database and create tables."""
        self._conn = await aiosqlite.connect(self._db_path)

        schema_path = Path(__file__).parent / "schema.sql"
        with open(schema_path, "r", encoding="utf-8") as f:
            schema_sql = f.read()
        await self._conn.executescript(schema_sql)
        await self._conn.commit()

    async def close(self) -> None:
        """Close database connection."""
        if self._conn:
            await self._conn.close()
            self._conn = None

    @property
    def connected(self) -> bool:
        return self._conn is not None

    def _require_conn(self) -> aiosqlite.Connection:
        if not self._conn:
            raise RuntimeError("Storage not initialized")
        return self._conn

    async def ping(self) -> None:
        """Run a trivial query; raises when the database is unreachable."""
        conn = self._require_conn()
        cursor = await conn.execute("SELECT 1")
        await cursor.fetchone()

    # Users
    async def upsert_user(self, wa_id: str, profile_name: str | None = None) -> User:
        """Create a user or refresh its profile name (only with non-empty values)."""
        conn = self._require_conn()
        now = _iso(datetime.now(timezone.utc))
        name = profile_name or None

        async with self._write_lock:
            await conn.execute(
                """
                INSERT INTO users (id, wa_id, profile_name, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT (wa_id) DO UPDATE SET
                    profile_name = COALESCE(excluded.profile_name, users.profile_name),
                    updated_at = excluded.updated_at
                """,
                (str(uuid.uuid4()), wa_id, name, now, now),
            )
            await conn.commit()

        user = await self.get_user(wa_id)
        if user is None:
            raise PersistenceError(f"User {wa_id} missing after upsert")
        return user

    async def get_user(self, wa_id: str) -> User | None:
        """Get a user by WhatsApp id."""
        conn = self._require_conn()
        cursor = await conn.execute(
            """
            SELECT id, wa_id, profile_name, created_at, updated_at
            FROM users
            WHERE wa_id = ?
            """,
            (wa_id,),
        )
        row = await cursor.fetchone()
        if not row:
            return None

        return User(
            id=row[0],
            wa_id=row[1],
            profile_name=row[2],
            created_at=_parse(row[3]),
            updated_at=_parse(row[4]),
        )

    # Conversations
    async def get_latest_conversation(self, user_id: str) -> str | None:
        """Most recently updated conversation id for a user."""
        conn = self._require_conn()
        cursor = await conn.execute(
            """
            SELECT id FROM conversations
            WHERE user_id = ?
            ORDER BY updated_at DESC
            LIMIT 1
            """,
            (user_id,),
        )
        row = await cursor.fetchone()
        return row[0] if row else None

    async def create_conversation(self, user_id: str, title: str | None = None) -> str:
        """Create a conversation and return its id."""
        conn = self._require_conn()
        conversation_id = str(uuid.uuid4())
        now = _iso(datetime.now(timezone.utc))

        async with self._write_lock:
            await conn.execute(
                """
                INSERT INTO conversations (id, user_id, title, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (conversation_id, user_id, title, now, now),
            )
            await conn.commit()
        return conversation_id

    # Messages
    async def save_message(self, message: StoredMessage) -> None:
        """Append a message. Raises IntegrityError on a duplicate provider id."""
        conn = self._require_conn()
        msg_id = message.id or str(uuid.uuid4())

        async with self._write_lock:
            try:
                await conn.execute(
                    """
                    INSERT INTO messages
                    (id, session_id, direction, message_type, content,
                     provider_message_id, timestamp)
                    VALUES (?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        msg_id,
                        message.session_id,
                        message.direction.value,
                        message.message_type,
                        message.content,
                        message.provider_message_id,
                        _iso(message.timestamp),
                    ),
                )
                await conn.execute(
                    "UPDATE conversations SET updated_at = ? WHERE id = ?",
                    (_iso(message.timestamp), message.session_id),
                )
                await conn.commit()
            except aiosqlite.IntegrityError:
                await conn.rollback()
                raise

    async def get_message_by_provider_id(
        self, provider_message_id: str
    ) -> StoredMessage | None:
        """Look up a message by provider message id."""
        conn = self._require_conn()
        cursor = await conn.execute(
            """
            SELECT id, session_id, direction, message_type, content,
                   provider_message_id, timestamp
            FROM messages
            WHERE provider_message_id = ?
            """,
            (provider_message_id,),
        )
        row = await cursor.fetchone()
        return self._row_to_message(row) if row else None

    async def get_messages(self, session_id: str, limit: int = 20) -> list[StoredMessage]:
        """Most recent messages of a conversation in chronological order."""
        conn = self._require_conn()
        cursor = await conn.execute(
            """
            SELECT id, session_id, direction, message_type, content,
                   provider_message_id, timestamp
            FROM messages
            WHERE session_id = ?
            ORDER BY timestamp DESC, rowid DESC
            LIMIT ?
            """,
            (session_id, limit),
        )
        rows = await cursor.fetchall()
        return [self._row_to_message(row) for row in reversed(rows)]

    @staticmethod
    def _row_to_message(row) -> StoredMessage:
        return StoredMessage(
            id=row[0],
            session_id=row[1],
            direction=Direction(row[2]),
            message_type=row[3],
            content=row[4],
            provider_message_id=row[5],
            timestamp=_parse(row[6]),
        )

    # Sessions
    async def save_session(self, session: Session) -> None:
        """Insert or replace the session of a user."""
        conn = self._require_conn()

        async with self._write_lock:
            await conn.execute(
                """
                INSERT INTO sessions (user_id, session_id, state, updated_at, expires_at)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT (user_id) DO UPDATE SET
                    session_id = excluded.session_id,
                    state = excluded.state,
                    updated_at = excluded.updated_at,
                    expires_at = excluded.expires_at
                """,
                (
                    session.user_id,
                    session.session_id,
                    json.dumps(session.state, ensure_ascii=False),
                    _iso(session.updated_at),
                    _iso(session.expires_at) if session.expires_at else None,
                ),
            )
            await conn.commit()

    async def get_session(self, user_id: str, now: datetime) -> Session | None:
        """Get the non-expired session of a user."""
        conn = self._require_conn()
        cursor = await conn.execute(
            """
            SELECT user_id, session_id, state, updated_at, expires_at
            FROM sessions
            WHERE user_id = ? AND (expires_at IS NULL OR expires_at > ?)
            """,
            (user_id, _iso(now)),
        )
        row = await cursor.fetchone()
        if not row:
            return None

        return Session(
            user_id=row[0],
            session_id=row[1],
            state=json.loads(row[2]),
            updated_at=_parse(row[3]),
            expires_at=_parse(row[4]),
        )

    async def delete_expired_sessions(self, now: datetime) -> int:
        """Delete sessions whose expiry has passed. Returns the count."""
        conn = self._require_conn()

        async with self._write_lock:
            cursor = await conn.execute(
                """
                DELETE FROM sessions
                WHERE expires_at IS NOT NULL AND expires_at <= ?
                """,
                (_iso(now),),
            )
            await conn.commit()
        return cursor.rowcount

    # Lifecycle
    async def clear(self) -> None:
        """Clear all data."""
        conn = self._require_conn()

        async with self._write_lock:
            await conn.execute("DELETE FROM messages")
            await conn.execute("DELETE FROM sessions")
            await conn.execute("DELETE FROM conversations")
            await conn.execute("DELETE FROM users")
            await conn.commit()
