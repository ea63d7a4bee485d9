"""Conversation memory with degraded-mode fallbacks."""

import time
import uuid
from datetime import datetime, timedelta, timezone
from typing import Protocol

import aiosqlite

from ..errors import PersistenceError
from ..logging_config import get_logger
from ..models import ConversationState, Direction, Session, StoredMessage, User
from ..storage import IStorage
from .availability import IAvailability

logger = get_logger(__name__)

# Faults that mean the store is unreachable or broken, not that a request was bad.
PERSISTENCE_ERRORS = (aiosqlite.Error, OSError, PersistenceError)


def _now_ms() -> int:
    return int(time.time() * 1000)


class IMemoryStore(Protocol):
    """Session and message persistence that never fails a turn."""

    async def load_state(self, user_id: str) -> ConversationState | None:
        ...

    async def save_state(self, user_id: str, state: ConversationState) -> bool:
        ...

    async def get_or_create_conversation(self, user_id: str) -> str:
        ...

    async def append_message(
        self,
        session_id: str,
        direction: Direction,
        message_type: str,
        content: str,
        provider_message_id: str | None = None,
    ) -> str:
        ...

    async def has_message(self, provider_message_id: str) -> bool:
        ...

    async def cleanup_expired_sessions(self) -> int:
        ...


class MemoryStore:
    """Degraded-mode facade over Storage.

    While the availability flag is off every operation short-circuits to a
    harmless value: loads return nothing, saves report success without
    writing, and ids are generated in memory. A persistence fault during an
    operation flips the flag off and the operation returns the same value it
    would have returned in degraded mode.
    """

    def __init__(
        self,
        storage: IStorage,
        availability: IAvailability,
        session_ttl: timedelta | None = timedelta(hours=24),
    ):
        self._storage = storage
        self._availability = availability
        self._session_ttl = session_ttl

    @property
    def available(self) -> bool:
        return self._availability.is_available()

    def _degrade(self, operation: str, error: Exception, **context) -> None:
        logger.error(
            f"Persistence failure during {operation}",
            extra={"context": {"operation": operation, "error": str(error), **context}},
        )
        self._availability.mark_unavailable(f"{operation}: {error}")

    async def check_connectivity(self) -> bool:
        """Ping storage and update the availability flag either way."""
        try:
            await self._storage.ping()
        except (*PERSISTENCE_ERRORS, RuntimeError) as e:
            self._availability.mark_unavailable(f"ping: {e}")
            return False
        self._availability.mark_available()
        return True

    async def ensure_user(self, wa_id: str, profile_name: str | None = None) -> User | None:
        """Create the user on first contact; refresh a non-empty profile name."""
        if not self.available:
            return None
        try:
            return await self._storage.upsert_user(wa_id, profile_name)
        except PERSISTENCE_ERRORS as e:
            self._degrade("ensure_user", e, user_id=wa_id)
            return None

    async def load_state(self, user_id: str) -> ConversationState | None:
        """Load a user's non-expired conversation state."""
        if not self.available:
            logger.debug(
                "Persistence unavailable, state not loaded",
                extra={"context": {"user_id": user_id}},
            )
            return None

        try:
            session = await self._storage.get_session(user_id, datetime.now(timezone.utc))
        except PERSISTENCE_ERRORS as e:
            self._degrade("load_state", e, user_id=user_id)
            return None
        except ValueError as e:
            # Undecodable JSON row; the next save overwrites it.
            logger.warning(
                "Discarding unreadable session row",
                extra={"context": {"user_id": user_id, "error": str(e)}},
            )
            return None

        if session is None:
            return None

        try:
            state = ConversationState.from_dict(session.state)
        except (KeyError, ValueError, TypeError, AttributeError) as e:
            logger.warning(
                "Discarding unreadable session state",
                extra={"context": {"user_id": user_id, "error": str(e)}},
            )
            return None

        logger.debug(
            "State loaded",
            extra={
                "context": {
                    "user_id": user_id,
                    "session_id": state.session_id,
                    "turns": len(state.turns),
                }
            },
        )
        return state

    async def save_state(self, user_id: str, state: ConversationState) -> bool:
        """Persist state with a fresh expiry. True unless a write failed."""
        if not self.available:
            logger.debug(
                "Persistence unavailable, state not saved",
                extra={"context": {"user_id": user_id}},
            )
            return True

        now = datetime.now(timezone.utc)
        session = Session(
            user_id=user_id,
            session_id=state.session_id,
            state=state.to_dict(),
            updated_at=now,
            expires_at=now + self._session_ttl if self._session_ttl else None,
        )
        try:
            await self._storage.save_session(session)
        except PERSISTENCE_ERRORS as e:
            self._degrade("save_state", e, user_id=user_id)
            return False
        return True

    async def find_conversation(self, user_id: str) -> str | None:
        """Latest conversation id of a user without creating one."""
        if not self.available:
            return None
        try:
            user = await self._storage.get_user(user_id)
            if user is None:
                return None
            return await self._storage.get_latest_conversation(user.id)
        except PERSISTENCE_ERRORS as e:
            self._degrade("find_conversation", e, user_id=user_id)
            return None

    async def get_or_create_conversation(self, user_id: str) -> str:
        """Latest conversation id of a user, creating one when none exists."""
        if self.available:
            try:
                user = await self._storage.get_user(user_id)
                if user is None:
                    user = await self._storage.upsert_user(user_id)
                existing = await self._storage.get_latest_conversation(user.id)
                if existing:
                    return existing
                return await self._storage.create_conversation(user.id)
            except PERSISTENCE_ERRORS as e:
                self._degrade("get_or_create_conversation", e, user_id=user_id)

        conversation_id = f"mem_{user_id}_{_now_ms()}"
        logger.debug(
            "Conversation created in memory",
            extra={"context": {"user_id": user_id, "session_id": conversation_id}},
        )
        return conversation_id

    async def append_message(
        self,
        session_id: str,
        direction: Direction,
        message_type: str,
        content: str,
        provider_message_id: str | None = None,
    ) -> str:
        """Log a message. A repeated provider id returns the existing row id."""
        if self.available:
            message = StoredMessage(
                id=str(uuid.uuid4()),
                session_id=session_id,
                direction=direction,
                message_type=message_type,
                content=content,
                timestamp=datetime.now(timezone.utc),
                provider_message_id=provider_message_id,
            )
            try:
                await self._storage.save_message(message)
                return message.id
            except aiosqlite.IntegrityError:
                existing = None
                if provider_message_id:
                    try:
                        existing = await self._storage.get_message_by_provider_id(
                            provider_message_id
                        )
                    except PERSISTENCE_ERRORS as e:
                        self._degrade("append_message", e, session_id=session_id)
                if existing is not None:
                    logger.info(
                        "Duplicate provider message id ignored",
                        extra={
                            "context": {
                                "provider_message_id": provider_message_id,
                                "message_id": existing.id,
                            }
                        },
                    )
                    return existing.id
                logger.error(
                    "Message rejected by storage constraints",
                    extra={"context": {"session_id": session_id, "direction": direction.value}},
                )
            except PERSISTENCE_ERRORS as e:
                self._degrade("append_message", e, session_id=session_id)

        message_id = f"msg_{session_id}_{_now_ms()}"
        logger.debug(
            "Message kept in memory",
            extra={"context": {"message_id": message_id, "direction": direction.value}},
        )
        return message_id

    async def has_message(self, provider_message_id: str) -> bool:
        """Whether a delivery with this provider id was already logged."""
        if not self.available or not provider_message_id:
            return False
        try:
            found = await self._storage.get_message_by_provider_id(provider_message_id)
        except PERSISTENCE_ERRORS as e:
            self._degrade("has_message", e, provider_message_id=provider_message_id)
            return False
        return found is not None

    async def get_history(self, session_id: str, limit: int = 20) -> list[StoredMessage]:
        """Recent messages of a conversation, oldest first."""
        if not self.available:
            return []
        try:
            return await self._storage.get_messages(session_id, limit)
        except PERSISTENCE_ERRORS as e:
            self._degrade("get_history", e, session_id=session_id)
            return []

    async def cleanup_expired_sessions(self) -> int:
        """Purge expired sessions. Returns how many were deleted."""
        if not self.available:
            logger.debug("Persistence unavailable, session cleanup skipped")
            return 0
        try:
            deleted = await self._storage.delete_expired_sessions(datetime.now(timezone.utc))
        except PERSISTENCE_ERRORS as e:
            self._degrade("cleanup_expired_sessions", e)
            return 0
        if deleted > 0:
            logger.info("Expired sessions removed", extra={"context": {"deleted": deleted}})
        return deleted
