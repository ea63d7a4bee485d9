"""Message-related data models."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class MessageType(str, Enum):
    """Inbound message types the webhook understands."""

    TEXT = "text"
    IMAGE = "image"
    VIDEO = "video"
    AUDIO = "audio"
    DOCUMENT = "document"
    LOCATION = "location"
    CONTACT = "contact"


MEDIA_TYPES = frozenset(
    {MessageType.IMAGE, MessageType.VIDEO, MessageType.AUDIO, MessageType.DOCUMENT}
)


class Direction(str, Enum):
    """Direction of a logged message."""

    INCOMING = "incoming"
    OUTGOING = "outgoing"


@dataclass(frozen=True)
class InboundMessage:
    """A single message extracted from a webhook delivery."""

    id: str  # provider message id, unique per delivery
    sender: str  # wa_id of the user
    timestamp: str  # provider epoch seconds, kept verbatim
    type: MessageType
    payload: dict[str, Any] = field(default_factory=dict)
    profile_name: str | None = None

    @property
    def text(self) -> str | None:
        """Text body for text messages."""
        if self.type != MessageType.TEXT:
            return None
        body = self.payload.get("body")
        return body if isinstance(body, str) else None

    @property
    def media_id(self) -> str | None:
        """Provider media id for media messages."""
        if self.type not in MEDIA_TYPES:
            return None
        media_id = self.payload.get("id")
        return media_id if isinstance(media_id, str) and media_id else None


@dataclass
class StoredMessage:
    """Append-only log entry for one turn."""

    id: str
    session_id: str
    direction: Direction
    message_type: str
    content: str
    timestamp: datetime
    provider_message_id: str | None = None


@dataclass
class User:
    """A WhatsApp user, created lazily on first contact."""

    id: str
    wa_id: str
    profile_name: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
