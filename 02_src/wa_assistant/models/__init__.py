"""Data models for the WhatsApp assistant."""

from .messages import (
    MEDIA_TYPES,
    Direction,
    InboundMessage,
    MessageType,
    StoredMessage,
    User,
)
from .conversation import (
    TERMINAL_NODES,
    ConversationState,
    Node,
    Role,
    Session,
    Turn,
    TurnContext,
    TurnOutcome,
)
from .tools import ToolName

__all__ = [
    # Messages
    "MessageType",
    "MEDIA_TYPES",
    "Direction",
    "InboundMessage",
    "StoredMessage",
    "User",
    # Conversation
    "Role",
    "Node",
    "TERMINAL_NODES",
    "Turn",
    "TurnContext",
    "ConversationState",
    "Session",
    "TurnOutcome",
    # Tools
    "ToolName",
]
