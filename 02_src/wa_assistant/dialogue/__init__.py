"""Dialogue module."""

from .agent import INTERNAL_ERROR_REPLY, ConversationAgent, IConversationAgent
from .intent import (
    DEFAULT_REPLY,
    FAREWELL_REPLY,
    GREETING_REPLY,
    INTENT_RULES,
    THANKS_REPLY,
    canned_reply,
    extract_tool_input,
    match_tool,
)

__all__ = [
    "ConversationAgent",
    "IConversationAgent",
    "INTERNAL_ERROR_REPLY",
    "INTENT_RULES",
    "match_tool",
    "extract_tool_input",
    "canned_reply",
    "GREETING_REPLY",
    "THANKS_REPLY",
    "FAREWELL_REPLY",
    "DEFAULT_REPLY",
]
