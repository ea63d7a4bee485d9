"""Conversation-related data models."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from .tools import ToolName


class Role(str, Enum):
    """Author of a turn."""

    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


class Node(str, Enum):
    """Steps of the per-message state machine."""

    START = "start"
    ANALYZE = "analyze"
    USE_TOOL = "use_tool"
    RESPOND = "respond"
    FINALIZE = "finalize"
    DONE = "done"
    ERROR = "error"


TERMINAL_NODES = frozenset({Node.DONE, Node.ERROR})


def _require_mapping(value: Any, what: str) -> dict[str, Any]:
    if not isinstance(value, dict):
        raise TypeError(f"{what} must be an object, got {type(value).__name__}")
    return value


def _parse_ts(value: str | None) -> datetime:
    if not value:
        return datetime.now(timezone.utc)
    ts = datetime.fromisoformat(value)
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts


@dataclass(frozen=True)
class Turn:
    """One utterance in a conversation."""

    role: Role
    content: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict[str, Any]:
        return {
            "role": self.role.value,
            "content": self.content,
            "timestamp": self.timestamp.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Turn":
        data = _require_mapping(data, "turn")
        return cls(
            role=Role(data["role"]),
            content=data.get("content", ""),
            timestamp=_parse_ts(data.get("timestamp")),
        )


@dataclass
class TurnContext:
    """Scratch data carried between nodes and across turns."""

    user_id: str
    selected_tool: ToolName | None = None
    tool_input: dict[str, Any] | None = None
    last_tool_result: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "user_id": self.user_id,
            "selected_tool": self.selected_tool.value if self.selected_tool else None,
            "tool_input": self.tool_input,
            "last_tool_result": self.last_tool_result,
            "extra": self.extra,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any], user_id: str) -> "TurnContext":
        data = _require_mapping(data, "context")
        selected = data.get("selected_tool")
        return cls(
            user_id=data.get("user_id") or user_id,
            selected_tool=ToolName(selected) if selected else None,
            tool_input=data.get("tool_input"),
            last_tool_result=data.get("last_tool_result"),
            extra=dict(data.get("extra") or {}),
        )


@dataclass
class ConversationState:
    """Per-user conversation, mutated only by the state machine."""

    user_id: str
    session_id: str
    turns: list[Turn] = field(default_factory=list)
    context: TurnContext | None = None
    current_node: Node = Node.START

    def __post_init__(self) -> None:
        if self.context is None:
            self.context = TurnContext(user_id=self.user_id)

    def add_turn(self, role: Role, content: str) -> Turn:
        """Append a turn and return it."""
        turn = Turn(role=role, content=content)
        self.turns.append(turn)
        return turn

    def last_turn(self, role: Role | None = None) -> Turn | None:
        """Most recent turn, optionally of a given role."""
        for turn in reversed(self.turns):
            if role is None or turn.role == role:
                return turn
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "user_id": self.user_id,
            "session_id": self.session_id,
            "turns": [t.to_dict() for t in self.turns],
            "context": self.context.to_dict(),
            "current_node": self.current_node.value,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ConversationState":
        data = _require_mapping(data, "state")
        user_id = data["user_id"]
        turns = data.get("turns") or []
        if not isinstance(turns, list):
            raise TypeError("turns must be a list")
        return cls(
            user_id=user_id,
            session_id=data["session_id"],
            turns=[Turn.from_dict(t) for t in turns],
            context=TurnContext.from_dict(data.get("context") or {}, user_id),
            current_node=Node(data.get("current_node", Node.START.value)),
        )


@dataclass
class Session:
    """Persisted conversation state for one user."""

    user_id: str
    session_id: str
    state: dict[str, Any]
    updated_at: datetime
    expires_at: datetime | None = None


@dataclass
class TurnOutcome:
    """Result of running one inbound message through the agent."""

    reply: str | None
    final_node: Node
    tool: ToolName | None = None
    duplicate: bool = False
