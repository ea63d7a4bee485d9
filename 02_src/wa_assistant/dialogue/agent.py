"""ConversationAgent implementation."""

import asyncio
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Awaitable, Callable, Protocol

from ..llm import DEFAULT_SYSTEM_PROMPT, ILLMProvider
from ..logging_config import get_logger, preview
from ..memory import MemoryStore
from ..models import (
    TERMINAL_NODES,
    ConversationState,
    Direction,
    Node,
    Role,
    StoredMessage,
    ToolName,
    TurnContext,
    TurnOutcome,
)
from ..tools import TOOL_APOLOGY, ToolRegistry
from .intent import DEFAULT_REPLY, canned_reply, extract_tool_input, match_tool

logger = get_logger(__name__)

INTERNAL_ERROR_REPLY = "Lo siento, ocurrió un error interno. Por favor, intenta de nuevo."


@dataclass
class _TurnRun:
    """One pass of the state machine over a single inbound message."""

    state: ConversationState
    text: str
    tool: ToolName | None = None


class IConversationAgent(Protocol):
    """Per-user conversation state machine."""

    async def handle_message(
        self,
        user_id: str,
        text: str,
        provider_message_id: str | None = None,
        message_type: str = "text",
        profile_name: str | None = None,
    ) -> TurnOutcome:
        """Run one inbound message through the state machine and return the reply."""
        ...

    async def get_history(self, user_id: str, limit: int = 10) -> list[StoredMessage]:
        """Recent logged messages of a user's conversation."""
        ...

    async def clear_memory(self, user_id: str) -> bool:
        """Reset a user's conversation state."""
        ...


class ConversationAgent:
    """Runs start → analyze → use_tool | respond → finalize → done for each message."""

    def __init__(
        self,
        memory: MemoryStore,
        tools: ToolRegistry,
        llm: ILLMProvider | None = None,
        llm_timeout: float = 30.0,
    ):
        self._memory = memory
        self._tools = tools
        self._llm = llm
        self._llm_timeout = llm_timeout

        self._nodes: dict[Node, Callable[[_TurnRun], Awaitable[Node]]] = {
            Node.START: self._start,
            Node.ANALYZE: self._analyze,
            Node.USE_TOOL: self._use_tool,
            Node.RESPOND: self._respond,
            Node.FINALIZE: self._finalize,
        }

    async def handle_message(
        self,
        user_id: str,
        text: str,
        provider_message_id: str | None = None,
        message_type: str = "text",
        profile_name: str | None = None,
    ) -> TurnOutcome:
        """Run one inbound message through the state machine and return the reply."""
        if not user_id or not user_id.strip():
            raise ValueError("user_id must be a non-empty string")
        if not text or not text.strip():
            raise ValueError("text must be a non-empty string")

        logger.info(
            "Message received",
            extra={
                "context": {
                    "user_id": user_id,
                    "provider_message_id": provider_message_id,
                    "message_type": message_type,
                    "text": preview(text),
                }
            },
        )

        await self._memory.ensure_user(user_id, profile_name)

        if provider_message_id and await self._memory.has_message(provider_message_id):
            logger.info(
                "Duplicate delivery skipped",
                extra={
                    "context": {"user_id": user_id, "provider_message_id": provider_message_id}
                },
            )
            return TurnOutcome(reply=None, final_node=Node.DONE, duplicate=True)

        state = await self._memory.load_state(user_id)
        if state is None:
            session_id = await self._memory.get_or_create_conversation(user_id)
            state = ConversationState(user_id=user_id, session_id=session_id)
            logger.debug(
                "New conversation state",
                extra={"context": {"user_id": user_id, "session_id": session_id}},
            )

        await self._memory.append_message(
            state.session_id, Direction.INCOMING, message_type, text, provider_message_id
        )

        run = _TurnRun(state=state, text=text)
        final_node = await self.run(run)

        last = state.last_turn(Role.ASSISTANT)
        reply = last.content if last else INTERNAL_ERROR_REPLY

        await self._memory.append_message(state.session_id, Direction.OUTGOING, "text", reply)

        outcome = TurnOutcome(reply=reply, final_node=final_node, tool=run.tool)
        logger.info(
            "Message processed",
            extra={
                "context": {
                    "user_id": user_id,
                    "session_id": state.session_id,
                    "final_node": final_node.value,
                    "tool": run.tool.value if run.tool else None,
                    "reply_length": len(reply),
                    "turns": len(state.turns),
                }
            },
        )
        return outcome

    async def run(self, run: _TurnRun) -> Node:
        """Drive the state machine from start to a terminal node."""
        state = run.state
        node = Node.START
        while node not in TERMINAL_NODES:
            state.current_node = node
            try:
                node = await self._nodes[node](run)
            except Exception as e:
                logger.error(
                    "Node failed",
                    exc_info=True,
                    extra={
                        "context": {
                            "user_id": state.user_id,
                            "session_id": state.session_id,
                            "node": node.value,
                            "error": str(e),
                        }
                    },
                )
                node = Node.ERROR

        if node == Node.ERROR:
            self._error(state)
        state.current_node = node
        return node

    # Nodes

    async def _start(self, run: _TurnRun) -> Node:
        run.state.add_turn(Role.USER, run.text)
        return Node.ANALYZE

    async def _analyze(self, run: _TurnRun) -> Node:
        state = run.state
        user_turn = state.last_turn(Role.USER)
        if user_turn is None:
            return Node.RESPOND

        tool = match_tool(user_turn.content)
        if tool is None:
            return Node.RESPOND

        state.context.selected_tool = tool
        state.context.tool_input = extract_tool_input(user_turn.content, tool, state.user_id)
        logger.debug(
            "Intent matched",
            extra={"context": {"user_id": state.user_id, "tool": tool.value}},
        )
        return Node.USE_TOOL

    async def _use_tool(self, run: _TurnRun) -> Node:
        state = run.state
        tool = state.context.selected_tool
        tool_input = state.context.tool_input or {}

        if tool is None:
            result_text = TOOL_APOLOGY
        else:
            run.tool = tool
            try:
                result = await self._tools.execute(tool, tool_input)
                result_text = result.unwrap_or(TOOL_APOLOGY)
            except Exception as e:
                logger.error(
                    "Tool execution escaped the registry",
                    exc_info=True,
                    extra={"context": {"user_id": state.user_id, "tool": tool.value, "error": str(e)}},
                )
                result_text = TOOL_APOLOGY

        state.add_turn(Role.ASSISTANT, result_text)
        state.context.last_tool_result = result_text
        state.context.selected_tool = None
        state.context.tool_input = None
        return Node.FINALIZE

    async def _respond(self, run: _TurnRun) -> Node:
        state = run.state
        user_turn = state.last_turn(Role.USER)
        prompt = user_turn.content if user_turn else ""
        system = await self._system_prompt(state.user_id)
        state.add_turn(Role.ASSISTANT, await self._generate(state.user_id, prompt, system))
        return Node.FINALIZE

    async def _system_prompt(self, user_id: str) -> str | None:
        """Default prompt extended with the user's remembered facts, if any."""
        facts = await self._tools.memory.recall_all(user_id)
        if not facts:
            return None
        lines = "\n".join(f"- {key}: {value}" for key, value in facts.items())
        return f"{DEFAULT_SYSTEM_PROMPT}\n\nDatos que el usuario te pidió recordar:\n{lines}"

    async def _finalize(self, run: _TurnRun) -> Node:
        state = run.state
        state.current_node = Node.DONE
        try:
            saved = await self._memory.save_state(state.user_id, state)
        except Exception as e:
            logger.error(
                "State save raised",
                exc_info=True,
                extra={"context": {"user_id": state.user_id, "error": str(e)}},
            )
            saved = False
        if not saved:
            logger.warning(
                "State not persisted, reply still delivered",
                extra={"context": {"user_id": state.user_id, "session_id": state.session_id}},
            )
        return Node.DONE

    def _error(self, state: ConversationState) -> None:
        logger.warning(
            "Conversation ended in error state",
            extra={"context": {"user_id": state.user_id, "session_id": state.session_id}},
        )
        state.add_turn(Role.ASSISTANT, INTERNAL_ERROR_REPLY)

    async def _generate(self, user_id: str, prompt: str, system: str | None = None) -> str:
        """Completion with a bounded wait; any failure falls back to canned text."""
        if self._llm is None:
            return canned_reply(prompt)

        try:
            text = await asyncio.wait_for(
                self._llm.generate(prompt, system=system), timeout=self._llm_timeout
            )
        except asyncio.TimeoutError:
            logger.warning(
                "Completion timed out, using canned reply",
                extra={"context": {"user_id": user_id, "timeout": self._llm_timeout}},
            )
            return canned_reply(prompt)
        except Exception as e:
            logger.error(
                "Completion failed, using canned reply",
                extra={"context": {"user_id": user_id, "error": str(e)}},
            )
            return canned_reply(prompt)

        if not text or not text.strip():
            return DEFAULT_REPLY
        return text.strip()

    # Conversation management

    async def get_history(self, user_id: str, limit: int = 10) -> list[StoredMessage]:
        """Recent logged messages of a user's conversation."""
        state = await self._memory.load_state(user_id)
        session_id = state.session_id if state else await self._memory.find_conversation(user_id)
        if not session_id:
            return []
        return await self._memory.get_history(session_id, limit)

    async def clear_memory(self, user_id: str) -> bool:
        """Reset turns and context, keeping the session id. False when nothing to clear."""
        state = await self._memory.load_state(user_id)
        forgotten = await self._tools.memory.forget(user_id)
        if state is None:
            return forgotten > 0

        state.turns = []
        state.context = TurnContext(
            user_id=user_id,
            extra={"cleared_at": datetime.now(timezone.utc).isoformat()},
        )
        state.current_node = Node.START
        cleared = await self._memory.save_state(user_id, state)
        logger.info(
            "Conversation memory cleared",
            extra={"context": {"user_id": user_id, "session_id": state.session_id}},
        )
        return cleared
