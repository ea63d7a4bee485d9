"""Tool interface."""

from typing import Any, Protocol

from ..models import ToolName


class ITool(Protocol):
    """A capability the agent can invoke for a matched intent."""

    name: ToolName
    description: str

    async def execute(self, tool_input: dict[str, Any]) -> str:
        """Run the tool and return reply text. May raise ToolError."""
        ...
