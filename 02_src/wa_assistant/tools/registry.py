"""Tool registry."""

from typing import Any

from ..errors import ToolError
from ..logging_config import get_logger
from ..models import ToolName
from .base import ITool
from .builtin import (
    CalculatorTool,
    CourtesyTool,
    FactMemory,
    MemoryTool,
    TimeTool,
    WebSearchTool,
)
from .result import Result, ToolResult

logger = get_logger(__name__)

TOOL_APOLOGY = "Lo siento, tuve un problema al procesar tu solicitud."


class ToolRegistry:
    """Maps tool names to implementations; execution never raises."""

    def __init__(self, memory: FactMemory | None = None):
        self._tools: dict[ToolName, ITool] = {}
        self._memory = memory or FactMemory()

    @classmethod
    def with_defaults(cls, memory: FactMemory | None = None) -> "ToolRegistry":
        """Registry holding every built-in tool."""
        registry = cls(memory)
        registry.register(TimeTool())
        registry.register(WebSearchTool())
        registry.register(CalculatorTool())
        registry.register(MemoryTool(registry.memory))
        registry.register(CourtesyTool())
        return registry

    @property
    def memory(self) -> FactMemory:
        """Fact store shared by the memory tool."""
        return self._memory

    def register(self, tool: ITool) -> None:
        """Register a tool under its name, replacing any previous one."""
        key = ToolName(tool.name)
        self._tools[key] = tool
        logger.debug("Tool registered", extra={"context": {"tool": key.value}})

    def get(self, name: ToolName | str) -> ITool | None:
        try:
            return self._tools.get(ToolName(name))
        except ValueError:
            return None

    def names(self) -> list[ToolName]:
        return list(self._tools)

    async def execute(self, name: ToolName | str, tool_input: dict[str, Any]) -> ToolResult:
        """Run a tool. Unknown tools and tool failures become failure results."""
        tool = self.get(name)
        label = getattr(name, "value", name)
        if tool is None:
            logger.warning("Tool not found", extra={"context": {"tool": label}})
            return Result.failure(TOOL_APOLOGY, code="tool_not_found")

        try:
            output = await tool.execute(tool_input)
        except ToolError as e:
            logger.warning(
                "Tool failed",
                extra={"context": {"tool": label, "error": str(e)}},
            )
            return Result.failure(TOOL_APOLOGY, code="tool_error")
        except Exception as e:
            logger.error(
                "Tool raised unexpectedly",
                exc_info=True,
                extra={"context": {"tool": label, "error": str(e)}},
            )
            return Result.failure(TOOL_APOLOGY, code="tool_crash")

        return Result.success(output)
