"""Tools module."""

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
from .registry import TOOL_APOLOGY, ToolRegistry
from .result import Result, ToolResult

__all__ = [
    "ToolName",
    "ITool",
    "ToolRegistry",
    "TOOL_APOLOGY",
    "Result",
    "ToolResult",
    "FactMemory",
    "TimeTool",
    "WebSearchTool",
    "CalculatorTool",
    "MemoryTool",
    "CourtesyTool",
]
