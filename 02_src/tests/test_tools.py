"""Tests for built-in tools and the registry."""

from datetime import datetime, timezone

import pytest

from wa_assistant.errors import ToolError
from wa_assistant.tools import (
    TOOL_APOLOGY,
    CalculatorTool,
    CourtesyTool,
    FactMemory,
    MemoryTool,
    TimeTool,
    ToolName,
    ToolRegistry,
    WebSearchTool,
)
from wa_assistant.tools.result import Result


class TestTimeTool:
    """Tests for TimeTool."""

    async def test_formats_in_spanish_bogota_time(self):
        """Test Spanish date formatting in America/Bogota (UTC-5)."""
        clock = lambda: datetime(2024, 3, 5, 15, 4, 9, tzinfo=timezone.utc)
        result = await TimeTool(clock=clock).execute({})
        assert result == "La hora actual es: 5 de marzo de 2024, 10:04:09"

    async def test_unknown_timezone_raises_tool_error(self):
        """Test that a bad timezone surfaces as ToolError."""
        with pytest.raises(ToolError):
            await TimeTool(tz_name="Nowhere/Atlantis").execute({})


class TestWebSearchTool:
    """Tests for WebSearchTool."""

    async def test_canned_answer(self):
        """Test that known topics get canned answers."""
        result = await WebSearchTool().execute({"query": "noticias de hoy"})
        assert result == WebSearchTool.CANNED_ANSWERS["noticias"]

    async def test_generic_answer(self):
        """Test that unknown topics echo the query."""
        result = await WebSearchTool().execute({"query": "python asyncio"})
        assert '"python asyncio"' in result

    async def test_missing_query(self):
        """Test that an empty query asks for a term."""
        result = await WebSearchTool().execute({"query": ""})
        assert result == "Por favor, proporciona un término de búsqueda válido."


class TestCalculatorTool:
    """Tests for CalculatorTool."""

    @pytest.mark.parametrize(
        "expression,expected",
        [
            ("2+2*3", "8"),
            ("(2+2)*3", "12"),
            ("10/4", "2.5"),
            ("9/3", "3"),
            ("-3+1", "-2"),
        ],
    )
    async def test_evaluates(self, expression, expected):
        """Test arithmetic results with integral values printed without .0."""
        result = await CalculatorTool().execute({"expression": expression})
        assert result == f"El resultado de {expression} es: {expected}"

    async def test_division_by_zero(self):
        """Test the division by zero message."""
        result = await CalculatorTool().execute({"expression": "1/0"})
        assert result == "No se puede dividir entre cero."

    async def test_rejects_disallowed_characters(self):
        """Test that names and calls never reach evaluation."""
        result = await CalculatorTool().execute({"expression": "__import__('os')"})
        assert "caracteres no permitidos" in result

    @pytest.mark.parametrize("expression", ["2\t+ 2", "2 +\n2", "2\r+2"])
    async def test_only_plain_spaces_allowed(self, expression):
        """Test that tabs and line breaks inside an expression are rejected."""
        result = await CalculatorTool().execute({"expression": expression})
        assert "caracteres no permitidos" in result

    async def test_spaces_allowed(self):
        """Test that plain spaces between operands are accepted."""
        result = await CalculatorTool().execute({"expression": "2 + 2"})
        assert result == "El resultado de 2 + 2 es: 4"

    async def test_rejects_power_operator(self):
        """Test that ** passes the character check but not evaluation."""
        result = await CalculatorTool().execute({"expression": "2**8"})
        assert result.startswith("No pude calcular")

    async def test_syntax_error(self):
        """Test that malformed expressions get a descriptive message."""
        result = await CalculatorTool().execute({"expression": "2+*"})
        assert result.startswith("No pude calcular")


class TestMemoryTool:
    """Tests for MemoryTool and FactMemory."""

    async def test_remembers_fact(self):
        """Test that a fact is stored per user."""
        memory = FactMemory()
        result = await MemoryTool(memory).execute(
            {"key": "info", "value": "prefiero café", "user_id": "57300"}
        )

        assert result.startswith('He guardado "info": "prefiero café"')
        assert await memory.recall_all("57300") == {"info": "prefiero café"}
        assert await memory.recall_all("57399") == {}

    async def test_requires_key_and_user(self):
        """Test that missing key or user is reported."""
        result = await MemoryTool(FactMemory()).execute({"value": "x"})
        assert result.startswith("Se requiere una clave")

    async def test_forget_only_touches_one_user(self):
        """Test that forget drops one user's facts."""
        memory = FactMemory()
        await memory.remember("u1", "a", 1)
        await memory.remember("u1", "b", 2)
        await memory.remember("u2", "a", 3)

        assert await memory.recall_all("u1") == {"a": 1, "b": 2}
        assert await memory.forget("u1") == 2
        assert await memory.recall_all("u1") == {}
        assert await memory.recall_all("u2") == {"a": 3}


class TestCourtesyTool:
    """Tests for CourtesyTool."""

    async def test_picks_from_type(self):
        """Test that the reply comes from the requested set."""
        tool = CourtesyTool(chooser=lambda options: options[0])
        assert await tool.execute({"type": "thanks"}) == CourtesyTool.RESPONSES["thanks"][0]

    async def test_unknown_type_fallback(self):
        """Test the fallback reply."""
        assert await CourtesyTool().execute({"type": "other"}) == CourtesyTool.FALLBACK


class _BrokenTool:
    name = ToolName.WEB_SEARCH
    description = "always fails"

    def __init__(self, error):
        self._error = error

    async def execute(self, tool_input):
        raise self._error


class TestToolRegistry:
    """Tests for ToolRegistry."""

    def test_defaults_registered(self, registry):
        """Test that every built-in tool is registered."""
        assert set(registry.names()) == set(ToolName)

    def test_get_unknown_name(self, registry):
        """Test that unknown names return None."""
        assert registry.get("launch_rockets") is None
        assert registry.get("calculator") is not None

    async def test_execute_success(self, registry):
        """Test a successful execution result."""
        result = await registry.execute(ToolName.CALCULATOR, {"expression": "1+1"})
        assert result.ok is True
        assert result.value == "El resultado de 1+1 es: 2"

    async def test_execute_unknown_tool(self, registry):
        """Test that an unknown tool becomes a failure, not an exception."""
        result = await registry.execute("launch_rockets", {})
        assert result.ok is False
        assert result.error == TOOL_APOLOGY
        assert result.error_code == "tool_not_found"

    async def test_execute_tool_error(self):
        """Test that ToolError is captured."""
        registry = ToolRegistry()
        registry.register(_BrokenTool(ToolError("down", tool="web_search")))

        result = await registry.execute(ToolName.WEB_SEARCH, {})
        assert result.ok is False
        assert result.error_code == "tool_error"

    async def test_execute_unexpected_exception(self):
        """Test that any exception is captured."""
        registry = ToolRegistry()
        registry.register(_BrokenTool(KeyError("boom")))

        result = await registry.execute(ToolName.WEB_SEARCH, {})
        assert result.ok is False
        assert result.error_code == "tool_crash"
        assert result.unwrap_or("fallback") == "fallback"


class TestResult:
    """Tests for Result."""

    def test_success_and_failure(self):
        """Test constructors."""
        ok = Result.success("value")
        failed = Result.failure("nope")
        assert ok.ok and ok.value == "value"
        assert not failed.ok and failed.error_code == "unknown"
