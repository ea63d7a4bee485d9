"""Tests for keyword intent rules."""

import pytest

from wa_assistant.dialogue import (
    DEFAULT_REPLY,
    FAREWELL_REPLY,
    GREETING_REPLY,
    THANKS_REPLY,
    canned_reply,
    extract_tool_input,
    match_tool,
)
from wa_assistant.dialogue.intent import courtesy_type
from wa_assistant.models import ToolName


class TestMatchTool:
    """Tests for match_tool()."""

    @pytest.mark.parametrize(
        "text,tool",
        [
            ("¿Qué hora es?", ToolName.GET_CURRENT_TIME),
            ("Busca recetas de arepas", ToolName.WEB_SEARCH),
            ("calcula 2+2*3", ToolName.CALCULATOR),
            ("3 * 7", ToolName.CALCULATOR),
            ("Recuerda que soy vegetariano", ToolName.REMEMBER_INFO),
            ("Hola", ToolName.COURTESY_RESPONSE),
            ("Muchas gracias", ToolName.COURTESY_RESPONSE),
        ],
    )
    def test_matches(self, text, tool):
        """Test keyword routing."""
        assert match_tool(text) == tool

    def test_declaration_order_breaks_ties(self):
        """Test that time wins over courtesy when both match."""
        assert match_tool("hola, qué hora es") == ToolName.GET_CURRENT_TIME

    def test_words_match_whole_words_only(self):
        """Test that keywords inside other words do not match."""
        assert match_tool("ahorasí") is None
        assert match_tool("me gusta la sumatoria") is None

    def test_no_match(self):
        """Test free text goes to the responder."""
        assert match_tool("cuéntame un chiste") is None


class TestExtractToolInput:
    """Tests for extract_tool_input()."""

    def test_search_strips_verb(self):
        """Test that the search verb is removed from the query."""
        assert extract_tool_input("Buscar clima en Bogotá", ToolName.WEB_SEARCH, "u") == {
            "query": "clima en bogotá"
        }

    def test_calculator_strips_verb(self):
        """Test that the calculate verb is removed from the expression."""
        assert extract_tool_input("calcula 2+2*3", ToolName.CALCULATOR, "u") == {
            "expression": "2+2*3"
        }

    def test_remember_carries_user(self):
        """Test the memory tool input."""
        assert extract_tool_input(" recuerda mi cumpleaños ", ToolName.REMEMBER_INFO, "u1") == {
            "key": "info",
            "value": "recuerda mi cumpleaños",
            "user_id": "u1",
        }

    @pytest.mark.parametrize(
        "text,kind",
        [
            ("hola", "greeting"),
            ("buenas tardes", "greeting"),
            ("gracias", "thanks"),
            ("adiós", "goodbye"),
            ("disculpa", "apology"),
            ("ayuda", "help"),
        ],
    )
    def test_courtesy_type(self, text, kind):
        """Test courtesy classification."""
        assert courtesy_type(text) == kind
        assert extract_tool_input(text, ToolName.COURTESY_RESPONSE, "u") == {"type": kind}

    def test_time_needs_no_input(self):
        """Test that the time tool takes an empty input."""
        assert extract_tool_input("qué hora es", ToolName.GET_CURRENT_TIME, "u") == {}


class TestCannedReply:
    """Tests for canned_reply()."""

    @pytest.mark.parametrize(
        "text,reply",
        [
            ("Hola!", GREETING_REPLY),
            ("buenos días", GREETING_REPLY),
            ("mil gracias", THANKS_REPLY),
            ("chau", FAREWELL_REPLY),
            ("cuéntame un chiste", DEFAULT_REPLY),
        ],
    )
    def test_replies(self, text, reply):
        """Test canned fallback replies."""
        assert canned_reply(text) == reply
