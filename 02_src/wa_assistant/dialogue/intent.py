"""Keyword intent rules, tool input extraction and canned replies."""

import re
from dataclasses import dataclass
from typing import Any

from ..models import ToolName

GREETING_REPLY = "¡Hola! ¿Cómo estás? Estoy aquí para ayudarte."
THANKS_REPLY = "¡De nada! ¿Hay algo más en lo que pueda asistirte?"
FAREWELL_REPLY = "¡Hasta luego! Que tengas un excelente día."
DEFAULT_REPLY = "Entiendo tu mensaje. ¿En qué más puedo ayudarte?"


def _keyword_pattern(keyword: str) -> re.Pattern:
    """Whole-word match for words; operator symbols match anywhere."""
    escaped = re.escape(keyword)
    if keyword.isalpha():
        return re.compile(rf"(?<!\w){escaped}(?!\w)")
    return re.compile(escaped)


@dataclass(frozen=True)
class IntentRule:
    tool: ToolName
    keywords: tuple[str, ...]

    def matches(self, text: str) -> bool:
        return any(_keyword_pattern(k).search(text) for k in self.keywords)


# Declaration order decides ties.
INTENT_RULES: tuple[IntentRule, ...] = (
    IntentRule(ToolName.GET_CURRENT_TIME, ("hora", "tiempo", "fecha")),
    IntentRule(ToolName.WEB_SEARCH, ("buscar", "busca", "investigar", "investiga", "noticias")),
    IntentRule(
        ToolName.CALCULATOR,
        ("calcular", "calcula", "suma", "resta", "multiplica", "divide", "+", "-", "*", "/"),
    ),
    IntentRule(ToolName.REMEMBER_INFO, ("recuerda", "guarda", "memoria")),
    IntentRule(
        ToolName.COURTESY_RESPONSE,
        ("hola", "gracias", "adiós", "adios", "ayuda", "disculpa"),
    ),
)

_SEARCH_PREFIX = re.compile(r"^(?:buscar|busca|investigar|investiga)\b\s*", re.IGNORECASE)
_CALC_PREFIX = re.compile(r"^(?:calcular|calcula)\b\s*", re.IGNORECASE)


def _has_any(text: str, *keywords: str) -> bool:
    return any(_keyword_pattern(k).search(text) for k in keywords)


def match_tool(text: str) -> ToolName | None:
    """First tool whose keywords appear in the lowercased text."""
    lowered = text.lower()
    for rule in INTENT_RULES:
        if rule.matches(lowered):
            return rule.tool
    return None


def courtesy_type(text: str) -> str:
    lowered = text.lower()
    if _has_any(lowered, "hola", "buenos", "buenas"):
        return "greeting"
    if _has_any(lowered, "gracias"):
        return "thanks"
    if _has_any(lowered, "adiós", "adios", "chau"):
        return "goodbye"
    if _has_any(lowered, "disculpa"):
        return "apology"
    return "help"


def extract_tool_input(text: str, tool: ToolName, user_id: str) -> dict[str, Any]:
    """Build the input a tool expects from the user's message."""
    content = text.strip()
    lowered = content.lower()

    if tool == ToolName.WEB_SEARCH:
        return {"query": _SEARCH_PREFIX.sub("", lowered).strip()}
    if tool == ToolName.CALCULATOR:
        return {"expression": _CALC_PREFIX.sub("", lowered).strip()}
    if tool == ToolName.REMEMBER_INFO:
        return {"key": "info", "value": content, "user_id": user_id}
    if tool == ToolName.COURTESY_RESPONSE:
        return {"type": courtesy_type(lowered)}
    return {}


def canned_reply(text: str) -> str:
    """Fallback reply when no completion is available."""
    lowered = text.lower()
    if _has_any(lowered, "hola", "buenos", "buenas"):
        return GREETING_REPLY
    if _has_any(lowered, "gracias"):
        return THANKS_REPLY
    if _has_any(lowered, "adiós", "adios", "chau"):
        return FAREWELL_REPLY
    return DEFAULT_REPLY
