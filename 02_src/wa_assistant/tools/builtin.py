"""Built-in tools."""

import ast
import asyncio
import json
import operator
import random
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from ..errors import ToolError
from ..logging_config import get_logger, preview
from ..models import ToolName

logger = get_logger(__name__)

DEFAULT_TIMEZONE = "America/Bogota"

_MONTHS_ES = (
    "enero",
    "febrero",
    "marzo",
    "abril",
    "mayo",
    "junio",
    "julio",
    "agosto",
    "septiembre",
    "octubre",
    "noviembre",
    "diciembre",
)


class TimeTool:
    """Current date and time in the configured timezone."""

    name = ToolName.GET_CURRENT_TIME
    description = "Obtiene la hora y fecha actual en formato legible"

    def __init__(
        self,
        tz_name: str = DEFAULT_TIMEZONE,
        clock: Callable[[], datetime] | None = None,
    ):
        self._tz_name = tz_name
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    async def execute(self, tool_input: dict[str, Any]) -> str:
        try:
            tz = ZoneInfo(self._tz_name)
        except ZoneInfoNotFoundError as e:
            raise ToolError(f"Unknown timezone {self._tz_name}", tool=self.name.value) from e

        now = self._clock().astimezone(tz)
        formatted = (
            f"{now.day} de {_MONTHS_ES[now.month - 1]} de {now.year}, "
            f"{now:%H:%M:%S}"
        )
        logger.debug("Time requested", extra={"context": {"time": formatted}})
        return f"La hora actual es: {formatted}"


class WebSearchTool:
    """Simulated web search backed by a small canned answer table."""

    name = ToolName.WEB_SEARCH
    description = "Realiza una búsqueda básica en la web sobre un tema específico"

    CANNED_ANSWERS = {
        "clima": "El clima actual en Bogotá es de 18°C con cielo parcialmente nublado.",
        "noticias": "Las principales noticias del día incluyen avances en tecnología y economía.",
        "tiempo": "El pronóstico del tiempo para hoy indica condiciones estables.",
        "ayuda": "Estoy aquí para ayudarte. ¿En qué puedo asistirte?",
        "saludo": "¡Hola! ¿Cómo puedo ayudarte hoy?",
    }

    async def execute(self, tool_input: dict[str, Any]) -> str:
        query = tool_input.get("query")
        if not query or not isinstance(query, str):
            return "Por favor, proporciona un término de búsqueda válido."

        logger.debug("Web search requested", extra={"context": {"query": preview(query)}})

        lowered = query.lower()
        for key, answer in self.CANNED_ANSWERS.items():
            if key in lowered:
                return answer

        return (
            f'He realizado una búsqueda sobre "{query}". Encontré información relevante '
            "que podría ser útil para tu consulta. ¿Te gustaría que profundice en algún "
            "aspecto específico?"
        )


_ALLOWED_EXPRESSION = re.compile(r"^[0-9+\-*/(). ]+$")

_BINARY_OPS = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
}

_UNARY_OPS = {
    ast.UAdd: operator.pos,
    ast.USub: operator.neg,
}


def _evaluate(node: ast.AST) -> int | float:
    """Walk an arithmetic AST; anything but numbers and + - * / is rejected."""
    if isinstance(node, ast.Expression):
        return _evaluate(node.body)
    if isinstance(node, ast.Constant) and type(node.value) in (int, float):
        return node.value
    if isinstance(node, ast.BinOp) and type(node.op) in _BINARY_OPS:
        return _BINARY_OPS[type(node.op)](_evaluate(node.left), _evaluate(node.right))
    if isinstance(node, ast.UnaryOp) and type(node.op) in _UNARY_OPS:
        return _UNARY_OPS[type(node.op)](_evaluate(node.operand))
    raise ValueError(f"Unsupported expression element: {type(node).__name__}")


def _format_number(value: int | float) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


class CalculatorTool:
    """Basic arithmetic over a restricted character set."""

    name = ToolName.CALCULATOR
    description = "Realiza operaciones matemáticas básicas (suma, resta, multiplicación, división)"

    async def execute(self, tool_input: dict[str, Any]) -> str:
        expression = tool_input.get("expression")
        if not expression or not isinstance(expression, str) or not expression.strip():
            return "Por favor, proporciona una expresión matemática válida."

        expression = expression.strip()
        if not _ALLOWED_EXPRESSION.match(expression):
            return (
                "La expresión contiene caracteres no permitidos. Solo se permiten "
                "números y operadores básicos (+, -, *, /, .)."
            )

        try:
            result = _evaluate(ast.parse(expression, mode="eval"))
        except ZeroDivisionError:
            return "No se puede dividir entre cero."
        except (SyntaxError, ValueError, OverflowError) as e:
            logger.debug(
                "Expression not computable",
                extra={"context": {"expression": expression, "error": str(e)}},
            )
            return "No pude calcular esa expresión. Verifica que esté correctamente escrita."

        logger.debug(
            "Calculation done",
            extra={"context": {"expression": expression, "result": result}},
        )
        return f"El resultado de {expression} es: {_format_number(result)}"


@dataclass
class Fact:
    """A remembered value."""

    value: Any
    user_id: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class FactMemory:
    """Process-local per-user facts."""

    def __init__(self):
        self._facts: dict[str, Fact] = {}
        self._lock = asyncio.Lock()

    @staticmethod
    def _key(user_id: str, key: str) -> str:
        return f"{user_id}_{key}"

    async def remember(self, user_id: str, key: str, value: Any) -> None:
        async with self._lock:
            self._facts[self._key(user_id, key)] = Fact(value=value, user_id=user_id)

    async def recall_all(self, user_id: str) -> dict[str, Any]:
        prefix = f"{user_id}_"
        async with self._lock:
            return {
                k[len(prefix):]: fact.value
                for k, fact in self._facts.items()
                if fact.user_id == user_id and k.startswith(prefix)
            }

    async def forget(self, user_id: str) -> int:
        """Drop every fact of a user. Returns how many were removed."""
        async with self._lock:
            keys = [k for k, fact in self._facts.items() if fact.user_id == user_id]
            for k in keys:
                del self._facts[k]
        return len(keys)

    async def clear(self) -> None:
        async with self._lock:
            self._facts.clear()


class MemoryTool:
    """Stores facts about the user for later turns."""

    name = ToolName.REMEMBER_INFO
    description = (
        "Guarda información importante sobre el usuario para recordar en futuras conversaciones"
    )

    def __init__(self, memory: FactMemory):
        self._memory = memory

    async def execute(self, tool_input: dict[str, Any]) -> str:
        key = tool_input.get("key")
        user_id = tool_input.get("user_id")
        value = tool_input.get("value")
        if not key or not user_id:
            return "Se requiere una clave y ID de usuario para guardar información."

        await self._memory.remember(user_id, key, value)
        logger.debug("Fact stored", extra={"context": {"user_id": user_id, "key": key}})
        return (
            f'He guardado "{key}": {json.dumps(value, ensure_ascii=False)} '
            "para recordar en futuras conversaciones."
        )


class CourtesyTool:
    """Short courtesy replies."""

    name = ToolName.COURTESY_RESPONSE
    description = "Genera respuestas de cortesía apropiadas para diferentes situaciones"

    RESPONSES = {
        "greeting": (
            "¡Hola! ¿En qué puedo ayudarte hoy?",
            "¡Buen día! ¿Cómo estás?",
            "¡Hola! Estoy aquí para asistirte.",
        ),
        "thanks": (
            "¡De nada! ¿Hay algo más en lo que pueda ayudarte?",
            "Es un placer ayudarte.",
            "¡Con gusto! ¿Necesitas algo más?",
        ),
        "goodbye": (
            "¡Hasta luego! Que tengas un excelente día.",
            "¡Adiós! Nos vemos pronto.",
            "¡Hasta la próxima! Cuídate.",
        ),
        "apology": (
            "Disculpa si no pude ayudarte como esperabas.",
            "Lamento cualquier inconveniente.",
            "Perdón, intentaré mejorar mi respuesta.",
        ),
        "help": (
            "Estoy aquí para ayudarte. ¿Qué necesitas?",
            "¿En qué puedo asistirte hoy?",
            "Cuéntame, ¿cómo puedo ayudarte?",
        ),
    }
    FALLBACK = "¿En qué puedo ayudarte?"

    def __init__(self, chooser: Callable[[tuple[str, ...]], str] = random.choice):
        self._choose = chooser

    async def execute(self, tool_input: dict[str, Any]) -> str:
        options = self.RESPONSES.get(tool_input.get("type", ""))
        if not options:
            return self.FALLBACK
        logger.debug("Courtesy reply", extra={"context": {"type": tool_input.get("type")}})
        return self._choose(options)
