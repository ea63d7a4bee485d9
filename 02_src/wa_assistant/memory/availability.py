"""Persistence availability flag."""

from typing import Protocol

from ..logging_config import get_logger

logger = get_logger(__name__)


class IAvailability(Protocol):
    """Whether the backing store can currently be used."""

    def is_available(self) -> bool:
        ...

    def mark_available(self) -> None:
        ...

    def mark_unavailable(self, reason: str) -> None:
        ...


class Availability:
    """Explicit availability capability shared by the memory store and the app."""

    def __init__(self, available: bool = False):
        self._available = available
        self._reason: str | None = None if available else "not checked"

    def is_available(self) -> bool:
        return self._available

    @property
    def reason(self) -> str | None:
        """Why the store is unavailable, None while available."""
        return self._reason

    def mark_available(self) -> None:
        if not self._available:
            logger.info("Persistence available", extra={"context": {"previous_reason": self._reason}})
        self._available = True
        self._reason = None

    def mark_unavailable(self, reason: str) -> None:
        if self._available:
            logger.warning(
                "Persistence unavailable, switching to degraded mode",
                extra={"context": {"reason": reason}},
            )
        self._available = False
        self._reason = reason
