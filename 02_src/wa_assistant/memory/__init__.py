"""Memory module."""

from .availability import Availability, IAvailability
from .store import PERSISTENCE_ERRORS, IMemoryStore, MemoryStore

__all__ = [
    "Availability",
    "IAvailability",
    "IMemoryStore",
    "MemoryStore",
    "PERSISTENCE_ERRORS",
]
