"""Orchestrator module."""

from .orchestrator import (
    PROCESSING_FAILED_REPLY,
    TRANSCRIPTION_FAILED_REPLY,
    MessageOrchestrator,
)
from .worker_pool import WorkerPool

__all__ = [
    "MessageOrchestrator",
    "WorkerPool",
    "TRANSCRIPTION_FAILED_REPLY",
    "PROCESSING_FAILED_REPLY",
]
