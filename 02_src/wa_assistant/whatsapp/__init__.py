"""WhatsApp Cloud API adapters."""

from .client import IWhatsAppClient, SendReceipt, WhatsAppClient
from .media import IMediaTranscriber, MediaTranscriber, TranscriptionResult

__all__ = [
    "WhatsAppClient",
    "IWhatsAppClient",
    "SendReceipt",
    "MediaTranscriber",
    "IMediaTranscriber",
    "TranscriptionResult",
]
