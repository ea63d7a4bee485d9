"""WhatsApp webhook conversational assistant."""

from .app import Application, IApplication
from .dialogue import ConversationAgent, IConversationAgent
from .llm import ILLMProvider, LLMProvider
from .memory import Availability, IAvailability, IMemoryStore, MemoryStore
from .models import (
    ConversationState,
    InboundMessage,
    MessageType,
    Node,
    StoredMessage,
    ToolName,
    TurnOutcome,
    User,
)
from .orchestrator import MessageOrchestrator, WorkerPool
from .storage import IStorage, Storage
from .tools import ITool, ToolRegistry, ToolResult
from .webhook import IWebhookService, WebhookService
from .whatsapp import IMediaTranscriber, IWhatsAppClient, MediaTranscriber, WhatsAppClient

__all__ = [
    # Application
    "Application",
    "IApplication",
    # Models
    "InboundMessage",
    "MessageType",
    "StoredMessage",
    "User",
    "ConversationState",
    "Node",
    "TurnOutcome",
    "ToolName",
    # Components
    "IStorage",
    "Storage",
    "IAvailability",
    "Availability",
    "IMemoryStore",
    "MemoryStore",
    "ITool",
    "ToolRegistry",
    "ToolResult",
    "ILLMProvider",
    "LLMProvider",
    "IConversationAgent",
    "ConversationAgent",
    "IWebhookService",
    "WebhookService",
    "IWhatsAppClient",
    "WhatsAppClient",
    "IMediaTranscriber",
    "MediaTranscriber",
    "MessageOrchestrator",
    "WorkerPool",
]
