"""Pytest configuration and fixtures."""

import sys
from pathlib import Path
from unittest.mock import AsyncMock, Mock

import pytest
import pytest_asyncio

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))


@pytest_asyncio.fixture
async def storage():
    """Create in-memory storage for testing."""
    from wa_assistant.storage import Storage

    st = Storage(":memory:")
    await st.init()
    yield st
    await st.close()


@pytest.fixture
def availability():
    """Availability flag switched on."""
    from wa_assistant.memory import Availability

    return Availability(available=True)


@pytest.fixture
def memory_store(storage, availability):
    """MemoryStore backed by in-memory storage."""
    from wa_assistant.memory import MemoryStore

    return MemoryStore(storage, availability)


@pytest.fixture
def degraded_store():
    """MemoryStore with persistence switched off and no database behind it."""
    from wa_assistant.memory import Availability, MemoryStore
    from wa_assistant.storage import Storage

    return MemoryStore(Storage(":memory:"), Availability(available=False))


@pytest.fixture
def registry():
    """Tool registry with every built-in tool."""
    from wa_assistant.tools import ToolRegistry

    return ToolRegistry.with_defaults()


@pytest.fixture
def mock_llm():
    """Create mock LLM provider."""
    llm = Mock()
    llm.generate = AsyncMock(return_value="Test response")
    llm.complete = AsyncMock(return_value="Test response")
    return llm


@pytest.fixture
def agent(memory_store, registry, mock_llm):
    """ConversationAgent over in-memory persistence."""
    from wa_assistant.dialogue import ConversationAgent

    return ConversationAgent(memory=memory_store, tools=registry, llm=mock_llm)


@pytest.fixture
def text_delivery():
    """Factory for a Cloud API delivery carrying one text message."""

    def build(text="hola", sender="5731234567", message_id="wamid.1", name="Ana"):
        return {
            "object": "whatsapp_business_account",
            "entry": [
                {
                    "id": "entry-1",
                    "changes": [
                        {
                            "field": "messages",
                            "value": {
                                "messaging_product": "whatsapp",
                                "metadata": {"phone_number_id": "123"},
                                "contacts": [{"profile": {"name": name}, "wa_id": sender}],
                                "messages": [
                                    {
                                        "from": sender,
                                        "id": message_id,
                                        "timestamp": "1700000000",
                                        "type": "text",
                                        "text": {"body": text},
                                    }
                                ],
                            },
                        }
                    ],
                }
            ],
        }

    return build
