"""Tests for WorkerPool and MessageOrchestrator."""

import asyncio
from unittest.mock import AsyncMock, Mock

import pytest

from wa_assistant.errors import WhatsAppError
from wa_assistant.models import InboundMessage, MessageType, Node, TurnOutcome
from wa_assistant.orchestrator import (
    PROCESSING_FAILED_REPLY,
    TRANSCRIPTION_FAILED_REPLY,
    MessageOrchestrator,
    WorkerPool,
)
from wa_assistant.whatsapp import TranscriptionResult


def _text(text="hola", sender="57300", message_id="wamid.1") -> InboundMessage:
    return InboundMessage(
        id=message_id, sender=sender, timestamp="1", type=MessageType.TEXT, payload={"body": text}
    )


def _audio(media_id="media-1") -> InboundMessage:
    return InboundMessage(
        id="wamid.a", sender="57300", timestamp="1", type=MessageType.AUDIO, payload={"id": media_id}
    )


class TestWorkerPool:
    """Tests for WorkerPool."""

    async def test_same_key_processed_in_order(self):
        """Test that one key's items run sequentially in submission order."""
        seen = []

        async def handler(item):
            await asyncio.sleep(0.01 if item % 2 else 0)
            seen.append(item)

        pool = WorkerPool(handler, workers=4, queue_size=10)
        await pool.start()
        for i in range(6):
            assert pool.submit("57300", i) is True
        await pool.stop(drain=True)

        assert seen == [0, 1, 2, 3, 4, 5]
        assert pool.stats()["processed"] == 6

    def test_shard_is_stable(self):
        """Test that a key always maps to the same worker."""
        pool = WorkerPool(AsyncMock(), workers=8)
        assert pool.shard_for("57300") == pool.shard_for("57300")
        assert 0 <= pool.shard_for("57300") < 8

    async def test_full_queue_drops(self):
        """Test that submit returns False when the shard is full."""
        gate = asyncio.Event()

        async def handler(item):
            await gate.wait()

        pool = WorkerPool(handler, workers=1, queue_size=1)
        await pool.start()
        assert pool.submit("k", 1) is True
        await asyncio.sleep(0)  # worker takes item 1
        assert pool.submit("k", 2) is True
        assert pool.submit("k", 3) is False
        assert pool.stats()["dropped"] == 1

        gate.set()
        await pool.stop(drain=True)

    async def test_handler_failure_does_not_stop_worker(self):
        """Test that a failing item is counted and the next one runs."""
        handled = []

        async def handler(item):
            if item == "bad":
                raise RuntimeError("boom")
            handled.append(item)

        pool = WorkerPool(handler, workers=1)
        await pool.start()
        pool.submit("k", "bad")
        pool.submit("k", "good")
        await pool.stop(drain=True)

        assert handled == ["good"]
        assert pool.stats()["failed"] == 1

    def test_submit_when_not_running(self):
        """Test that submit before start drops the item."""
        pool = WorkerPool(AsyncMock())
        assert pool.submit("k", 1) is False

    def test_invalid_sizes(self):
        """Test argument validation."""
        with pytest.raises(ValueError):
            WorkerPool(AsyncMock(), workers=0)
        with pytest.raises(ValueError):
            WorkerPool(AsyncMock(), queue_size=0)


@pytest.fixture
def mock_agent():
    agent = Mock()
    agent.handle_message = AsyncMock(
        return_value=TurnOutcome(reply="¡Hola!", final_node=Node.DONE)
    )
    return agent


@pytest.fixture
def mock_whatsapp():
    client = Mock()
    client.send_text = AsyncMock()
    client.mark_as_read = AsyncMock()
    return client


class TestMessageOrchestrator:
    """Tests for MessageOrchestrator.process()."""

    async def test_text_reply_sent(self, mock_agent, mock_whatsapp):
        """Test the text path: read receipt, agent, reply."""
        orchestrator = MessageOrchestrator(mock_agent, mock_whatsapp)

        reply = await orchestrator.process(_text("hola"))

        assert reply == "¡Hola!"
        mock_whatsapp.mark_as_read.assert_awaited_once_with("wamid.1")
        mock_agent.handle_message.assert_awaited_once()
        assert mock_agent.handle_message.call_args.args == ("57300", "hola")
        assert mock_agent.handle_message.call_args.kwargs["provider_message_id"] == "wamid.1"
        mock_whatsapp.send_text.assert_awaited_once_with("57300", "¡Hola!")

    async def test_audio_is_transcribed(self, mock_agent, mock_whatsapp):
        """Test that voice notes reach the agent as text."""
        transcriber = Mock()
        transcriber.download_and_transcribe = AsyncMock(
            return_value=TranscriptionResult(success=True, text="qué hora es")
        )
        orchestrator = MessageOrchestrator(mock_agent, mock_whatsapp, transcriber)

        await orchestrator.process(_audio())

        transcriber.download_and_transcribe.assert_awaited_once_with("media-1")
        assert mock_agent.handle_message.call_args.args == ("57300", "qué hora es")
        assert mock_agent.handle_message.call_args.kwargs["message_type"] == "audio"

    async def test_failed_transcription_apologizes(self, mock_agent, mock_whatsapp):
        """Test that a failed transcription sends an apology and skips the agent."""
        transcriber = Mock()
        transcriber.download_and_transcribe = AsyncMock(
            return_value=TranscriptionResult(success=False, error="boom")
        )
        orchestrator = MessageOrchestrator(mock_agent, mock_whatsapp, transcriber)

        reply = await orchestrator.process(_audio())

        assert reply == TRANSCRIPTION_FAILED_REPLY
        mock_agent.handle_message.assert_not_awaited()
        mock_whatsapp.send_text.assert_awaited_once_with("57300", TRANSCRIPTION_FAILED_REPLY)

    async def test_agent_failure_apologizes(self, mock_agent, mock_whatsapp):
        """Test that an agent exception still sends an apology."""
        mock_agent.handle_message.side_effect = RuntimeError("agent down")
        orchestrator = MessageOrchestrator(mock_agent, mock_whatsapp)

        reply = await orchestrator.process(_text())

        assert reply == PROCESSING_FAILED_REPLY
        mock_whatsapp.send_text.assert_awaited_once_with("57300", PROCESSING_FAILED_REPLY)

    async def test_duplicate_sends_nothing(self, mock_agent, mock_whatsapp):
        """Test that duplicate deliveries are not answered."""
        mock_agent.handle_message.return_value = TurnOutcome(
            reply=None, final_node=Node.DONE, duplicate=True
        )
        orchestrator = MessageOrchestrator(mock_agent, mock_whatsapp)

        assert await orchestrator.process(_text()) is None
        mock_whatsapp.send_text.assert_not_awaited()

    async def test_delivery_and_read_failures_are_logged(self, mock_agent, mock_whatsapp):
        """Test that outbound errors do not escape."""
        mock_whatsapp.mark_as_read.side_effect = WhatsAppError("read failed")
        mock_whatsapp.send_text.side_effect = WhatsAppError("send failed", status_code=500)
        orchestrator = MessageOrchestrator(mock_agent, mock_whatsapp)

        assert await orchestrator.process(_text()) == "¡Hola!"

    async def test_other_types_ignored(self, mock_agent, mock_whatsapp):
        """Test that non text or audio messages are not answered."""
        message = InboundMessage(
            id="wamid.l", sender="57300", timestamp="1", type=MessageType.LOCATION, payload={}
        )
        orchestrator = MessageOrchestrator(mock_agent, mock_whatsapp)

        assert await orchestrator.process(message) is None
        mock_agent.handle_message.assert_not_awaited()

    async def test_dispatch_runs_in_background(self, mock_agent, mock_whatsapp):
        """Test the dispatch path through the worker pool."""
        orchestrator = MessageOrchestrator(mock_agent, mock_whatsapp, workers=2)
        await orchestrator.start()

        assert orchestrator.dispatch(_text()) is True
        await orchestrator.stop(drain=True)

        mock_whatsapp.send_text.assert_awaited_once_with("57300", "¡Hola!")
        assert orchestrator.stats()["processed"] == 1
