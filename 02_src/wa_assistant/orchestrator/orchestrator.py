"""Background pipeline for acknowledged webhook messages."""

from typing import Any

from ..dialogue import IConversationAgent
from ..errors import WhatsAppError
from ..logging_config import get_logger, preview
from ..models import InboundMessage, MessageType
from ..whatsapp import IMediaTranscriber, IWhatsAppClient
from .worker_pool import WorkerPool

logger = get_logger(__name__)

TRANSCRIPTION_FAILED_REPLY = "Lo siento, no pude transcribir el audio."
PROCESSING_FAILED_REPLY = "Lo siento, ocurrió un error al procesar tu mensaje."


class MessageOrchestrator:
    """Runs mark-read, transcription, the agent and the reply send for each message."""

    def __init__(
        self,
        agent: IConversationAgent,
        whatsapp: IWhatsAppClient | None = None,
        transcriber: IMediaTranscriber | None = None,
        workers: int = 4,
        queue_size: int = 100,
    ):
        self._agent = agent
        self._whatsapp = whatsapp
        self._transcriber = transcriber
        self._pool: WorkerPool[InboundMessage] = WorkerPool(
            self._handle, workers=workers, queue_size=queue_size
        )

    @property
    def pool(self) -> WorkerPool[InboundMessage]:
        return self._pool

    async def start(self) -> None:
        await self._pool.start()

    async def stop(self, drain: bool = True) -> None:
        await self._pool.stop(drain=drain)

    def dispatch(self, message: InboundMessage) -> bool:
        """Queue a message for background processing. False when it was dropped."""
        return self._pool.submit(message.sender, message)

    def stats(self) -> dict[str, Any]:
        return self._pool.stats()

    async def _handle(self, message: InboundMessage) -> None:
        await self.process(message)

    async def process(self, message: InboundMessage) -> str | None:
        """Handle one message end to end. Returns the reply sent, if any."""
        await self._mark_as_read(message)

        if message.type == MessageType.TEXT:
            text = message.text
        elif message.type == MessageType.AUDIO:
            text = await self._transcribe(message)
            if text is None:
                await self._send(message.sender, TRANSCRIPTION_FAILED_REPLY)
                return TRANSCRIPTION_FAILED_REPLY
        else:
            logger.info(
                "Message type not auto-replied",
                extra={"context": {"id": message.id, "type": message.type.value}},
            )
            return None

        if not text or not text.strip():
            return None

        try:
            outcome = await self._agent.handle_message(
                message.sender,
                text,
                provider_message_id=message.id or None,
                message_type=message.type.value,
                profile_name=message.profile_name,
            )
        except Exception as e:
            logger.error(
                "Agent failed to process message",
                exc_info=True,
                extra={"context": {"id": message.id, "from": message.sender, "error": str(e)}},
            )
            await self._send(message.sender, PROCESSING_FAILED_REPLY)
            return PROCESSING_FAILED_REPLY

        if outcome.duplicate or not outcome.reply:
            return None

        await self._send(message.sender, outcome.reply)
        return outcome.reply

    async def _mark_as_read(self, message: InboundMessage) -> None:
        if self._whatsapp is None or not message.id:
            return
        try:
            await self._whatsapp.mark_as_read(message.id)
        except WhatsAppError as e:
            logger.warning(
                "Could not mark message as read",
                extra={"context": {"id": message.id, "error": str(e)}},
            )

    async def _transcribe(self, message: InboundMessage) -> str | None:
        media_id = message.media_id
        if self._transcriber is None or not media_id:
            logger.warning(
                "Audio received but cannot be transcribed",
                extra={"context": {"id": message.id, "media_id": media_id}},
            )
            return None

        result = await self._transcriber.download_and_transcribe(media_id)
        if not result.success or not result.text:
            return None
        logger.info(
            "Voice note transcribed",
            extra={"context": {"id": message.id, "text": preview(result.text)}},
        )
        return result.text

    async def _send(self, to: str, text: str) -> None:
        if self._whatsapp is None:
            logger.info(
                "No outbound client, reply not sent",
                extra={"context": {"to": to, "text": preview(text)}},
            )
            return
        try:
            await self._whatsapp.send_text(to, text)
        except WhatsAppError as e:
            logger.error(
                "Reply delivery failed",
                extra={"context": {"to": to, "status_code": e.status_code, "error": str(e)}},
            )
