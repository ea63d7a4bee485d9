"""Application bootstrap and lifecycle management."""

import asyncio
from datetime import datetime, timezone
from typing import Any, Protocol

from .config import Settings, resolve_db_path
from .dialogue import ConversationAgent, IConversationAgent
from .llm import ILLMProvider, LLMProvider
from .logging_config import get_logger
from .memory import PERSISTENCE_ERRORS, Availability, MemoryStore
from .orchestrator import MessageOrchestrator
from .storage import Storage
from .tools import ToolRegistry
from .webhook import WebhookService
from .whatsapp import IMediaTranscriber, IWhatsAppClient, MediaTranscriber, WhatsAppClient

logger = get_logger(__name__)


class IApplication(Protocol):
    """Bootstrap and lifecycle."""

    async def start(self) -> None:
        """Initialize components in dependency order."""
        ...

    async def stop(self) -> None:
        """Shutdown in reverse order."""
        ...

    async def reset(self) -> None:
        """Reset data between test runs."""
        ...

    async def health(self) -> dict[str, Any]:
        """Service health summary."""
        ...


class Application:
    """Main application bootstrap."""

    def __init__(
        self,
        settings: Settings | None = None,
        llm: ILLMProvider | None = None,
        whatsapp: IWhatsAppClient | None = None,
        transcriber: IMediaTranscriber | None = None,
    ):
        self._settings = settings or Settings.from_env()
        self._db_path = resolve_db_path(self._settings.database_url)

        # Collaborators may be injected (tests, sim); otherwise built in start()
        self._llm = llm
        self._whatsapp = whatsapp
        self._transcriber = transcriber
        self._owns_http_clients = whatsapp is None and transcriber is None

        # Components (will be initialized in start())
        self._storage: Storage | None = None
        self._availability = Availability(available=False)
        self._memory: MemoryStore | None = None
        self._tools: ToolRegistry | None = None
        self._agent: ConversationAgent | None = None
        self._webhook: WebhookService | None = None
        self._orchestrator: MessageOrchestrator | None = None
        self._maintenance_task: asyncio.Task | None = None

    async def start(self) -> None:
        """Initialize components in dependency order."""
        logger.info("Starting application")
        self._settings.validate()

        # 1. Storage (no dependencies); failure means degraded mode, not a crash
        self._storage = Storage(self._db_path)
        await self._connect_storage()

        # 2. Memory store (depends on Storage + Availability)
        self._memory = MemoryStore(
            self._storage, self._availability, session_ttl=self._settings.session_ttl
        )
        if self._availability.is_available():
            await self._memory.cleanup_expired_sessions()

        # 3. Tools
        self._tools = ToolRegistry.with_defaults()

        # 4. Completion provider (optional)
        if self._llm is None and self._settings.anthropic_api_key:
            self._llm = LLMProvider(
                api_key=self._settings.anthropic_api_key,
                model=self._settings.llm_model,
                timeout=self._settings.llm_timeout,
            )
        if self._llm is None:
            logger.warning("ANTHROPIC_API_KEY not set, replies fall back to canned text")
        else:
            logger.info("LLM provider initialized")

        # 5. WhatsApp adapters
        if self._whatsapp is None:
            self._whatsapp = WhatsAppClient(
                token=self._settings.meta_token,
                phone_number_id=self._settings.whatsapp_phone_number_id,
                base_url=self._settings.meta_base_url,
                timeout=self._settings.http_timeout,
            )
        if self._transcriber is None:
            self._transcriber = MediaTranscriber(
                meta_token=self._settings.meta_token,
                openai_api_key=self._settings.openai_api_key,
                meta_base_url=self._settings.meta_base_url,
            )

        # 6. Conversation agent (depends on Memory, Tools, LLM)
        self._agent = ConversationAgent(
            memory=self._memory,
            tools=self._tools,
            llm=self._llm,
            llm_timeout=self._settings.llm_timeout,
        )

        # 7. Webhook service (no dependencies)
        self._webhook = WebhookService(
            verify_token=self._settings.meta_verify_token,
            app_secret=self._settings.meta_app_secret,
        )

        # 8. Orchestrator (depends on Agent + WhatsApp adapters)
        self._orchestrator = MessageOrchestrator(
            agent=self._agent,
            whatsapp=self._whatsapp,
            transcriber=self._transcriber,
            workers=self._settings.worker_count,
            queue_size=self._settings.queue_size,
        )
        await self._orchestrator.start()

        # 9. Periodic maintenance
        if self._settings.cleanup_interval_seconds > 0:
            self._maintenance_task = asyncio.create_task(self._maintenance_loop())

        logger.info(
            "All components initialized successfully",
            extra={"context": {"persistence": self._availability.is_available()}},
        )

    async def stop(self) -> None:
        """Shutdown in reverse order."""
        if self._maintenance_task:
            self._maintenance_task.cancel()
            await asyncio.gather(self._maintenance_task, return_exceptions=True)
            self._maintenance_task = None
        if self._orchestrator:
            await self._orchestrator.stop(drain=True)
        if self._owns_http_clients:
            if isinstance(self._whatsapp, WhatsAppClient):
                await self._whatsapp.close()
            if isinstance(self._transcriber, MediaTranscriber):
                await self._transcriber.close()
        if self._storage:
            await self._storage.close()
            self._availability.mark_unavailable("storage closed")
            logger.info("Storage closed")

    async def reset(self) -> None:
        """Reset data between test runs."""
        # 1. Let queued turns finish against the current data
        if self._orchestrator:
            await self._orchestrator.stop(drain=True)

        # 2. Clear storage and remembered facts
        if self._storage and self._storage.connected:
            await self._storage.clear()
            logger.info("Storage cleared")
        if self._tools:
            await self._tools.memory.clear()

        # 3. Resume processing
        if self._orchestrator:
            await self._orchestrator.start()

    async def _connect_storage(self) -> bool:
        try:
            await self._storage.init()
        except PERSISTENCE_ERRORS as e:
            self._availability.mark_unavailable(f"init: {e}")
            logger.warning(
                "Database unavailable, running in degraded mode",
                extra={"context": {"db_path": str(self._db_path), "error": str(e)}},
            )
            return False
        self._availability.mark_available()
        logger.info("Storage initialized", extra={"context": {"db_path": str(self._db_path)}})
        return True

    async def run_maintenance(self) -> int:
        """Recheck persistence and purge expired sessions. Returns sessions removed."""
        if not self._storage or not self._memory:
            raise RuntimeError("Application not started")

        if not self._storage.connected:
            await self._connect_storage()
        else:
            await self._memory.check_connectivity()
        return await self._memory.cleanup_expired_sessions()

    async def _maintenance_loop(self) -> None:
        interval = self._settings.cleanup_interval_seconds
        while True:
            await asyncio.sleep(interval)
            try:
                await self.run_maintenance()
            except Exception as e:
                logger.error("Maintenance run failed", exc_info=True, extra={"context": {"error": str(e)}})

    async def health(self) -> dict[str, Any]:
        """Service health summary; rechecks storage connectivity."""
        if not self._memory or not self._orchestrator:
            raise RuntimeError("Application not started")

        database = await self._memory.check_connectivity()
        whatsapp = await self._whatsapp.health_check() if self._whatsapp else False
        services = {
            "database": database,
            "whatsapp": whatsapp,
            "llm": self._llm is not None,
            "transcription": bool(getattr(self._transcriber, "available", self._transcriber)),
        }

        if not whatsapp or not self._orchestrator.pool.running:
            status = "unhealthy"
        elif database:
            status = "healthy"
        else:
            status = "degraded"

        return {
            "status": status,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "services": services,
            "persistence_reason": self._availability.reason,
            "queue": self._orchestrator.stats(),
        }

    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def availability(self) -> Availability:
        return self._availability

    @property
    def storage(self) -> Storage:
        """Get storage instance."""
        if not self._storage:
            raise RuntimeError("Application not started")
        return self._storage

    @property
    def memory(self) -> MemoryStore:
        """Get memory store instance."""
        if not self._memory:
            raise RuntimeError("Application not started")
        return self._memory

    @property
    def tools(self) -> ToolRegistry:
        """Get tool registry instance."""
        if not self._tools:
            raise RuntimeError("Application not started")
        return self._tools

    @property
    def agent(self) -> IConversationAgent:
        """Get conversation agent instance."""
        if not self._agent:
            raise RuntimeError("Application not started")
        return self._agent

    @property
    def webhook(self) -> WebhookService:
        """Get webhook service instance."""
        if not self._webhook:
            raise RuntimeError("Application not started")
        return self._webhook

    @property
    def orchestrator(self) -> MessageOrchestrator:
        """Get orchestrator instance."""
        if not self._orchestrator:
            raise RuntimeError("Application not started")
        return self._orchestrator
