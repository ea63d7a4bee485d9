"""SIM implementation - posts simulated WhatsApp webhook deliveries."""

import asyncio
import hashlib
import hmac
import json
import random
import time
import uuid
from typing import Any, Protocol

import httpx

from wa_assistant.logging_config import get_logger

logger = get_logger(__name__)


class ISim(Protocol):
    """Generate webhook traffic against a running server."""

    async def start(self) -> None:
        """Start hardcoded scenario."""
        ...

    async def stop(self) -> None:
        """Stop scenario."""
        ...


def build_text_delivery(
    wa_id: str,
    text: str,
    profile_name: str | None = None,
    message_id: str | None = None,
    phone_number_id: str = "sim-phone",
) -> dict[str, Any]:
    """Build a Cloud API delivery carrying one text message."""
    value: dict[str, Any] = {
        "messaging_product": "whatsapp",
        "metadata": {"display_phone_number": "0000000000", "phone_number_id": phone_number_id},
        "messages": [
            {
                "from": wa_id,
                "id": message_id or f"wamid.sim.{uuid.uuid4().hex}",
                "timestamp": str(int(time.time())),
                "type": "text",
                "text": {"body": text},
            }
        ],
    }
    if profile_name:
        value["contacts"] = [{"profile": {"name": profile_name}, "wa_id": wa_id}]

    return {
        "object": "whatsapp_business_account",
        "entry": [{"id": "sim-entry", "changes": [{"field": "messages", "value": value}]}],
    }


def sign_body(body: bytes, app_secret: str) -> str:
    """X-Hub-Signature-256 header value for a body."""
    digest = hmac.new(app_secret.encode(), body, hashlib.sha256).hexdigest()
    return f"sha256={digest}"


class Sim:
    """SIM with hardcoded scenario for testing."""

    def __init__(
        self,
        api_url: str = "http://localhost:8000",
        app_secret: str | None = None,
        delay_range: tuple[float, float] = (1.0, 3.0),
    ):
        self._api_url = api_url
        self._app_secret = app_secret
        self._delay_range = delay_range
        self._running = False
        self._task: asyncio.Task | None = None
        self._client: httpx.AsyncClient | None = None

    async def start(self) -> None:
        """Start hardcoded scenario."""
        if self._running:
            return

        self._running = True
        self._client = httpx.AsyncClient()

        # Start background task
        self._task = asyncio.create_task(self._run_scenario())

    async def stop(self) -> None:
        """Stop scenario."""
        self._running = False

        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

        if self._client:
            await self._client.aclose()
            self._client = None

    async def _run_scenario(self) -> None:
        """Run hardcoded scenario."""
        # Define virtual users
        virtual_users = [
            {"wa_id": "5730000000001", "name": "Ana"},
            {"wa_id": "5730000000002", "name": "Bruno"},
            {"wa_id": "5730000000003", "name": "Carla"},
        ]

        # Define messages for each user
        messages_per_user = [
            ["Hola, buenos días", "¿Qué hora es?", "Gracias por la ayuda"],
            ["Hola", "calcula 12*(3+4)", "Adiós"],
            ["Buenas tardes", "busca noticias", "recuerda que prefiero café"],
        ]

        logger.info(
            "SIM scenario started",
            extra={
                "context": {
                    "user_count": len(virtual_users),
                    "message_count": sum(len(m) for m in messages_per_user),
                }
            },
        )
        try:
            for i in range(3):  # 3 rounds of messages
                if not self._running:
                    break

                for user_idx, user in enumerate(virtual_users):
                    if not self._running:
                        break

                    if i < len(messages_per_user[user_idx]):
                        await self.send_text(user["wa_id"], messages_per_user[user_idx][i], user["name"])
                        await asyncio.sleep(random.uniform(*self._delay_range))

                # Small delay between rounds
                await asyncio.sleep(self._delay_range[1])

        except asyncio.CancelledError:
            pass
        except Exception as e:
            logger.error("SIM scenario error", extra={"context": {"error": str(e)}})
        finally:
            logger.info("SIM scenario completed")

    async def send_text(self, wa_id: str, text: str, profile_name: str | None = None) -> int | None:
        """Post one text delivery to the webhook. Returns the HTTP status."""
        if not self._client:
            return None

        body = json.dumps(build_text_delivery(wa_id, text, profile_name)).encode("utf-8")
        headers = {"Content-Type": "application/json"}
        if self._app_secret:
            headers["X-Hub-Signature-256"] = sign_body(body, self._app_secret)

        try:
            response = await self._client.post(
                f"{self._api_url}/webhook",
                content=body,
                headers=headers,
                timeout=10.0,
            )
        except httpx.HTTPError as e:
            logger.error("SIM: failed to post delivery", extra={"context": {"error": str(e)}})
            return None

        if response.status_code == 200:
            logger.info("SIM: delivery acknowledged", extra={"context": {"wa_id": wa_id, "text": text}})
        else:
            logger.error(
                "SIM: delivery rejected",
                extra={"context": {"status_code": response.status_code, "body": response.text[:200]}},
            )
        return response.status_code
