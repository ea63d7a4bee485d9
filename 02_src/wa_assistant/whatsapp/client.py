"""Outbound WhatsApp Cloud API client."""

from dataclasses import dataclass
from typing import Any, Protocol

import httpx

from ..errors import WhatsAppError
from ..logging_config import get_logger, preview

logger = get_logger(__name__)


@dataclass
class SendReceipt:
    """Provider acknowledgment of an outbound message."""

    message_id: str
    to: str


class IWhatsAppClient(Protocol):
    """Outbound delivery collaborator."""

    async def send_text(self, to: str, text: str) -> SendReceipt:
        ...

    async def mark_as_read(self, message_id: str) -> None:
        ...

    async def health_check(self) -> bool:
        ...


class WhatsAppClient:
    """Sends messages through the Graph API. Sends are not retried."""

    def __init__(
        self,
        token: str,
        phone_number_id: str,
        base_url: str = "https://graph.facebook.com/v21.0",
        timeout: float = 15.0,
        client: httpx.AsyncClient | None = None,
    ):
        self._token = token
        self._phone_number_id = phone_number_id
        self._base_url = base_url.rstrip("/")
        self._client = client or httpx.AsyncClient(timeout=httpx.Timeout(timeout))
        self._headers = {"Authorization": f"Bearer {token}"}

    @property
    def configured(self) -> bool:
        return bool(self._token and self._phone_number_id)

    async def close(self) -> None:
        await self._client.aclose()

    async def _post_messages(self, payload: dict[str, Any]) -> dict[str, Any]:
        url = f"{self._base_url}/{self._phone_number_id}/messages"
        try:
            response = await self._client.post(url, json=payload, headers=self._headers)
        except httpx.TimeoutException as e:
            raise WhatsAppError("Request to WhatsApp API timed out") from e
        except httpx.HTTPError as e:
            raise WhatsAppError(f"Connection error to WhatsApp API: {e}") from e

        if response.status_code >= 400:
            raise WhatsAppError(
                f"WhatsApp API error: {response.status_code} - {response.text[:500]}",
                status_code=response.status_code,
            )

        try:
            return response.json()
        except ValueError as e:
            raise WhatsAppError(
                f"Invalid JSON from WhatsApp API: {response.text[:200]}",
                status_code=response.status_code,
            ) from e

    async def send_text(self, to: str, text: str) -> SendReceipt:
        """Send a text message. Raises WhatsAppError on failure."""
        payload = {
            "messaging_product": "whatsapp",
            "recipient_type": "individual",
            "to": to,
            "type": "text",
            "text": {"body": text},
        }
        data = await self._post_messages(payload)

        messages = data.get("messages") if isinstance(data, dict) else None
        first = messages[0] if isinstance(messages, list) and messages else None
        if not isinstance(first, dict) or not first.get("id"):
            raise WhatsAppError(f"Unexpected send response: {str(data)[:200]}")

        receipt = SendReceipt(message_id=first["id"], to=to)
        logger.info(
            "Text message sent",
            extra={
                "context": {"to": to, "message_id": receipt.message_id, "text": preview(text, 100)}
            },
        )
        return receipt

    async def mark_as_read(self, message_id: str) -> None:
        """Mark an inbound message as read. Raises WhatsAppError on failure."""
        payload = {
            "messaging_product": "whatsapp",
            "status": "read",
            "message_id": message_id,
        }
        data = await self._post_messages(payload)
        if not isinstance(data, dict) or data.get("success") is not True:
            raise WhatsAppError(f"Unexpected mark-as-read response: {str(data)[:200]}")
        logger.debug("Message marked as read", extra={"context": {"message_id": message_id}})

    async def health_check(self) -> bool:
        """Whether the phone number resource is reachable with our token."""
        url = f"{self._base_url}/{self._phone_number_id}"
        try:
            response = await self._client.get(url, headers=self._headers)
        except httpx.HTTPError as e:
            logger.warning("WhatsApp health check failed", extra={"context": {"error": str(e)}})
            return False

        if response.status_code != 200:
            logger.warning(
                "WhatsApp health check failed",
                extra={"context": {"status_code": response.status_code}},
            )
            return False

        try:
            data = response.json()
        except ValueError:
            return False
        return bool(data.get("id")) if isinstance(data, dict) else False
