"""WhatsApp Cloud API webhook validation and message extraction."""

import hashlib
import hmac
from dataclasses import dataclass
from typing import Any, Protocol

from ..errors import ValidationFault
from ..logging_config import get_logger, preview
from ..models import MEDIA_TYPES, InboundMessage, MessageType

logger = get_logger(__name__)

EXPECTED_OBJECT = "whatsapp_business_account"
EXPECTED_PRODUCT = "whatsapp"
SUBSCRIBE_MODE = "subscribe"
SIGNATURE_PREFIX = "sha256="

# Provider type tag -> canonical type. Contact cards arrive as "contacts".
_TYPE_TAGS = {
    "text": MessageType.TEXT,
    "image": MessageType.IMAGE,
    "video": MessageType.VIDEO,
    "audio": MessageType.AUDIO,
    "document": MessageType.DOCUMENT,
    "location": MessageType.LOCATION,
    "contact": MessageType.CONTACT,
    "contacts": MessageType.CONTACT,
}

AUTO_REPLY_TYPES = frozenset({MessageType.TEXT, MessageType.AUDIO})


@dataclass
class WebhookResult:
    """Outcome of processing one webhook delivery."""

    accepted: bool
    message: InboundMessage | None = None
    should_respond: bool = False
    error: str | None = None


class IWebhookService(Protocol):
    """Handshake, validation and extraction for webhook deliveries."""

    def verify_handshake(self, mode: str | None, token: str | None, challenge: str | None) -> str | None:
        ...

    def process_payload(self, raw: Any) -> WebhookResult:
        ...

    def verify_signature(self, raw_body: bytes, header: str | None) -> bool:
        ...


class WebhookService:
    """Validates deliveries and extracts the first processable message.

    Only structural work happens here; nothing blocks on downstream
    processing so the route can acknowledge within the provider deadline.
    """

    def __init__(self, verify_token: str, app_secret: str | None = None):
        self._verify_token = verify_token
        self._app_secret = app_secret

    @property
    def signature_required(self) -> bool:
        return bool(self._app_secret)

    def verify_handshake(
        self, mode: str | None, token: str | None, challenge: str | None
    ) -> str | None:
        """Return the challenge when the subscription handshake is valid."""
        if mode != SUBSCRIBE_MODE:
            logger.warning("Handshake rejected: bad mode", extra={"context": {"mode": mode}})
            return None
        if not token or not self._verify_token or not hmac.compare_digest(
            token.encode(), self._verify_token.encode()
        ):
            logger.warning("Handshake rejected: token mismatch")
            return None
        if not challenge:
            logger.warning("Handshake rejected: empty challenge")
            return None

        logger.info("Webhook handshake verified")
        return challenge

    def verify_signature(self, raw_body: bytes, header: str | None) -> bool:
        """Check X-Hub-Signature-256 against an HMAC-SHA256 of the raw body."""
        if not self._app_secret:
            logger.warning("Signature check requested without an app secret")
            return False
        if not header or not header.startswith(SIGNATURE_PREFIX):
            logger.warning("Webhook signature missing or malformed")
            return False

        expected = hmac.new(
            self._app_secret.encode(),
            raw_body,
            hashlib.sha256,
        ).hexdigest()
        valid = hmac.compare_digest(header[len(SIGNATURE_PREFIX):], expected)
        if not valid:
            logger.warning("Webhook signature mismatch")
        return valid

    def process_payload(self, raw: Any) -> WebhookResult:
        """Validate a delivery and extract its first processable message."""
        try:
            self._validate(raw)
        except ValidationFault as e:
            logger.warning(
                "Invalid webhook payload",
                extra={"context": {"error": str(e), "field": e.field}},
            )
            return WebhookResult(accepted=False, error=str(e))

        for entry in raw["entry"]:
            for change in entry["changes"]:
                if not isinstance(change, dict) or change.get("field") != "messages":
                    continue
                value = change["value"]
                profiles = self._profile_names(value.get("contacts"))
                messages = value.get("messages")
                for item in messages if isinstance(messages, list) else []:
                    message = self._extract(item, profiles)
                    if message is not None:
                        should_respond = message.type in AUTO_REPLY_TYPES
                        logger.info(
                            "Webhook message extracted",
                            extra={"context": {**self.describe(message), "should_respond": should_respond}},
                        )
                        return WebhookResult(
                            accepted=True, message=message, should_respond=should_respond
                        )
                statuses = value.get("statuses")
                if isinstance(statuses, list) and statuses:
                    logger.debug(
                        "Status update received",
                        extra={"context": {"count": len(statuses)}},
                    )

        logger.debug("No processable message in delivery")
        return WebhookResult(accepted=True, should_respond=False)

    def _validate(self, raw: Any) -> None:
        if not isinstance(raw, dict) or not raw:
            raise ValidationFault("Payload must be a non-empty JSON object")
        if raw.get("object") != EXPECTED_OBJECT:
            raise ValidationFault(f"object must be {EXPECTED_OBJECT}", field="object")

        entries = raw.get("entry")
        if not isinstance(entries, list) or not entries:
            raise ValidationFault("entry must be a non-empty list", field="entry")

        for entry in entries:
            if not isinstance(entry, dict) or not entry.get("id"):
                raise ValidationFault("entry is missing its id", field="entry.id")
            changes = entry.get("changes")
            if not isinstance(changes, list) or not changes:
                raise ValidationFault("entry.changes must be a non-empty list", field="entry.changes")
            for change in changes:
                if not isinstance(change, dict) or change.get("field") != "messages":
                    continue
                value = change.get("value")
                if not isinstance(value, dict) or value.get("messaging_product") != EXPECTED_PRODUCT:
                    raise ValidationFault(
                        "messages change must carry messaging_product=whatsapp",
                        field="entry.changes.value",
                    )

    @staticmethod
    def _profile_names(contacts: Any) -> dict[str, str]:
        names: dict[str, str] = {}
        if not isinstance(contacts, list):
            return names
        for contact in contacts:
            if not isinstance(contact, dict):
                continue
            wa_id = contact.get("wa_id")
            profile = contact.get("profile")
            name = profile.get("name") if isinstance(profile, dict) else None
            if isinstance(wa_id, str) and isinstance(name, str) and name.strip():
                names[wa_id] = name.strip()
        return names

    @staticmethod
    def _extract(item: Any, profiles: dict[str, str]) -> InboundMessage | None:
        """Canonical message for a raw item, None when it is not processable."""
        if not isinstance(item, dict):
            return None

        sender = item.get("from")
        message_id = item.get("id")
        type_tag = item.get("type")
        message_type = _TYPE_TAGS.get(type_tag) if isinstance(type_tag, str) else None
        if not isinstance(sender, str) or not sender.strip() or message_type is None:
            logger.debug(
                "Skipping unprocessable message",
                extra={"context": {"id": message_id, "type": type_tag}},
            )
            return None

        body = item.get(type_tag)
        if isinstance(body, dict):
            payload = dict(body)
        elif isinstance(body, list):
            payload = {type_tag: body}
        else:
            payload = {}

        if message_type == MessageType.TEXT:
            text = payload.get("body")
            if not isinstance(text, str) or not text.strip():
                logger.debug(
                    "Skipping empty text message",
                    extra={"context": {"id": message_id}},
                )
                return None

        return InboundMessage(
            id=str(message_id or ""),
            sender=sender,
            timestamp=str(item.get("timestamp") or ""),
            type=message_type,
            payload=payload,
            profile_name=profiles.get(sender),
        )

    @staticmethod
    def describe(message: InboundMessage) -> dict[str, Any]:
        """Log-friendly summary of a message."""
        info: dict[str, Any] = {
            "id": message.id,
            "from": message.sender,
            "type": message.type.value,
            "timestamp": message.timestamp,
        }
        if message.type == MessageType.TEXT:
            text = message.text or ""
            info["text_length"] = len(text)
            info["preview"] = preview(text)
        elif message.type in MEDIA_TYPES:
            info["has_media"] = True
        return info
