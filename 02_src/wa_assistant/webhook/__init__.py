"""Webhook module."""

from .service import AUTO_REPLY_TYPES, IWebhookService, WebhookResult, WebhookService

__all__ = ["WebhookService", "IWebhookService", "WebhookResult", "AUTO_REPLY_TYPES"]
