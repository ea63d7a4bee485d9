"""Tests for the webhook simulator."""

import json

import httpx

from sim import Sim, build_text_delivery, sign_body
from wa_assistant.webhook import WebhookService


class TestSimPayloads:
    """Tests for generated deliveries."""

    def test_delivery_is_accepted(self):
        """Test that a simulated delivery passes webhook validation."""
        service = WebhookService(verify_token="t")
        result = service.process_payload(build_text_delivery("57300", "hola", "Ana", "wamid.s1"))

        assert result.accepted is True
        assert result.message.text == "hola"
        assert result.message.id == "wamid.s1"
        assert result.message.profile_name == "Ana"

    def test_signature_matches_service(self):
        """Test that signed bodies verify."""
        service = WebhookService(verify_token="t", app_secret="s3cret")
        body = json.dumps(build_text_delivery("57300", "hola")).encode()
        assert service.verify_signature(body, sign_body(body, "s3cret")) is True


class TestSimSend:
    """Tests for Sim.send_text()."""

    async def test_posts_signed_delivery(self):
        """Test that the simulator posts to /webhook with a signature."""
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["path"] = request.url.path
            seen["signature"] = request.headers.get("X-Hub-Signature-256")
            seen["body"] = request.content
            return httpx.Response(200, json={"status": "ok"})

        sim = Sim(api_url="http://sim.test", app_secret="s3cret")
        sim._client = httpx.AsyncClient(transport=httpx.MockTransport(handler))

        status = await sim.send_text("57300", "hola", "Ana")
        await sim.stop()

        assert status == 200
        assert seen["path"] == "/webhook"
        assert seen["signature"] == sign_body(seen["body"], "s3cret")

    async def test_send_without_client(self):
        """Test that sending before start is a no-op."""
        assert await Sim().send_text("57300", "hola") is None
