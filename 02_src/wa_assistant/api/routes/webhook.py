"""WhatsApp webhook routes."""

import json

from fastapi import APIRouter, HTTPException, Query, Request
from fastapi.responses import PlainTextResponse

from ...app import IApplication
from ...logging_config import get_logger

logger = get_logger(__name__)

SIGNATURE_HEADER = "X-Hub-Signature-256"


def create_webhook_router(app: IApplication) -> APIRouter:
    """Create webhook router."""
    router = APIRouter(prefix="/webhook", tags=["webhook"])

    @router.get("", response_class=PlainTextResponse)
    async def verify_webhook(
        mode: str | None = Query(None, alias="hub.mode"),
        token: str | None = Query(None, alias="hub.verify_token"),
        challenge: str | None = Query(None, alias="hub.challenge"),
    ) -> PlainTextResponse:
        """Answer the subscription handshake with the challenge."""
        result = app.webhook.verify_handshake(mode, token, challenge)
        if result is None:
            raise HTTPException(status_code=403, detail="Verification failed")
        return PlainTextResponse(result)

    @router.post("")
    async def receive_webhook(request: Request) -> dict:
        """Validate and acknowledge a delivery; processing continues in the background."""
        try:
            body = await request.body()

            if app.webhook.signature_required and not app.webhook.verify_signature(
                body, request.headers.get(SIGNATURE_HEADER)
            ):
                raise HTTPException(status_code=403, detail="Invalid signature")

            try:
                payload = json.loads(body)
            except ValueError:
                raise HTTPException(status_code=400, detail="Invalid JSON body")

            result = app.webhook.process_payload(payload)
            if not result.accepted:
                raise HTTPException(status_code=400, detail=result.error or "Invalid payload")

            if result.should_respond and result.message is not None:
                app.orchestrator.dispatch(result.message)

            return {"status": "ok"}

        except HTTPException:
            raise
        except Exception as e:
            logger.error("Webhook handling failed", exc_info=True, extra={"context": {"error": str(e)}})
            raise HTTPException(status_code=500, detail=str(e))

    return router
