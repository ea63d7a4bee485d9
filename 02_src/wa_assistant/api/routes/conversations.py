"""Conversation inspection routes."""

from datetime import datetime

from pydantic import BaseModel
from fastapi import APIRouter, HTTPException, Query

from ...app import IApplication


class HistoryMessageResponse(BaseModel):
    """Response model for a logged message."""

    id: str
    direction: str
    message_type: str
    content: str
    timestamp: datetime


class HistoryResponse(BaseModel):
    """Response model for conversation history."""

    wa_id: str
    messages: list[HistoryMessageResponse]


class ClearResponse(BaseModel):
    """Response model for memory reset."""

    status: str
    cleared: bool


def create_conversations_router(app: IApplication) -> APIRouter:
    """Create conversations router."""
    router = APIRouter(prefix="/api/conversations", tags=["conversations"])

    @router.get("/{wa_id}/history", response_model=HistoryResponse)
    async def get_history(
        wa_id: str,
        limit: int = Query(10, ge=1, le=100),
    ) -> dict:
        """Recent messages of a user's conversation, oldest first."""
        try:
            messages = await app.agent.get_history(wa_id, limit=limit)
            return {
                "wa_id": wa_id,
                "messages": [
                    {
                        "id": m.id,
                        "direction": m.direction.value,
                        "message_type": m.message_type,
                        "content": m.content,
                        "timestamp": m.timestamp,
                    }
                    for m in messages
                ],
            }
        except HTTPException:
            raise
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    @router.delete("/{wa_id}/memory", response_model=ClearResponse)
    async def clear_memory(wa_id: str) -> dict:
        """Forget a user's turns, context and remembered facts."""
        try:
            cleared = await app.agent.clear_memory(wa_id)
            return {"status": "ok", "cleared": cleared}
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    return router
