"""Health API routes."""

from typing import Any

from pydantic import BaseModel
from fastapi import APIRouter
from fastapi.responses import JSONResponse

from ...app import IApplication
from ...logging_config import get_logger

logger = get_logger(__name__)


class HealthResponse(BaseModel):
    """Response model for health."""

    status: str
    timestamp: str | None = None
    services: dict[str, bool] = {}
    persistence_reason: str | None = None
    queue: dict[str, Any] = {}
    error: str | None = None


def create_health_router(app: IApplication) -> APIRouter:
    """Create health router."""
    router = APIRouter(tags=["health"])

    @router.get("/health", response_model=HealthResponse)
    async def health_check():
        """Report service status; rechecks the database."""
        try:
            return await app.health()
        except Exception as e:
            logger.error("Health check failed", exc_info=True, extra={"context": {"error": str(e)}})
            return JSONResponse(
                status_code=503,
                content={"status": "unhealthy", "error": "Health check failed"},
            )

    return router
