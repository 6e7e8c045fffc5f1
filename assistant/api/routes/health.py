"""Health check endpoints."""

import logging
from typing import Any

from fastapi import APIRouter
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError

from assistant.api.deps import DbSession, SettingsService
from assistant.db import models

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check(settings_service: SettingsService) -> dict[str, Any]:
    """Liveness plus whether an LLM provider is usable."""
    config = settings_service.get_provider_config()
    return {
        "status": "healthy",
        "assistant": {
            "configured": config is not None,
            "provider": config.provider if config else None,
        },
    }


@router.get("/health/library")
async def library_health_check(db: DbSession) -> dict[str, Any]:
    """Check that the library store answers queries."""
    try:
        song_count = await db.scalar(select(func.count()).select_from(models.Song))
    except SQLAlchemyError as e:
        logger.warning(f"Library store health check failed: {type(e).__name__}: {e}")
        return {"status": "unhealthy", "library": "unreachable", "error": str(e)}
    return {"status": "healthy", "library": "connected", "songs": song_count or 0}
