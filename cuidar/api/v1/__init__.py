"""Version 1 API routes for the Cuidar+ calendar service."""
from __future__ import annotations

from fastapi import APIRouter, Depends

from cuidar.api.v1.achievements import router as achievements_router
from cuidar.api.v1.calendar_sync import router as calendar_sync_router
from cuidar.api.v1.google_oauth import router as google_oauth_router
from cuidar.api.v1.notifications import router as notifications_router
from cuidar.core.config import Settings, get_settings

router = APIRouter()
router.include_router(google_oauth_router)
router.include_router(calendar_sync_router)
router.include_router(notifications_router)
router.include_router(achievements_router)


@router.get("/health", tags=["health"])
async def health_check(settings: Settings = Depends(get_settings)) -> dict[str, dict[str, str]]:
    """Report the service health information."""
    return {"data": {"status": "ok", "version": settings.version}}
