"""Notification generator endpoint, called on a schedule."""
from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from cuidar.core.db import get_session
from cuidar.core.identity import get_current_user
from cuidar.schemas import NotificationRunResult
from cuidar.services.notification_generator import NotificationGenerator

router = APIRouter(prefix="/notification-generator", tags=["notifications"])


@router.post("")
async def generate_notifications(
    _: str = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> dict[str, Any]:
    counts = await NotificationGenerator(session).run()
    result = NotificationRunResult(
        meeting_notifications=counts.meeting_notifications,
        inactive_notifications=counts.inactive_notifications,
    )
    return result.model_dump(by_alias=True)
