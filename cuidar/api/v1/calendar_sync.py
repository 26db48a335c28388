"""Calendar bridge endpoint."""
from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Depends
from pydantic import TypeAdapter
from sqlalchemy.ext.asyncio import AsyncSession

from cuidar.api.v1.common import parse_action
from cuidar.core.config import Settings, get_settings
from cuidar.core.db import get_session
from cuidar.core.google_calendar import CalendarClientFactory, get_calendar_client_factory
from cuidar.core.identity import get_current_user
from cuidar.core.oauth_google import GoogleOAuthClient, get_google_oauth_client
from cuidar.schemas import CalendarAction
from cuidar.services.calendar_bridge import CalendarBridge

router = APIRouter(prefix="/calendar-sync", tags=["calendar"])

_actions: TypeAdapter[CalendarAction] = TypeAdapter(CalendarAction)


@router.post("")
async def calendar_sync(
    body: Any = Body(default=None),
    user_id: str = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
    settings: Settings = Depends(get_settings),
    oauth_client: GoogleOAuthClient = Depends(get_google_oauth_client),
    calendar_factory: CalendarClientFactory = Depends(get_calendar_client_factory),
) -> dict[str, Any]:
    """Run one of ``list``, ``create``, ``update``, ``delete`` or ``sync``."""

    action = parse_action(_actions, body if body is not None else {})
    bridge = CalendarBridge(
        session,
        user_id,
        settings=settings,
        oauth_client=oauth_client,
        calendar_factory=calendar_factory,
    )
    return await bridge.dispatch(action)
