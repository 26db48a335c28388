"""Achievement checking endpoint."""
from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Depends
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from cuidar.core.db import get_session
from cuidar.core.errors import InvalidRequest
from cuidar.core.identity import get_current_user
from cuidar.schemas import AchievementCheckRequest, AchievementCheckResult
from cuidar.services.achievements import AchievementChecker, achievement_message

router = APIRouter(prefix="/check-achievements", tags=["achievements"])


@router.post("")
async def check_achievements(
    body: Any = Body(default=None),
    caller_id: str = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> dict[str, Any]:
    """Evaluate achievements for ``userId`` (the caller when omitted)."""

    try:
        request = AchievementCheckRequest.model_validate(body or {})
    except ValidationError as exc:
        raise InvalidRequest("Invalid userId format") from exc

    user_id = str(request.user_id) if request.user_id is not None else caller_id
    earned = await AchievementChecker(session, user_id).run()
    result = AchievementCheckResult(new_achievements=earned, message=achievement_message(earned))
    return result.model_dump(by_alias=True)
