"""Pydantic schemas for the scheduled and on-demand job endpoints."""
from __future__ import annotations

from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class NotificationRunResult(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    meeting_notifications: int = Field(alias="meetingNotifications")
    inactive_notifications: int = Field(alias="inactiveNotifications")


class AchievementCheckRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_id: UUID | None = Field(default=None, alias="userId")


class AchievementCheckResult(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    new_achievements: list[str] = Field(alias="newAchievements")
    message: str
