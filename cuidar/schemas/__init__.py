"""Pydantic schemas for the Cuidar+ calendar service."""

from .calendar import (
    CalendarAction,
    CalendarEvent,
    CreateAction,
    DeleteAction,
    EventFields,
    EventSource,
    GeneralMeetingRead,
    ListAction,
    ListResult,
    LocalRef,
    LocalTable,
    MeetingType,
    OneOnOneExtra,
    OneOnOneRead,
    SyncAction,
    UpdateAction,
)
from .jobs import AchievementCheckRequest, AchievementCheckResult, NotificationRunResult
from .oauth import AuthorizeAction, CredentialRead, DisconnectAction, OAuthAction, StatusAction

__all__ = [
    "AchievementCheckRequest",
    "AchievementCheckResult",
    "AuthorizeAction",
    "CalendarAction",
    "CalendarEvent",
    "CreateAction",
    "CredentialRead",
    "DeleteAction",
    "DisconnectAction",
    "EventFields",
    "EventSource",
    "GeneralMeetingRead",
    "ListAction",
    "ListResult",
    "LocalRef",
    "LocalTable",
    "MeetingType",
    "NotificationRunResult",
    "OAuthAction",
    "OneOnOneExtra",
    "OneOnOneRead",
    "StatusAction",
    "SyncAction",
    "UpdateAction",
]
