"""Database models package for the Cuidar+ calendar service."""

from .base import Base
from .google import GoogleToken
from .member import Member, StudyProgress
from .meeting import DEFAULT_DURATION_MINUTES, GeneralMeeting, OneOnOneMeeting
from .notification import Notification, NotificationEventType
from .achievement import Achievement, CriteriaType, UserAchievement, UserPoints

__all__ = [
    "Base",
    "GoogleToken",
    "Member",
    "StudyProgress",
    "DEFAULT_DURATION_MINUTES",
    "GeneralMeeting",
    "OneOnOneMeeting",
    "Notification",
    "NotificationEventType",
    "Achievement",
    "CriteriaType",
    "UserAchievement",
    "UserPoints",
]
