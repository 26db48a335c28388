"""Scheduled sweep creating meeting reminders and inactivity notifications."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from cuidar.core.db import dialect_insert
from cuidar.core.timeutils import as_utc, utcnow
from cuidar.models import Member, Notification, NotificationEventType, OneOnOneMeeting
from cuidar.models.base import new_uuid
from cuidar.services.sweep import sweep

REMINDER_WINDOW = timedelta(hours=24)
REMINDER_LEAD = timedelta(hours=1)
INACTIVITY_WINDOW = timedelta(days=30)

logger = logging.getLogger(__name__)


@dataclass
class GenerationCounts:
    meeting_notifications: int
    inactive_notifications: int


class NotificationGenerator:
    """Compute reminder and inactivity notifications from the meeting tables.

    Notifications are keyed on ``(user_id, related_id, event_type)``; rows that
    already exist are left untouched, so running the sweep again is harmless.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def run(self, *, now: datetime | None = None) -> GenerationCounts:
        now = as_utc(now or utcnow())
        logger.info("Starting notification generation")

        reminders = await self._meeting_reminders(now)
        await self._insert_missing(reminders, "meeting reminders")

        inactive = await self._inactive_member_flags(now)
        await self._insert_missing(inactive, "inactive member flags")

        logger.info(
            "Notification generation completed",
            extra={"meeting_notifications": len(reminders), "inactive_notifications": len(inactive)},
        )
        return GenerationCounts(len(reminders), len(inactive))

    async def _meeting_reminders(self, now: datetime) -> list[dict[str, Any]]:
        result = await self.session.execute(
            select(OneOnOneMeeting)
            .where(OneOnOneMeeting.scheduled_at >= now)
            .where(OneOnOneMeeting.scheduled_at <= now + REMINDER_WINDOW)
        )
        meetings = list(result.scalars())
        logger.info("Found upcoming one-on-ones", extra={"count": len(meetings)})
        return [
            _notification(
                user_id=meeting.mentor_id,
                event_type=NotificationEventType.ONE_ON_ONE_REMINDER,
                related_id=meeting.id,
                remind_at=as_utc(meeting.scheduled_at) - REMINDER_LEAD,
            )
            for meeting in meetings
        ]

    async def _inactive_member_flags(self, now: datetime) -> list[dict[str, Any]]:
        result = await self.session.execute(
            select(Member).where(Member.discipler_id.is_not(None)).order_by(Member.id)
        )
        members = list(result.scalars())
        logger.info("Checking members for inactivity", extra={"count": len(members)})

        since = now - INACTIVITY_WINDOW
        flags: list[dict[str, Any]] = []

        async def check(member: Member) -> None:
            recent = await self.session.execute(
                select(OneOnOneMeeting.id)
                .where(OneOnOneMeeting.mentee_member_id == member.id)
                .where(OneOnOneMeeting.scheduled_at >= since)
                .limit(1)
            )
            if recent.first() is None:
                assert member.discipler_id is not None
                flags.append(
                    _notification(
                        user_id=member.discipler_id,
                        event_type=NotificationEventType.INACTIVE_MEMBER,
                        related_id=member.id,
                        remind_at=now,
                    )
                )

        await sweep(members, check, label="Inactivity check")
        return flags

    async def _insert_missing(self, rows: list[dict[str, Any]], label: str) -> None:
        if not rows:
            return
        statement = (
            dialect_insert(self.session, Notification)
            .values(rows)
            .on_conflict_do_nothing(index_elements=["user_id", "related_id", "event_type"])
        )
        try:
            await self.session.execute(statement)
            await self.session.commit()
        except SQLAlchemyError as exc:
            await self.session.rollback()
            logger.error("Failed to store %s", label, exc_info=exc)


def _notification(
    *, user_id: str, event_type: NotificationEventType, related_id: str, remind_at: datetime
) -> dict[str, Any]:
    return {
        "id": new_uuid(),
        "user_id": user_id,
        "event_type": event_type.value,
        "related_id": related_id,
        "remind_at": remind_at,
        "channel": "none",
        "status": "pending",
    }
