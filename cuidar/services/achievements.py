"""Evaluate achievement criteria for a user and award the ones reached."""
from __future__ import annotations

import logging

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from cuidar.core.timeutils import utcnow
from cuidar.models import (
    Achievement,
    CriteriaType,
    Member,
    OneOnOneMeeting,
    StudyProgress,
    UserAchievement,
    UserPoints,
)

POINTS_PER_LEVEL = 100

logger = logging.getLogger(__name__)


def progress_percent(count: int, threshold: int) -> int:
    if threshold <= 0:
        return 100
    return min(100, round(count / threshold * 100))


def level_for(total_points: int) -> int:
    return total_points // POINTS_PER_LEVEL + 1


class AchievementChecker:
    def __init__(self, session: AsyncSession, user_id: str):
        self.session = session
        self.user_id = user_id

    async def run(self) -> list[str]:
        """Update progress on every unearned achievement; return names newly earned."""

        achievements = list((await self.session.execute(select(Achievement))).scalars())
        progress_rows = {
            row.achievement_id: row
            for row in (
                await self.session.execute(
                    select(UserAchievement).where(UserAchievement.user_id == self.user_id)
                )
            ).scalars()
        }
        member_ids = list(
            (
                await self.session.execute(select(Member.id).where(Member.user_id == self.user_id))
            ).scalars()
        )

        newly_earned: list[str] = []
        for achievement in achievements:
            current = progress_rows.get(achievement.id)
            if current is not None and current.earned_at is not None:
                continue

            count = await self._measure(achievement, member_ids)
            earned = count >= achievement.threshold
            progress = progress_percent(count, achievement.threshold)
            if progress > 0:
                if current is None:
                    current = UserAchievement(user_id=self.user_id, achievement_id=achievement.id)
                    self.session.add(current)
                current.progress = 100 if earned else progress
                if earned:
                    current.earned_at = utcnow()

            if earned:
                newly_earned.append(achievement.name)
                await self._award_points(achievement.points)

        await self.session.commit()
        if newly_earned:
            logger.info(
                "Awarded achievements", extra={"user_id": self.user_id, "achievements": newly_earned}
            )
        return newly_earned

    async def _measure(self, achievement: Achievement, member_ids: list[str]) -> int:
        criteria = achievement.criteria_type
        if criteria == CriteriaType.MEETINGS_ATTENDED:
            return await self._count_meetings(member_ids)
        if criteria == CriteriaType.STUDY_COMPLETED:
            if not member_ids:
                return 0
            result = await self.session.execute(
                select(func.count(StudyProgress.id))
                .where(StudyProgress.status == "completed")
                .where(StudyProgress.member_id.in_(member_ids))
            )
            return int(result.scalar_one())
        if criteria == CriteriaType.CONSECUTIVE_MEETINGS:
            return min(await self._count_recent_meetings(member_ids, achievement.threshold),
                       achievement.threshold)
        if criteria == CriteriaType.POINTS_EARNED:
            points = await self.session.get(UserPoints, self.user_id)
            return points.total_points if points is not None else 0
        logger.warning("Unknown achievement criteria", extra={"criteria_type": criteria})
        return 0

    async def _count_meetings(self, member_ids: list[str]) -> int:
        as_mentor = await self.session.execute(
            select(func.count(OneOnOneMeeting.id)).where(OneOnOneMeeting.mentor_id == self.user_id)
        )
        total = int(as_mentor.scalar_one())
        if member_ids:
            as_mentee = await self.session.execute(
                select(func.count(OneOnOneMeeting.id)).where(
                    OneOnOneMeeting.mentee_member_id.in_(member_ids)
                )
            )
            total += int(as_mentee.scalar_one())
        return total

    async def _count_recent_meetings(self, member_ids: list[str], limit: int) -> int:
        as_mentor = await self.session.execute(
            select(OneOnOneMeeting.scheduled_at)
            .where(OneOnOneMeeting.mentor_id == self.user_id)
            .order_by(OneOnOneMeeting.scheduled_at.desc())
            .limit(limit)
        )
        total = len(as_mentor.all())
        if member_ids:
            as_mentee = await self.session.execute(
                select(OneOnOneMeeting.scheduled_at)
                .where(OneOnOneMeeting.mentee_member_id.in_(member_ids))
                .order_by(OneOnOneMeeting.scheduled_at.desc())
                .limit(limit)
            )
            total += len(as_mentee.all())
        return total

    async def _award_points(self, points: int) -> None:
        totals = await self.session.get(UserPoints, self.user_id)
        if totals is None:
            totals = UserPoints(user_id=self.user_id, total_points=0, level=1)
            self.session.add(totals)
        totals.total_points += points
        totals.level = level_for(totals.total_points)
        await self.session.flush()


def achievement_message(names: list[str]) -> str:
    if names:
        return f"Congratulations! You unlocked: {', '.join(names)}"
    return "No new achievements unlocked"
