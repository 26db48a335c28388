"""Meeting models mirrored to Google Calendar."""
from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import DateTime, ForeignKey, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from cuidar.models.base import Base, new_uuid

if TYPE_CHECKING:
    from cuidar.models.member import Member

DEFAULT_DURATION_MINUTES = 60


class OneOnOneMeeting(Base):
    """A discipleship one-on-one between a mentor and a mentee."""

    __tablename__ = "one_on_one_meetings"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    mentor_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    mentee_member_id: Mapped[str | None] = mapped_column(
        ForeignKey("members.id", ondelete="SET NULL"), nullable=True, index=True
    )
    scheduled_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    duration_minutes: Mapped[int] = mapped_column(
        Integer, default=DEFAULT_DURATION_MINUTES, nullable=False
    )
    notes: Mapped[str | None] = mapped_column(Text())
    google_event_id: Mapped[str | None] = mapped_column(String(255), index=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    mentee: Mapped[Optional["Member"]] = relationship(back_populates="one_on_ones")


class GeneralMeeting(Base):
    """A meeting open to a whole group, scheduled by a leader."""

    __tablename__ = "general_meetings"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text())
    location: Mapped[str | None] = mapped_column(String(255))
    scheduled_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    google_event_id: Mapped[str | None] = mapped_column(String(255), index=True)
    created_by: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
