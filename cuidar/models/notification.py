"""Notification model definition."""
from __future__ import annotations

from datetime import datetime
from enum import StrEnum

from sqlalchemy import DateTime, String, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from cuidar.models.base import Base, new_uuid


class NotificationEventType(StrEnum):
    ONE_ON_ONE_REMINDER = "1a1_reminder"
    INACTIVE_MEMBER = "inactive_member"


class Notification(Base):
    """A pending notification, unique per user, related entity and event type."""

    __tablename__ = "notifications"
    __table_args__ = (
        UniqueConstraint("user_id", "related_id", "event_type", name="uq_notifications_key"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    event_type: Mapped[str] = mapped_column(String(64), nullable=False)
    related_id: Mapped[str] = mapped_column(String(64), nullable=False)
    remind_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    channel: Mapped[str] = mapped_column(String(32), default="none", nullable=False)
    status: Mapped[str] = mapped_column(String(32), default="pending", nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
