"""Bridge between Google Calendar and the local meeting tables.

Every action first obtains a fresh access token for the caller. Writes go to
Google before they touch the database, so a failed provider call never leaves
a local row pointing at an event that does not exist. During ``sync`` Google
is the writer of record and local rows are overwritten from it.
"""
from __future__ import annotations

import asyncio
import logging
from datetime import UTC, datetime, timedelta
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from cuidar.core.config import Settings
from cuidar.core.errors import LocalRowNotFound, LocalWriteFailed, ProviderRequestFailed
from cuidar.core.google_calendar import CalendarClientFactory, GoogleCalendarClient
from cuidar.core.oauth_google import GoogleOAuthClient
from cuidar.core.timeutils import as_utc, utcnow
from cuidar.core.token_store import TokenStore
from cuidar.models import DEFAULT_DURATION_MINUTES, GeneralMeeting, OneOnOneMeeting
from cuidar.schemas import (
    CalendarAction,
    CreateAction,
    DeleteAction,
    EventFields,
    GeneralMeetingRead,
    ListAction,
    ListResult,
    LocalRef,
    LocalTable,
    MeetingType,
    OneOnOneRead,
    SyncAction,
    UpdateAction,
)
from cuidar.services.event_mapper import (
    duration_minutes,
    from_provider_shape,
    to_provider_shape,
    unify_feed,
)
from cuidar.services.sweep import sweep

DEFAULT_MEETING_TITLE = "Meeting"
DEFAULT_LIST_WINDOW = timedelta(days=90)
EPOCH = datetime(1970, 1, 1, tzinfo=UTC)

LocalRow = OneOnOneMeeting | GeneralMeeting

logger = logging.getLogger(__name__)


class CalendarBridge:
    """Dispatch calendar actions for one authenticated user."""

    def __init__(
        self,
        session: AsyncSession,
        user_id: str,
        *,
        settings: Settings,
        oauth_client: GoogleOAuthClient,
        calendar_factory: CalendarClientFactory,
    ):
        self.session = session
        self.user_id = user_id
        self.settings = settings
        self._oauth = oauth_client
        self._calendar_factory = calendar_factory

    async def dispatch(self, action: CalendarAction) -> dict[str, Any]:
        calendar = await self._calendar()
        if isinstance(action, ListAction):
            return await self.list_events(calendar, action)
        if isinstance(action, CreateAction):
            return await self.create_event(calendar, action)
        if isinstance(action, UpdateAction):
            return await self.update_event(calendar, action)
        if isinstance(action, DeleteAction):
            return await self.delete_event(calendar, action)
        if isinstance(action, SyncAction):
            return await self.sync_events(calendar)
        raise TypeError(f"Unsupported calendar action: {action!r}")

    async def _calendar(self) -> GoogleCalendarClient:
        store = TokenStore(self.session)
        token = await store.require(self.user_id)
        access_token = await self._oauth.ensure_access_token(store, token)
        await self.session.commit()
        return self._calendar_factory(access_token)

    async def list_events(self, calendar: GoogleCalendarClient, action: ListAction) -> dict[str, Any]:
        """Fetch Google events and local meetings in ``[range_start, range_end)``."""

        range_start = as_utc(action.range_start) if action.range_start else EPOCH
        range_end = as_utc(action.range_end) if action.range_end else utcnow() + DEFAULT_LIST_WINDOW

        # AsyncSession does not allow concurrent use, so both tables share one task.
        # Both branches finish before the first failure is re-raised.
        outcomes = await asyncio.gather(
            calendar.list_events(range_start, range_end),
            self._local_in_range(range_start, range_end),
            return_exceptions=True,
        )
        for outcome in outcomes:
            if isinstance(outcome, BaseException):
                raise outcome
        google, (one_on_ones, general_meetings) = outcomes
        result = ListResult(
            google=google,
            one_on_ones=[OneOnOneRead.model_validate(row) for row in one_on_ones],
            general_meetings=[GeneralMeetingRead.model_validate(row) for row in general_meetings],
            events=unify_feed(google, one_on_ones, general_meetings),
        )
        return result.model_dump(mode="json", by_alias=True)

    async def _local_in_range(
        self, range_start: datetime, range_end: datetime
    ) -> tuple[list[OneOnOneMeeting], list[GeneralMeeting]]:
        one_on_ones = await self.session.execute(
            select(OneOnOneMeeting)
            .where(OneOnOneMeeting.mentor_id == self.user_id)
            .where(OneOnOneMeeting.scheduled_at >= range_start)
            .where(OneOnOneMeeting.scheduled_at < range_end)
            .order_by(OneOnOneMeeting.scheduled_at)
        )
        general_meetings = await self.session.execute(
            select(GeneralMeeting)
            .where(GeneralMeeting.created_by == self.user_id)
            .where(GeneralMeeting.scheduled_at >= range_start)
            .where(GeneralMeeting.scheduled_at < range_end)
            .order_by(GeneralMeeting.scheduled_at)
        )
        return list(one_on_ones.scalars()), list(general_meetings.scalars())

    async def create_event(self, calendar: GoogleCalendarClient, action: CreateAction) -> dict[str, Any]:
        """Create the Google event, then the local row linked to it."""

        payload = action.payload
        created = await calendar.insert_event(self._provider_body(payload))
        event_id = str(created["id"])

        row: LocalRow
        if action.type is MeetingType.ONE_ON_ONE:
            extra = payload.extra
            row = OneOnOneMeeting(
                mentor_id=(extra.mentor_id if extra and extra.mentor_id else self.user_id),
                mentee_member_id=extra.mentee_member_id if extra else None,
                google_event_id=event_id,
            )
            _mirror_one_on_one(row, payload.start, payload.end, payload.description)
            serializer: type[OneOnOneRead] | type[GeneralMeetingRead] = OneOnOneRead
        else:
            row = GeneralMeeting(created_by=self.user_id, google_event_id=event_id)
            _mirror_general(row, payload.title, payload.description, payload.location, payload.start)
            serializer = GeneralMeetingRead

        self.session.add(row)
        await self._commit_local(f"create local {row.__tablename__} for Google event {event_id}")
        logger.info(
            "Created calendar event",
            extra={"user_id": self.user_id, "google_event_id": event_id, "table": row.__tablename__},
        )
        return {
            "ok": True,
            "google": created,
            "local": serializer.model_validate(row).model_dump(mode="json"),
        }

    async def update_event(self, calendar: GoogleCalendarClient, action: UpdateAction) -> dict[str, Any]:
        """Patch the Google event, then the referenced local row if any."""

        payload = action.payload
        row = await self._owned_row(payload.local) if payload.local else None
        updated = await calendar.patch_event(action.id, self._provider_body(payload))

        if isinstance(row, OneOnOneMeeting):
            _mirror_one_on_one(row, payload.start, payload.end, payload.description)
        elif isinstance(row, GeneralMeeting):
            _mirror_general(row, payload.title, payload.description, payload.location, payload.start)
        if row is not None:
            await self._commit_local(f"update {row.__tablename__} {row.id}")
        return {"ok": True, "google": updated}

    async def delete_event(self, calendar: GoogleCalendarClient, action: DeleteAction) -> dict[str, Any]:
        """Delete the Google event, then the referenced local row if any."""

        local = action.payload.local if action.payload else None
        row = await self._owned_row(local) if local else None
        await calendar.delete_event(action.id)
        if row is not None:
            await self.session.delete(row)
            await self._commit_local(f"delete {row.__tablename__} {row.id}")
        return {"ok": True}

    async def sync_events(self, calendar: GoogleCalendarClient) -> dict[str, Any]:
        """Overwrite every linked local row of the caller with Google's version."""

        rows = await self._linked_rows()

        async def pull(row: LocalRow) -> None:
            assert row.google_event_id is not None
            event = await calendar.get_event(row.google_event_id)
            if event.get("status") == "cancelled":
                raise ProviderRequestFailed(f"Google event {row.google_event_id} was cancelled")
            mapped = from_provider_shape(event)
            if isinstance(row, OneOnOneMeeting):
                end = mapped.end if mapped.has_end and mapped.end > mapped.start else None
                _mirror_one_on_one(row, mapped.start, end, mapped.description)
            else:
                _mirror_general(row, event.get("summary"), mapped.description, mapped.location, mapped.start)

        result = await sweep(rows, pull, label="Calendar sync")
        await self._commit_local("sync linked meetings")
        logger.info(
            "Calendar sync finished",
            extra={
                "user_id": self.user_id,
                "attempted": result.attempted,
                "failed": len(result.failures),
            },
        )
        return {"ok": True, "updated": result.attempted}

    async def _linked_rows(self) -> list[LocalRow]:
        one_on_ones = await self.session.execute(
            select(OneOnOneMeeting)
            .where(OneOnOneMeeting.mentor_id == self.user_id)
            .where(OneOnOneMeeting.google_event_id.is_not(None))
            .order_by(OneOnOneMeeting.scheduled_at)
        )
        general_meetings = await self.session.execute(
            select(GeneralMeeting)
            .where(GeneralMeeting.created_by == self.user_id)
            .where(GeneralMeeting.google_event_id.is_not(None))
            .order_by(GeneralMeeting.scheduled_at)
        )
        return [*one_on_ones.scalars(), *general_meetings.scalars()]

    async def _owned_row(self, ref: LocalRef) -> LocalRow:
        row: LocalRow | None
        if ref.table is LocalTable.ONE_ON_ONE:
            row = await self.session.get(OneOnOneMeeting, ref.pk)
            owner = row.mentor_id if row is not None else None
        else:
            row = await self.session.get(GeneralMeeting, ref.pk)
            owner = row.created_by if row is not None else None
        if row is None or owner != self.user_id:
            raise LocalRowNotFound(f"{ref.table.value} {ref.pk} not found")
        return row

    def _provider_body(self, payload: EventFields) -> dict[str, Any]:
        return to_provider_shape(payload, default_time_zone=self.settings.default_time_zone)

    async def _commit_local(self, what: str) -> None:
        try:
            await self.session.commit()
        except SQLAlchemyError as exc:
            await self.session.rollback()
            logger.error("Local write failed after Google write", extra={"operation": what}, exc_info=exc)
            raise LocalWriteFailed(f"Local write failed: {what}") from exc


def _mirror_one_on_one(
    row: OneOnOneMeeting, start: datetime, end: datetime | None, notes: str | None
) -> None:
    row.scheduled_at = as_utc(start)
    row.duration_minutes = (
        duration_minutes(start, end) if end is not None else DEFAULT_DURATION_MINUTES
    )
    row.notes = notes


def _mirror_general(
    row: GeneralMeeting,
    title: str | None,
    description: str | None,
    location: str | None,
    start: datetime,
) -> None:
    row.title = title or DEFAULT_MEETING_TITLE
    row.description = description
    row.location = location
    row.scheduled_at = as_utc(start)
