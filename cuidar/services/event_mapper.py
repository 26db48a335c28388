"""Translate events between the local shape and the Google Calendar JSON shape."""
from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import UTC, date, datetime, time, timedelta
from typing import Any, Protocol

from cuidar.core.timeutils import as_utc, to_rfc3339
from cuidar.models import DEFAULT_DURATION_MINUTES, GeneralMeeting, OneOnOneMeeting
from cuidar.schemas import CalendarEvent, EventSource, LocalRef, LocalTable

DEFAULT_EVENT_TITLE = "Cuidar+ event"
UNTITLED_EVENT_TITLE = "(no title)"
ONE_ON_ONE_TITLE = "One-on-one meeting"
DEFAULT_TIME_ZONE = "UTC"


class EventLike(Protocol):
    title: str | None
    description: str | None
    location: str | None
    start: datetime
    end: datetime
    time_zone: str | None


@dataclass(frozen=True)
class LocalEvent:
    """Local view of a provider event."""

    title: str
    start: datetime
    end: datetime
    description: str | None = None
    location: str | None = None
    time_zone: str | None = None
    has_end: bool = True


def to_provider_shape(fields: EventLike, *, default_time_zone: str = DEFAULT_TIME_ZONE) -> dict[str, Any]:
    """Build a Google event body; optional fields that are unset are left out."""

    time_zone = fields.time_zone or default_time_zone
    body: dict[str, Any] = {
        "summary": fields.title or DEFAULT_EVENT_TITLE,
        "start": {"dateTime": to_rfc3339(fields.start), "timeZone": time_zone},
        "end": {"dateTime": to_rfc3339(fields.end), "timeZone": time_zone},
    }
    if fields.description is not None:
        body["description"] = fields.description
    if fields.location is not None:
        body["location"] = fields.location
    return body


def from_provider_shape(event: dict[str, Any]) -> LocalEvent:
    """Read a Google event, preferring ``dateTime`` over all-day ``date`` values."""

    start = _parse_provider_time(event.get("start"))
    if start is None:
        raise ValueError(f"Google event {event.get('id')!r} has no start")
    end = _parse_provider_time(event.get("end"))
    return LocalEvent(
        title=event.get("summary") or UNTITLED_EVENT_TITLE,
        start=start,
        end=end or start,
        description=event.get("description"),
        location=event.get("location"),
        time_zone=(event.get("start") or {}).get("timeZone"),
        has_end=end is not None,
    )


def _parse_provider_time(value: dict[str, Any] | None) -> datetime | None:
    if not value:
        return None
    if value.get("dateTime"):
        return as_utc(datetime.fromisoformat(value["dateTime"]))
    if value.get("date"):
        return datetime.combine(date.fromisoformat(value["date"]), time.min, tzinfo=UTC)
    return None


def duration_minutes(start: datetime, end: datetime) -> int:
    return round((as_utc(end) - as_utc(start)).total_seconds() / 60)


def _widen(start: datetime, end: datetime) -> datetime:
    if end > start:
        return end
    return start + timedelta(minutes=DEFAULT_DURATION_MINUTES)


def unify_feed(
    google: Iterable[dict[str, Any]],
    one_on_ones: Iterable[OneOnOneMeeting],
    general_meetings: Iterable[GeneralMeeting],
) -> list[CalendarEvent]:
    """Merge the three raw collections of a ``list`` call into one time-ordered feed."""

    events: list[CalendarEvent] = []
    for item in google:
        try:
            mapped = from_provider_shape(item)
        except ValueError:
            continue
        events.append(
            CalendarEvent(
                id=str(item.get("id")),
                source=EventSource.PROVIDER,
                title=mapped.title,
                description=mapped.description,
                location=mapped.location,
                start=mapped.start,
                end=_widen(mapped.start, mapped.end),
                provider_event_id=item.get("id"),
            )
        )

    for meeting in one_on_ones:
        start = as_utc(meeting.scheduled_at)
        end = start + timedelta(minutes=meeting.duration_minutes or DEFAULT_DURATION_MINUTES)
        events.append(
            CalendarEvent(
                id=meeting.id,
                source=EventSource.ONE_ON_ONE,
                title=ONE_ON_ONE_TITLE,
                description=meeting.notes,
                start=start,
                end=_widen(start, end),
                provider_event_id=meeting.google_event_id,
                local=LocalRef(table=LocalTable.ONE_ON_ONE, pk=meeting.id),
            )
        )

    for meeting in general_meetings:
        start = as_utc(meeting.scheduled_at)
        events.append(
            CalendarEvent(
                id=meeting.id,
                source=EventSource.GENERAL,
                title=meeting.title,
                description=meeting.description,
                location=meeting.location,
                start=start,
                end=start + timedelta(minutes=DEFAULT_DURATION_MINUTES),
                provider_event_id=meeting.google_event_id,
                local=LocalRef(table=LocalTable.GENERAL, pk=meeting.id),
            )
        )

    events.sort(key=lambda event: event.start)
    return events
