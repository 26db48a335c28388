"""Pydantic schemas for the calendar bridge endpoint."""
from __future__ import annotations

from datetime import datetime
from enum import StrEnum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from cuidar.core.timeutils import as_utc


class MeetingType(StrEnum):
    ONE_ON_ONE = "1a1"
    GENERAL = "geral"


class LocalTable(StrEnum):
    ONE_ON_ONE = "one_on_one_meetings"
    GENERAL = "general_meetings"


class EventSource(StrEnum):
    PROVIDER = "provider"
    ONE_ON_ONE = "one_on_one"
    GENERAL = "general"


class LocalRef(BaseModel):
    """Back-reference from a calendar item to the local row it mirrors."""

    table: LocalTable
    pk: str = Field(min_length=1)


class OneOnOneExtra(BaseModel):
    mentor_id: str | None = None
    mentee_member_id: str | None = None


class EventFields(BaseModel):
    """The local shape of an event, as sent by the UI."""

    model_config = ConfigDict(populate_by_name=True)

    title: str | None = None
    description: str | None = None
    location: str | None = None
    start: datetime
    end: datetime
    time_zone: str | None = Field(default=None, alias="timeZone")
    extra: OneOnOneExtra | None = None
    local: LocalRef | None = None

    @model_validator(mode="after")
    def check_range(self) -> "EventFields":
        # Naive timestamps are read as UTC so they compare with aware ones.
        if as_utc(self.end) <= as_utc(self.start):
            msg = "Event end must be after its start"
            raise ValueError(msg)
        return self


class DeletePayload(BaseModel):
    local: LocalRef | None = None


class ListAction(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    action: Literal["list"]
    range_start: datetime | None = Field(default=None, alias="rangeStart")
    range_end: datetime | None = Field(default=None, alias="rangeEnd")


class CreateAction(BaseModel):
    action: Literal["create"]
    type: MeetingType
    payload: EventFields


class UpdateAction(BaseModel):
    action: Literal["update"]
    id: str = Field(min_length=1)
    payload: EventFields


class DeleteAction(BaseModel):
    action: Literal["delete"]
    id: str = Field(min_length=1)
    payload: DeletePayload | None = None


class SyncAction(BaseModel):
    action: Literal["sync"]


CalendarAction = Annotated[
    Union[ListAction, CreateAction, UpdateAction, DeleteAction, SyncAction],
    Field(discriminator="action"),
]


class OneOnOneRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    mentor_id: str
    mentee_member_id: str | None = None
    scheduled_at: datetime
    duration_minutes: int
    notes: str | None = None
    google_event_id: str | None = None

    @field_validator("scheduled_at")
    @classmethod
    def normalize_scheduled_at(cls, value: datetime) -> datetime:
        return as_utc(value)


class GeneralMeetingRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    title: str
    description: str | None = None
    location: str | None = None
    scheduled_at: datetime
    google_event_id: str | None = None
    created_by: str

    @field_validator("scheduled_at")
    @classmethod
    def normalize_scheduled_at(cls, value: datetime) -> datetime:
        return as_utc(value)


class CalendarEvent(BaseModel):
    """One item of the unified calendar feed."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    source: EventSource
    title: str
    description: str | None = None
    location: str | None = None
    start: datetime
    end: datetime
    provider_event_id: str | None = Field(default=None, alias="providerEventId")
    local: LocalRef | None = None


class ListResult(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    google: list[dict[str, Any]]
    one_on_ones: list[OneOnOneRead] = Field(alias="oneOnOnes")
    general_meetings: list[GeneralMeetingRead] = Field(alias="generalMeetings")
    events: list[CalendarEvent]
