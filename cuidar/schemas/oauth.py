"""Pydantic schemas for the Google authorization endpoint."""
from __future__ import annotations

from datetime import datetime
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator

from cuidar.core.timeutils import as_utc


class AuthorizeAction(BaseModel):
    action: Literal["authorize"]


class DisconnectAction(BaseModel):
    action: Literal["disconnect"]


class StatusAction(BaseModel):
    action: Literal["status"]


OAuthAction = Annotated[
    Union[AuthorizeAction, DisconnectAction, StatusAction],
    Field(discriminator="action"),
]


class CredentialRead(BaseModel):
    """Stored credential metadata; raw token strings are never echoed."""

    model_config = ConfigDict(from_attributes=True)

    user_id: str
    scope: str | None = None
    token_type: str
    expiry_date: datetime | None = None
    refresh_token: str | None = Field(default=None, exclude=True)

    @field_validator("expiry_date")
    @classmethod
    def normalize_expiry(cls, value: datetime | None) -> datetime | None:
        return as_utc(value) if value is not None else None

    @computed_field  # type: ignore[prop-decorator]
    @property
    def has_refresh_token(self) -> bool:
        return bool(self.refresh_token)
