"""Shared SQLAlchemy base class and column helpers for ORM models."""
from __future__ import annotations

from uuid import uuid4

from sqlalchemy import MetaData
from sqlalchemy.orm import DeclarativeBase

NAMING_CONVENTION = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}


def new_uuid() -> str:
    return str(uuid4())


class Base(DeclarativeBase):
    """Declarative base class for ORM models."""

    metadata = MetaData(naming_convention=NAMING_CONVENTION)
