from __future__ import annotations

import os
import sys
from collections.abc import AsyncIterator
from datetime import datetime, timedelta, timezone
from itertools import count
from pathlib import Path
from typing import Any

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import pytest  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402

from cuidar.core.config import get_settings  # noqa: E402

TEST_DB_PATH = ROOT / "test.db"
if TEST_DB_PATH.exists():
    TEST_DB_PATH.unlink()
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{TEST_DB_PATH}"
os.environ["GOOGLE_CLIENT_ID"] = "client-id"
os.environ["GOOGLE_CLIENT_SECRET"] = "client-secret"
os.environ["PUBLIC_BASE_URL"] = "https://cuidar.test"
os.environ["AUTH_BASE_URL"] = "https://auth.cuidar.test"
os.environ["CORS_ORIGINS"] = "*"
os.environ.pop("GOOGLE_SCOPES", None)
get_settings.cache_clear()

from cuidar.core.errors import ProviderRequestFailed  # noqa: E402
from cuidar.core.timeutils import as_utc  # noqa: E402

from identities import OTHER_TOKEN, OTHER_USER_ID, USER_ID, USER_TOKEN  # noqa: E402


class FakeIdentityResolver:
    """Resolve a fixed set of bearer tokens without calling the identity service."""

    def __init__(self, users: dict[str, str]):
        self.users = users

    async def resolve(self, bearer: str) -> str | None:
        return self.users.get(bearer)


class FakeGoogleCalendar:
    """In-memory stand-in for the primary calendar of one Google account."""

    def __init__(self) -> None:
        self.events: dict[str, dict[str, Any]] = {}
        self.calls: list[tuple[str, str | None]] = []
        self.access_tokens: list[str] = []
        self.fail_methods: set[str] = set()
        self.broken_ids: set[str] = set()
        self._ids = count(1)

    def __call__(self, access_token: str) -> "FakeGoogleCalendar":
        self.access_tokens.append(access_token)
        return self

    def add_event(self, event: dict[str, Any]) -> dict[str, Any]:
        event_id = event.get("id") or f"evt-{next(self._ids)}"
        stored = {**event, "id": event_id}
        self.events[event_id] = stored
        return stored

    def _maybe_fail(self, method: str) -> None:
        if method in self.fail_methods:
            raise ProviderRequestFailed(status_code=500, body=f"{method} exploded")

    async def list_events(self, time_min: datetime, time_max: datetime) -> list[dict[str, Any]]:
        self.calls.append(("list", None))
        self._maybe_fail("list")
        items = []
        for event in self.events.values():
            start = as_utc(datetime.fromisoformat(event["start"]["dateTime"]))
            if time_min <= start < time_max:
                items.append(event)
        return sorted(items, key=lambda item: item["start"]["dateTime"])

    async def get_event(self, event_id: str) -> dict[str, Any]:
        self.calls.append(("get", event_id))
        self._maybe_fail("get")
        if event_id in self.broken_ids or event_id not in self.events:
            raise ProviderRequestFailed(status_code=404, body="Not Found")
        return self.events[event_id]

    async def insert_event(self, body: dict[str, Any]) -> dict[str, Any]:
        self.calls.append(("insert", None))
        self._maybe_fail("insert")
        return self.add_event(body)

    async def patch_event(self, event_id: str, body: dict[str, Any]) -> dict[str, Any]:
        self.calls.append(("patch", event_id))
        self._maybe_fail("patch")
        if event_id not in self.events:
            raise ProviderRequestFailed(status_code=404, body="Not Found")
        self.events[event_id].update(body)
        return self.events[event_id]

    async def delete_event(self, event_id: str) -> None:
        self.calls.append(("delete", event_id))
        self._maybe_fail("delete")
        if self.events.pop(event_id, None) is None:
            raise ProviderRequestFailed(status_code=410, body="Gone")


@pytest.fixture()
async def database() -> AsyncIterator[None]:
    from cuidar.core.db import engine
    from cuidar.models import Base

    async with engine.begin() as connection:
        await connection.run_sync(Base.metadata.drop_all)
        await connection.run_sync(Base.metadata.create_all)
    yield


@pytest.fixture()
async def session(database):
    from cuidar.core.db import AsyncSessionLocal

    async with AsyncSessionLocal() as session:
        yield session


@pytest.fixture()
def google_calendar() -> FakeGoogleCalendar:
    return FakeGoogleCalendar()


@pytest.fixture()
async def client(database, google_calendar) -> AsyncIterator[AsyncClient]:
    from cuidar.core.google_calendar import get_calendar_client_factory
    from cuidar.core.identity import get_identity_resolver
    from cuidar.main import app

    resolver = FakeIdentityResolver({USER_TOKEN: USER_ID, OTHER_TOKEN: OTHER_USER_ID})
    app.dependency_overrides[get_identity_resolver] = lambda: resolver
    app.dependency_overrides[get_calendar_client_factory] = lambda: google_calendar

    transport = ASGITransport(app=app)
    async with AsyncClient(
        transport=transport,
        base_url="http://testserver",
        headers={"Authorization": f"Bearer {USER_TOKEN}"},
    ) as client:
        yield client
    app.dependency_overrides.clear()


@pytest.fixture()
async def connected_user(session):
    """Store a fresh Google credential for the default test user."""
    from cuidar.core.token_store import TokenStore

    token = await TokenStore(session).upsert(
        USER_ID,
        access_token="stored-access-token",
        refresh_token="stored-refresh-token",
        scope="https://www.googleapis.com/auth/calendar",
        token_type="Bearer",
        expiry_date=datetime.now(timezone.utc) + timedelta(hours=1),
    )
    await session.commit()
    return token


@pytest.fixture(scope="session")
def anyio_backend() -> str:
    return "asyncio"
