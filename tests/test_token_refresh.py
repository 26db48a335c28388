from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from cuidar.core.config import get_settings
from cuidar.core.errors import TokenRefreshFailed
from cuidar.core.oauth_google import GoogleOAuthClient, TokenEndpointError
from cuidar.core.timeutils import as_utc
from cuidar.core.token_store import TokenStore

from identities import USER_ID

NOW = datetime(2025, 1, 15, 12, 0, tzinfo=timezone.utc)


async def _store_token(session, *, expiry, refresh_token="refresh-token"):
    token = await TokenStore(session).upsert(
        USER_ID,
        access_token="old-access",
        refresh_token=refresh_token,
        token_type="Bearer",
        expiry_date=expiry,
    )
    await session.commit()
    return token


def _forbid_network(monkeypatch) -> None:
    async def fail_request_token(self, payload):  # type: ignore[override]
        raise AssertionError("token endpoint must not be called")

    monkeypatch.setattr(GoogleOAuthClient, "_request_token", fail_request_token)


def _fake_refresh(monkeypatch, calls: list[dict[str, str]]) -> None:
    async def fake_request_token(self, payload):  # type: ignore[override]
        calls.append(payload)
        return {"access_token": "new-access", "expires_in": 3599, "token_type": "Bearer"}

    monkeypatch.setattr(GoogleOAuthClient, "_request_token", fake_request_token)


@pytest.mark.anyio("asyncio")
async def test_fresh_token_is_reused_without_network(session, monkeypatch):
    _forbid_network(monkeypatch)
    token = await _store_token(session, expiry=NOW + timedelta(minutes=30))
    oauth = GoogleOAuthClient(get_settings())
    store = TokenStore(session)

    first = await oauth.ensure_access_token(store, token, now=NOW)
    second = await oauth.ensure_access_token(store, token, now=NOW)

    assert first == second == "old-access"


@pytest.mark.anyio("asyncio")
async def test_token_without_refresh_token_is_returned_as_is(session, monkeypatch):
    _forbid_network(monkeypatch)
    token = await _store_token(session, expiry=NOW - timedelta(hours=2), refresh_token=None)
    oauth = GoogleOAuthClient(get_settings())

    assert await oauth.ensure_access_token(TokenStore(session), token, now=NOW) == "old-access"


@pytest.mark.anyio("asyncio")
async def test_token_expiring_in_61_seconds_is_not_refreshed(session, monkeypatch):
    _forbid_network(monkeypatch)
    token = await _store_token(session, expiry=NOW + timedelta(seconds=61))
    oauth = GoogleOAuthClient(get_settings())

    assert await oauth.ensure_access_token(TokenStore(session), token, now=NOW) == "old-access"


@pytest.mark.anyio("asyncio")
async def test_token_expiring_in_59_seconds_is_refreshed_and_persisted(session, monkeypatch):
    calls: list[dict[str, str]] = []
    _fake_refresh(monkeypatch, calls)
    token = await _store_token(session, expiry=NOW + timedelta(seconds=59))
    oauth = GoogleOAuthClient(get_settings())
    store = TokenStore(session)

    access_token = await oauth.ensure_access_token(store, token, now=NOW)
    await session.commit()

    assert access_token == "new-access"
    assert calls == [
        {
            "refresh_token": "refresh-token",
            "client_id": "client-id",
            "client_secret": "client-secret",
            "grant_type": "refresh_token",
        }
    ]
    stored = await store.get(USER_ID)
    assert stored is not None
    assert stored.access_token == "new-access"
    assert stored.refresh_token == "refresh-token"
    assert as_utc(stored.expiry_date) == NOW + timedelta(seconds=3599)


@pytest.mark.anyio("asyncio")
async def test_token_without_expiry_is_refreshed(session, monkeypatch):
    calls: list[dict[str, str]] = []
    _fake_refresh(monkeypatch, calls)
    token = await _store_token(session, expiry=None)
    oauth = GoogleOAuthClient(get_settings())

    assert await oauth.ensure_access_token(TokenStore(session), token, now=NOW) == "new-access"
    assert len(calls) == 1


@pytest.mark.anyio("asyncio")
async def test_rejected_refresh_raises_without_retry(session, monkeypatch):
    calls: list[dict[str, str]] = []

    async def rejecting_request_token(self, payload):  # type: ignore[override]
        calls.append(payload)
        raise TokenEndpointError(400, '{"error": "invalid_grant"}')

    monkeypatch.setattr(GoogleOAuthClient, "_request_token", rejecting_request_token)
    token = await _store_token(session, expiry=NOW - timedelta(minutes=5))
    oauth = GoogleOAuthClient(get_settings())

    with pytest.raises(TokenRefreshFailed):
        await oauth.ensure_access_token(TokenStore(session), token, now=NOW)
    assert len(calls) == 1


@pytest.mark.anyio("asyncio")
async def test_token_store_keeps_one_row_per_user(session):
    store = TokenStore(session)
    await store.upsert(USER_ID, access_token="a", token_type="Bearer")
    await store.upsert(USER_ID, access_token="b", token_type="Bearer")
    await session.commit()

    stored = await store.get(USER_ID)
    assert stored is not None and stored.access_token == "b"

    await store.delete(USER_ID)
    await session.commit()
    assert await store.get(USER_ID) is None
