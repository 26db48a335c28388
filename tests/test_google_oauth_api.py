from __future__ import annotations

from datetime import datetime, timezone
from urllib.parse import parse_qs, urlparse

import pytest
from sqlalchemy import select

from cuidar.core.db import AsyncSessionLocal
from cuidar.core.oauth_google import GoogleOAuthClient, TokenEndpointError
from cuidar.core.timeutils import as_utc
from cuidar.models import GoogleToken

from identities import OTHER_TOKEN, USER_ID, USER_TOKEN


def _fake_code_exchange(monkeypatch, seen: list[dict[str, str]]) -> None:
    async def fake_request_token(self, payload):  # type: ignore[override]
        seen.append(payload)
        return {
            "access_token": "google-access",
            "refresh_token": "google-refresh",
            "expires_in": 3600,
            "scope": "openid https://www.googleapis.com/auth/calendar",
            "token_type": "Bearer",
        }

    monkeypatch.setattr(GoogleOAuthClient, "_request_token", fake_request_token)


@pytest.mark.anyio("asyncio")
async def test_authorize_embeds_caller_bearer_as_state(client):
    response = await client.post("/api/v1/google-oauth", json={"action": "authorize"})

    assert response.status_code == 200
    url = urlparse(response.json()["authUrl"])
    params = {key: values[0] for key, values in parse_qs(url.query).items()}
    assert url.netloc == "accounts.google.com"
    assert params["state"] == USER_TOKEN
    assert params["client_id"] == "client-id"
    assert params["redirect_uri"] == "https://cuidar.test/api/v1/google-oauth"
    assert params["response_type"] == "code"
    assert params["access_type"] == "offline"
    assert params["prompt"] == "consent"
    assert "https://www.googleapis.com/auth/calendar" in params["scope"].split()


@pytest.mark.anyio("asyncio")
async def test_authorize_then_callback_stores_credential_for_same_user(client, monkeypatch):
    seen: list[dict[str, str]] = []
    _fake_code_exchange(monkeypatch, seen)

    authorize = await client.post("/api/v1/google-oauth", json={"action": "authorize"})
    state = parse_qs(urlparse(authorize.json()["authUrl"]).query)["state"][0]

    callback = await client.get(
        "/api/v1/google-oauth",
        params={"code": "ABC", "state": state},
        headers={"Authorization": ""},
    )

    assert callback.status_code == 200
    assert callback.headers["content-type"].startswith("text/html")
    assert "postMessage" in callback.text
    assert "window.close()" in callback.text
    assert seen[0]["code"] == "ABC"
    assert seen[0]["grant_type"] == "authorization_code"
    assert seen[0]["redirect_uri"] == "https://cuidar.test/api/v1/google-oauth"

    async with AsyncSessionLocal() as session:
        result = await session.execute(select(GoogleToken))
        tokens = result.scalars().all()
    assert len(tokens) == 1
    assert tokens[0].user_id == USER_ID
    assert tokens[0].access_token == "google-access"
    assert tokens[0].refresh_token == "google-refresh"
    assert as_utc(tokens[0].expiry_date) > datetime.now(timezone.utc)


@pytest.mark.anyio("asyncio")
async def test_reconnect_keeps_stored_scope_and_refresh_token(client, session, monkeypatch):
    session.add(
        GoogleToken(
            user_id=USER_ID,
            access_token="old-access",
            refresh_token="old-refresh",
            scope="openid https://www.googleapis.com/auth/calendar",
            token_type="Bearer",
            expiry_date=datetime.now(timezone.utc),
        )
    )
    await session.commit()

    async def sparse_request_token(self, payload):  # type: ignore[override]
        return {"access_token": "new-access", "expires_in": 3600}

    monkeypatch.setattr(GoogleOAuthClient, "_request_token", sparse_request_token)

    response = await client.get(
        "/api/v1/google-oauth",
        params={"code": "XYZ", "state": USER_TOKEN},
        headers={"Authorization": ""},
    )

    assert response.status_code == 200
    async with AsyncSessionLocal() as fresh:
        token = (await fresh.execute(select(GoogleToken))).scalars().one()
    assert token.access_token == "new-access"
    assert token.refresh_token == "old-refresh"
    assert token.scope == "openid https://www.googleapis.com/auth/calendar"


@pytest.mark.anyio("asyncio")
async def test_callback_without_state_is_rejected(client):
    response = await client.get("/api/v1/google-oauth", params={"code": "ABC"})

    assert response.status_code == 400
    assert response.json() == {"error": "Missing state", "code": "MISSING_STATE"}


@pytest.mark.anyio("asyncio")
async def test_callback_with_unknown_state_is_rejected(client, monkeypatch):
    seen: list[dict[str, str]] = []
    _fake_code_exchange(monkeypatch, seen)

    response = await client.get(
        "/api/v1/google-oauth", params={"code": "ABC", "state": "not-a-session"}
    )

    assert response.status_code == 401
    assert response.json()["code"] == "INVALID_STATE"
    assert seen == []


@pytest.mark.anyio("asyncio")
async def test_callback_surfaces_failed_code_exchange(client, monkeypatch):
    async def failing_request_token(self, payload):  # type: ignore[override]
        raise TokenEndpointError(400, "invalid_grant")

    monkeypatch.setattr(GoogleOAuthClient, "_request_token", failing_request_token)

    response = await client.get(
        "/api/v1/google-oauth", params={"code": "ABC", "state": USER_TOKEN}
    )

    assert response.status_code == 502
    assert "Token exchange failed: 400 invalid_grant" in response.json()["error"]


@pytest.mark.anyio("asyncio")
async def test_denied_consent_is_reported(client):
    response = await client.get("/api/v1/google-oauth", params={"error": "access_denied"})

    assert response.status_code == 400
    assert response.json()["code"] == "GOOGLE_OAUTH_ERROR"


@pytest.mark.anyio("asyncio")
async def test_status_and_disconnect(client, connected_user):
    status_resp = await client.post("/api/v1/google-oauth", json={"action": "status"})
    assert status_resp.status_code == 200
    payload = status_resp.json()
    assert payload["connected"] is True
    assert payload["token"]["user_id"] == USER_ID
    assert payload["token"]["has_refresh_token"] is True
    assert "access_token" not in payload["token"]
    assert "refresh_token" not in payload["token"]

    default_resp = await client.get("/api/v1/google-oauth")
    assert default_resp.json()["connected"] is True

    disconnect = await client.post("/api/v1/google-oauth", json={"action": "disconnect"})
    assert disconnect.json() == {"ok": True}

    after = await client.post("/api/v1/google-oauth", json={})
    assert after.json() == {"connected": False, "token": None}


@pytest.mark.anyio("asyncio")
async def test_status_is_scoped_to_the_caller(client, connected_user):
    response = await client.post(
        "/api/v1/google-oauth",
        json={"action": "status"},
        headers={"Authorization": f"Bearer {OTHER_TOKEN}"},
    )

    assert response.json()["connected"] is False


@pytest.mark.anyio("asyncio")
async def test_actions_require_authentication(client):
    response = await client.post(
        "/api/v1/google-oauth", json={"action": "status"}, headers={"Authorization": ""}
    )

    assert response.status_code == 401
    assert response.json() == {"error": "Not authenticated", "code": "NOT_AUTHENTICATED"}


@pytest.mark.anyio("asyncio")
async def test_unknown_action_is_rejected(client):
    response = await client.post("/api/v1/google-oauth", json={"action": "explode"})

    assert response.status_code == 400
    assert response.json()["error"] == "Unknown action"
