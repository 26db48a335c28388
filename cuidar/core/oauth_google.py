"""Google OAuth helper utilities: consent URL, code exchange and token refresh."""
from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Any
from urllib.parse import urlencode

import httpx

from cuidar.core.config import Settings, get_settings
from cuidar.core.errors import GoogleNotConfigured, ProviderRequestFailed, TokenRefreshFailed
from cuidar.core.timeutils import as_utc, utcnow
from cuidar.core.token_store import TokenStore
from cuidar.models import GoogleToken

AUTH_BASE_URL = "https://accounts.google.com/o/oauth2/v2/auth"
TOKEN_URL = "https://oauth2.googleapis.com/token"
TOKEN_EXPIRY_GRACE = timedelta(seconds=60)
DEFAULT_EXPIRES_IN = 3600

logger = logging.getLogger(__name__)


class TokenEndpointError(Exception):
    """Raised when the token endpoint answers with a non-2xx status."""

    def __init__(self, status_code: int, body: str):
        super().__init__(f"{status_code} {body}")
        self.status_code = status_code
        self.body = body


class GoogleOAuthClient:
    """Handle OAuth URL generation and the token lifecycle for one user at a time."""

    def __init__(self, settings: Settings):
        self.settings = settings

    def _require_configured(self) -> None:
        if not (
            self.settings.google_client_id
            and self.settings.google_client_secret
            and self.settings.public_base_url
            and self.settings.google_scopes
        ):
            raise GoogleNotConfigured()

    def build_authorize_url(self, *, state: str) -> str:
        """Return the Google consent URL carrying ``state`` verbatim."""

        self._require_configured()
        params: dict[str, Any] = {
            "client_id": self.settings.google_client_id,
            "redirect_uri": self.settings.google_redirect_uri,
            "response_type": "code",
            "access_type": "offline",
            "prompt": "consent",
            "scope": " ".join(self.settings.google_scopes),
            "state": state,
        }
        return f"{AUTH_BASE_URL}?{urlencode(params)}"

    async def exchange_code(self, store: TokenStore, user_id: str, code: str) -> GoogleToken:
        """Exchange an authorization code for tokens and persist them for ``user_id``."""

        self._require_configured()
        payload = {
            "code": code,
            "client_id": self.settings.google_client_id,
            "client_secret": self.settings.google_client_secret,
            "redirect_uri": self.settings.google_redirect_uri,
            "grant_type": "authorization_code",
        }
        try:
            token_data = await self._request_token(payload)
        except TokenEndpointError as exc:
            raise ProviderRequestFailed(
                f"Token exchange failed: {exc}", status_code=exc.status_code, body=exc.body
            ) from exc

        access_token = token_data.get("access_token")
        if not access_token:
            raise ProviderRequestFailed("Google token response missing access_token")

        fields: dict[str, Any] = {
            "access_token": access_token,
            "token_type": token_data.get("token_type") or "Bearer",
            "expiry_date": _expiry_from(token_data, utcnow()),
        }
        if token_data.get("scope"):
            fields["scope"] = token_data["scope"]
        if token_data.get("refresh_token"):
            fields["refresh_token"] = token_data["refresh_token"]
        token = await store.upsert(user_id, **fields)
        logger.info("Stored Google credential", extra={"user_id": user_id})
        return token

    async def ensure_access_token(
        self,
        store: TokenStore,
        token: GoogleToken,
        *,
        now: datetime | None = None,
    ) -> str:
        """Return an access token usable for at least the next 60 seconds.

        Without a refresh token the stored access token is returned as-is.
        A stale token is renewed through the refresh-token grant and the new
        access token and expiry are written back; the refresh token itself is
        kept. A rejected refresh is surfaced, never retried.
        """

        if not token.refresh_token:
            return token.access_token

        now = now or utcnow()
        if token.expiry_date is not None and now < as_utc(token.expiry_date) - TOKEN_EXPIRY_GRACE:
            return token.access_token

        self._require_configured()
        refresh_payload = {
            "refresh_token": token.refresh_token,
            "client_id": self.settings.google_client_id,
            "client_secret": self.settings.google_client_secret,
            "grant_type": "refresh_token",
        }
        try:
            token_data = await self._request_token(refresh_payload)
        except TokenEndpointError as exc:
            raise TokenRefreshFailed() from exc

        access_token = token_data.get("access_token")
        if not access_token:
            raise TokenRefreshFailed("Google refresh response missing access_token")

        await store.upsert(
            token.user_id,
            access_token=access_token,
            expiry_date=_expiry_from(token_data, now),
        )
        logger.info("Refreshed Google access token", extra={"user_id": token.user_id})
        return access_token

    async def _request_token(self, payload: dict[str, str]) -> dict[str, Any]:
        try:
            async with httpx.AsyncClient(timeout=10.0) as client:
                response = await client.post(TOKEN_URL, data=payload)
        except httpx.HTTPError as exc:  # pragma: no cover - network failure
            logger.error("Failed to communicate with Google OAuth token endpoint", exc_info=exc)
            raise ProviderRequestFailed("Unable to reach Google OAuth endpoint") from exc

        if response.status_code >= 400:
            logger.error(
                "Google OAuth token request failed",
                extra={
                    "grant_type": payload.get("grant_type"),
                    "status_code": response.status_code,
                    "body": response.text,
                },
            )
            raise TokenEndpointError(response.status_code, response.text)
        return response.json()


def _expiry_from(token_data: dict[str, Any], now: datetime) -> datetime:
    expires_in = int(token_data.get("expires_in") or DEFAULT_EXPIRES_IN)
    return now + timedelta(seconds=expires_in)


def get_google_oauth_client() -> GoogleOAuthClient:
    return GoogleOAuthClient(get_settings())
