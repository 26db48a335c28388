"""Resolve bearer credentials against the host identity system."""
from __future__ import annotations

import logging

import httpx
from fastapi import Depends, Request

from cuidar.core.config import Settings, get_settings
from cuidar.core.errors import NotAuthenticated

logger = logging.getLogger(__name__)


class IdentityResolver:
    """Look up the user a bearer token belongs to.

    The host identity system exposes ``GET /auth/v1/user``, which answers with
    the user document for a valid access token and a 4xx for anything else.
    """

    def __init__(self, settings: Settings):
        self.settings = settings

    async def resolve(self, bearer: str) -> str | None:
        """Return the user id for ``bearer`` or ``None`` when it does not resolve."""

        if not bearer or not self.settings.auth_base_url:
            return None
        headers = {
            "Authorization": f"Bearer {bearer}",
            "apikey": self.settings.auth_api_key,
        }
        url = f"{self.settings.auth_base_url.rstrip('/')}/auth/v1/user"
        try:
            async with httpx.AsyncClient(timeout=10.0) as client:
                response = await client.get(url, headers=headers)
        except httpx.HTTPError as exc:  # pragma: no cover - network failure
            logger.error("Failed to reach the identity service", exc_info=exc)
            return None

        if response.status_code >= 400:
            logger.info("Bearer token rejected", extra={"status_code": response.status_code})
            return None
        user_id = response.json().get("id")
        return str(user_id) if user_id else None


def get_identity_resolver() -> IdentityResolver:
    return IdentityResolver(get_settings())


def bearer_from_request(request: Request) -> str:
    header = request.headers.get("Authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer":
        return ""
    return token.strip()


async def get_current_user(
    request: Request, resolver: IdentityResolver = Depends(get_identity_resolver)
) -> str:
    """Dependency returning the calling user's id, or failing with 401."""

    user_id = await resolver.resolve(bearer_from_request(request))
    if user_id is None:
        raise NotAuthenticated()
    return user_id
