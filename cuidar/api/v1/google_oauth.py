"""Google authorization endpoint: consent URL, OAuth callback, status and disconnect."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from fastapi import APIRouter, Body, Depends, Request
from fastapi.responses import HTMLResponse
from fastapi.templating import Jinja2Templates
from pydantic import TypeAdapter
from sqlalchemy.ext.asyncio import AsyncSession

from cuidar.api.v1.common import parse_action
from cuidar.core.db import get_session
from cuidar.core.errors import InvalidState, MissingState, OAuthDenied
from cuidar.core.identity import (
    IdentityResolver,
    bearer_from_request,
    get_current_user,
    get_identity_resolver,
)
from cuidar.core.oauth_google import GoogleOAuthClient, get_google_oauth_client
from cuidar.core.token_store import TokenStore
from cuidar.schemas import (
    AuthorizeAction,
    CredentialRead,
    DisconnectAction,
    OAuthAction,
    StatusAction,
)

logger = logging.getLogger(__name__)

templates = Jinja2Templates(
    directory=str(Path(__file__).resolve().parents[2] / "web" / "templates")
)

router = APIRouter(prefix="/google-oauth", tags=["integrations"])

_actions: TypeAdapter[OAuthAction] = TypeAdapter(OAuthAction)


@router.get("", response_model=None)
async def google_oauth_get(
    request: Request,
    code: str | None = None,
    state: str | None = None,
    error: str | None = None,
    action: str = "status",
    session: AsyncSession = Depends(get_session),
    resolver: IdentityResolver = Depends(get_identity_resolver),
    oauth_client: GoogleOAuthClient = Depends(get_google_oauth_client),
) -> HTMLResponse | dict[str, Any]:
    """Serve the OAuth redirect target, or run an action given in the query string."""

    if code:
        return await _handle_callback(request, code, state, session, resolver, oauth_client)
    if error:
        raise OAuthDenied(f"Google authorization failed: {error}")

    user_id = await get_current_user(request, resolver)
    return await _run_action(
        parse_action(_actions, {"action": action}), request, user_id, session, oauth_client
    )


@router.post("")
async def google_oauth_post(
    request: Request,
    body: Any = Body(default=None),
    user_id: str = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
    oauth_client: GoogleOAuthClient = Depends(get_google_oauth_client),
) -> dict[str, Any]:
    """Run ``authorize``, ``disconnect`` or ``status`` (the default)."""

    payload = body if body is not None else {}
    if isinstance(payload, dict) and not payload.get("action"):
        payload = {**payload, "action": "status"}
    action = parse_action(_actions, payload)
    return await _run_action(action, request, user_id, session, oauth_client)


async def _run_action(
    action: OAuthAction,
    request: Request,
    user_id: str,
    session: AsyncSession,
    oauth_client: GoogleOAuthClient,
) -> dict[str, Any]:
    store = TokenStore(session)
    if isinstance(action, AuthorizeAction):
        # The caller's own bearer token travels as ``state`` so the public
        # callback can tell whose credential it is receiving.
        auth_url = oauth_client.build_authorize_url(state=bearer_from_request(request))
        return {"authUrl": auth_url}
    if isinstance(action, DisconnectAction):
        await store.delete(user_id)
        await session.commit()
        logger.info("Disconnected Google account", extra={"user_id": user_id})
        return {"ok": True}
    assert isinstance(action, StatusAction)
    token = await store.get(user_id)
    return {
        "connected": token is not None,
        "token": CredentialRead.model_validate(token).model_dump(mode="json") if token else None,
    }


async def _handle_callback(
    request: Request,
    code: str,
    state: str | None,
    session: AsyncSession,
    resolver: IdentityResolver,
    oauth_client: GoogleOAuthClient,
) -> HTMLResponse:
    if not state:
        raise MissingState()
    user_id = await resolver.resolve(state)
    if user_id is None:
        raise InvalidState()

    await oauth_client.exchange_code(TokenStore(session), user_id, code)
    await session.commit()
    return templates.TemplateResponse(request, "oauth_complete.html", {"close_delay_ms": 1000})
