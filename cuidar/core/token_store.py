"""Per-user storage for Google OAuth credentials."""
from __future__ import annotations

from typing import Any

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from cuidar.core.errors import NotConnected
from cuidar.models import GoogleToken

_UPDATABLE_FIELDS = frozenset(
    {"access_token", "refresh_token", "scope", "token_type", "expiry_date"}
)


class TokenStore:
    """Read and write the single credential row each user may own."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, user_id: str) -> GoogleToken | None:
        result = await self.session.execute(
            select(GoogleToken).where(GoogleToken.user_id == user_id)
        )
        return result.scalars().first()

    async def require(self, user_id: str) -> GoogleToken:
        token = await self.get(user_id)
        if token is None:
            raise NotConnected()
        return token

    async def upsert(self, user_id: str, **fields: Any) -> GoogleToken:
        """Insert or update the user's credential with the given fields."""

        unknown = set(fields) - _UPDATABLE_FIELDS
        if unknown:
            raise TypeError(f"Unknown credential fields: {sorted(unknown)}")

        token = await self.get(user_id)
        if token is None:
            token = GoogleToken(user_id=user_id, **fields)
            self.session.add(token)
        else:
            for key, value in fields.items():
                setattr(token, key, value)
        await self.session.flush()
        return token

    async def delete(self, user_id: str) -> None:
        await self.session.execute(delete(GoogleToken).where(GoogleToken.user_id == user_id))
        await self.session.flush()
