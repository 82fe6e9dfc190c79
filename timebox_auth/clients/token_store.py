"""Storage contract for per-user Google OAuth tokens."""

from __future__ import annotations

from datetime import datetime
from typing import Optional, Protocol

from timebox_auth.models.oauth import OAuthTokenRecord


class TokenStoreError(Exception):
    """Raised when the token table could not be read or written."""


class TokenStore(Protocol):
    """One row per user, keyed by ``user_id``.

    ``upsert`` leaves an already stored refresh token in place when the
    record carries ``encrypted_refresh_token=None``. ``update_access_token`` only
    replaces the refresh token when a new one is given. ``delete`` of a
    missing row is a no-op.
    """

    async def upsert(self, record: OAuthTokenRecord) -> None: ...

    async def get(self, user_id: str) -> Optional[OAuthTokenRecord]: ...

    async def update_access_token(
        self,
        user_id: str,
        access_token: str,
        token_expiry: Optional[datetime],
        encrypted_refresh_token: Optional[str] = None,
    ) -> None: ...

    async def delete(self, user_id: str) -> None: ...


__all__ = ["TokenStore", "TokenStoreError"]
