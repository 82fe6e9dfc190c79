"""
Domain models for OAuth token persistence.
"""

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class OAuthTokenRecord(BaseModel):
    """The single stored Google connection for a user."""

    user_id: str = Field(..., description="Owning account; unique per record.")
    encrypted_refresh_token: Optional[str] = Field(
        None,
        description="Cipher envelope of the refresh token. Empty means it cannot be refreshed.",
    )
    access_token: str
    token_expiry: Optional[datetime] = None
    account_email: Optional[str] = Field(None, description="Connected Google account, for display.")
    updated_at: datetime = Field(default_factory=_utcnow)

    @property
    def has_refresh_token(self) -> bool:
        return bool(self.encrypted_refresh_token)


__all__ = ["OAuthTokenRecord"]
