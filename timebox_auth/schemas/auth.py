"""Response bodies for the Google connection endpoints."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class ConnectionStatusResponse(BaseModel):
    connected: bool
    email: Optional[str] = None


class AccessTokenResponse(BaseModel):
    """Plaintext access token for direct use against the Calendar API."""

    model_config = ConfigDict(populate_by_name=True)

    access_token: str = Field(..., alias="accessToken")


class DisconnectResponse(BaseModel):
    success: bool = True


class ErrorResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    error: str
    needs_reauth: Optional[bool] = Field(None, alias="needsReauth")


__all__ = [
    "AccessTokenResponse",
    "ConnectionStatusResponse",
    "DisconnectResponse",
    "ErrorResponse",
]
