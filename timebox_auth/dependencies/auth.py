"""Bearer session authentication for the protected Google endpoints."""

from __future__ import annotations

import logging
from http import HTTPStatus
from typing import Annotated, Optional

from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from timebox_auth.clients import SupabaseAuthClient
from timebox_auth.clients.supabase_auth import SessionVerificationError
from timebox_auth.dependencies.clients import get_supabase_auth_client

logger = logging.getLogger(__name__)

_bearer = HTTPBearer(auto_error=False)


async def get_current_user_id(
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(_bearer)],
    auth_client: Annotated[SupabaseAuthClient, Depends(get_supabase_auth_client)],
) -> str:
    """Resolve the caller's Supabase user id or fail with 401."""
    if credentials is None:
        raise HTTPException(
            status_code=HTTPStatus.UNAUTHORIZED,
            detail="Missing or invalid authorization header",
        )
    try:
        return await auth_client.get_user_id(credentials.credentials)
    except SessionVerificationError as exc:
        logger.info("Rejected session token: %s", exc)
        raise HTTPException(
            status_code=HTTPStatus.UNAUTHORIZED, detail="Invalid token"
        ) from exc


CurrentUserId = Annotated[str, Depends(get_current_user_id)]

__all__ = ["CurrentUserId", "get_current_user_id"]
