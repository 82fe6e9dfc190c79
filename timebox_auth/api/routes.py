"""
FastAPI routes for the Google Calendar connection.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from http import HTTPStatus
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse, RedirectResponse, Response

from timebox_auth.clients.google_auth import OAuthProviderUnavailableError
from timebox_auth.core.config import AppSettings
from timebox_auth.dependencies import CurrentUserId, get_app_settings, get_google_token_service
from timebox_auth.schemas import (
    AccessTokenResponse,
    ConnectionStatusResponse,
    DisconnectResponse,
    ErrorResponse,
)
from timebox_auth.services import GoogleTokenService, OAuthCallbackFlow

router = APIRouter()
logger = logging.getLogger(__name__)

TokenServiceDependency = Annotated[GoogleTokenService, Depends(get_google_token_service)]


def _error(status: HTTPStatus, message: str, *, needs_reauth: bool | None = None) -> JSONResponse:
    body = ErrorResponse(error=message, needs_reauth=needs_reauth)
    return JSONResponse(
        status_code=status,
        content=body.model_dump(by_alias=True, exclude_none=True),
    )


@router.get("/health", status_code=HTTPStatus.OK)
async def healthcheck(
    settings: Annotated[AppSettings, Depends(get_app_settings)],
) -> dict:
    """Simple health endpoint for monitoring."""
    return {
        "status": "ok",
        "environment": settings.environment,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@router.get("/auth/google", response_model=None)
async def start_google_oauth_flow(
    token_service: TokenServiceDependency,
    user_id: Optional[str] = Query(
        default=None, alias="userId", description="User initiating the connection."
    ),
    return_url: Optional[str] = Query(
        default=None,
        alias="returnUrl",
        description="Frontend URL to land on afterwards; must be on an allowed origin.",
    ),
) -> Response:
    """Redirect the browser to Google's consent screen."""
    if not user_id:
        return _error(HTTPStatus.BAD_REQUEST, "userId is required")

    authorization_url = token_service.begin_connect(user_id, return_url)
    return RedirectResponse(url=authorization_url, status_code=HTTPStatus.FOUND)


@router.get("/auth/google/callback", response_model=None)
async def handle_google_oauth_callback(
    token_service: TokenServiceDependency,
    code: Optional[str] = Query(default=None),
    state: Optional[str] = Query(default=None),
    error: Optional[str] = Query(default=None),
) -> Response:
    """Complete the exchange and send the browser back to the frontend."""
    flow = OAuthCallbackFlow(token_service)
    redirect_url = await flow.callback_redirect(code=code, state=state, error=error)
    return RedirectResponse(url=redirect_url, status_code=HTTPStatus.FOUND)


@router.get("/auth/google/status", response_model=ConnectionStatusResponse)
async def google_connection_status(
    user_id: CurrentUserId,
    token_service: TokenServiceDependency,
):
    try:
        status = await token_service.connection_status(user_id)
    except Exception:
        logger.exception("Status check failed for user %s", user_id)
        return _error(HTTPStatus.INTERNAL_SERVER_ERROR, "Failed to check status")
    return ConnectionStatusResponse(connected=status.connected, email=status.email)


@router.get(
    "/auth/google/token",
    response_model=AccessTokenResponse,
    responses={404: {"model": ErrorResponse}},
)
async def google_access_token(
    user_id: CurrentUserId,
    token_service: TokenServiceDependency,
):
    """Return a valid access token, refreshing it first when needed."""
    try:
        access_token = await token_service.get_valid_access_token(user_id)
    except OAuthProviderUnavailableError as exc:
        logger.warning("Google unavailable while refreshing for user %s: %s", user_id, exc)
        return _error(HTTPStatus.SERVICE_UNAVAILABLE, "Google is temporarily unavailable")
    except Exception:
        logger.exception("Token fetch failed for user %s", user_id)
        return _error(HTTPStatus.INTERNAL_SERVER_ERROR, "Failed to get token")

    if access_token is None:
        return _error(HTTPStatus.NOT_FOUND, "No Google connection found", needs_reauth=True)
    return AccessTokenResponse(access_token=access_token)


@router.post("/auth/google/disconnect", response_model=DisconnectResponse)
async def disconnect_google(
    user_id: CurrentUserId,
    token_service: TokenServiceDependency,
):
    try:
        await token_service.disconnect(user_id)
    except Exception:
        logger.exception("Disconnect failed for user %s", user_id)
        return _error(HTTPStatus.INTERNAL_SERVER_ERROR, "Failed to disconnect")
    return DisconnectResponse(success=True)


__all__ = ["router"]
