"""
Serverless entrypoint exposing the Google connection endpoints.

A single function receives every request (API Gateway HTTP API or Lambda
function URL, payload format 2.0) and dispatches on the path suffix. It
shares the token service and callback flow with the FastAPI app.
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from functools import lru_cache
from http import HTTPStatus
from typing import Any, Dict, Optional

from timebox_auth.clients import SupabaseAuthClient
from timebox_auth.clients.google_auth import OAuthProviderUnavailableError
from timebox_auth.clients.supabase_auth import SessionVerificationError
from timebox_auth.core.config import get_settings
from timebox_auth.core.logging import configure_logging
from timebox_auth.dependencies.clients import get_google_token_service, get_supabase_auth_client
from timebox_auth.services import GoogleTokenService, OAuthCallbackFlow

logger = logging.getLogger(__name__)

_ACTIONS = (
    ("/callback", "callback"),
    ("/status", "status"),
    ("/token", "token"),
    ("/disconnect", "disconnect"),
    ("/google", "login"),
)


@dataclass(frozen=True)
class Runtime:
    token_service: GoogleTokenService
    auth_client: SupabaseAuthClient
    cors_origins: frozenset[str]


@lru_cache()
def _runtime() -> Runtime:
    """Initialize shared singletons once per warm container."""
    settings = get_settings()
    configure_logging(settings.log_level)
    return Runtime(
        token_service=get_google_token_service(),
        auth_client=get_supabase_auth_client(),
        cors_origins=frozenset({*settings.cors_allowed_origins, settings.frontend_base_url}),
    )


def _resolve_action(path: str) -> Optional[str]:
    normalized = path.rstrip("/")
    for suffix, action in _ACTIONS:
        if normalized.endswith(suffix):
            return action
    return None


def _cors_headers(event: Dict[str, Any], runtime: Runtime) -> Dict[str, str]:
    headers = {
        "Access-Control-Allow-Headers": "authorization, x-client-info, apikey, content-type",
        "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
        "Vary": "Origin",
    }
    origin = _header(event, "origin")
    if origin and origin.rstrip("/") in runtime.cors_origins:
        headers["Access-Control-Allow-Origin"] = origin
        headers["Access-Control-Allow-Credentials"] = "true"
    return headers


def _header(event: Dict[str, Any], name: str) -> Optional[str]:
    for key, value in (event.get("headers") or {}).items():
        if key.lower() == name:
            return value
    return None


def _json(status: HTTPStatus, payload: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "statusCode": int(status),
        "headers": {"Content-Type": "application/json"},
        "body": json.dumps(payload),
    }


def _redirect(location: str) -> Dict[str, Any]:
    return {"statusCode": int(HTTPStatus.FOUND), "headers": {"Location": location}, "body": ""}


async def _authenticate(event: Dict[str, Any], runtime: Runtime) -> str:
    scheme, _, token = (_header(event, "authorization") or "").strip().partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise SessionVerificationError("Missing or invalid authorization header")
    return await runtime.auth_client.get_user_id(token.strip())


async def _dispatch(action: str, event: Dict[str, Any], runtime: Runtime) -> Dict[str, Any]:
    query = event.get("queryStringParameters") or {}
    tokens = runtime.token_service

    if action == "login":
        user_id = query.get("userId")
        if not user_id:
            return _json(HTTPStatus.BAD_REQUEST, {"error": "userId is required"})
        return _redirect(tokens.begin_connect(user_id, query.get("returnUrl")))

    if action == "callback":
        flow = OAuthCallbackFlow(tokens)
        return _redirect(
            await flow.callback_redirect(
                code=query.get("code"), state=query.get("state"), error=query.get("error")
            )
        )

    try:
        user_id = await _authenticate(event, runtime)
    except SessionVerificationError as exc:
        logger.info("Rejected session token: %s", exc)
        return _json(HTTPStatus.UNAUTHORIZED, {"error": "Invalid token"})

    if action == "status":
        status = await tokens.connection_status(user_id)
        return _json(HTTPStatus.OK, {"connected": status.connected, "email": status.email})

    if action == "token":
        try:
            access_token = await tokens.get_valid_access_token(user_id)
        except OAuthProviderUnavailableError as exc:
            logger.warning("Google unavailable while refreshing for user %s: %s", user_id, exc)
            return _json(HTTPStatus.SERVICE_UNAVAILABLE, {"error": "Google is temporarily unavailable"})
        if access_token is None:
            return _json(
                HTTPStatus.NOT_FOUND,
                {"error": "No Google connection found", "needsReauth": True},
            )
        return _json(HTTPStatus.OK, {"accessToken": access_token})

    await tokens.disconnect(user_id)
    return _json(HTTPStatus.OK, {"success": True})


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """Single-dispatch handler for the five Google connection routes."""
    runtime = _runtime()
    method = ((event.get("requestContext") or {}).get("http") or {}).get("method", "GET")
    cors = _cors_headers(event, runtime)

    if method == "OPTIONS":
        return {"statusCode": 200, "headers": cors, "body": "ok"}

    path = event.get("rawPath") or event.get("path") or ""
    action = _resolve_action(path)
    expected_method = "POST" if action == "disconnect" else "GET"
    if action is None or method != expected_method:
        response = {"statusCode": 404, "headers": {}, "body": "Not Found"}
    else:
        logger.info("Handling action %s", action)
        try:
            response = asyncio.run(_dispatch(action, event, runtime))
        except Exception:
            logger.exception("Unhandled error while handling %s", action)
            response = _json(HTTPStatus.INTERNAL_SERVER_ERROR, {"error": "Internal server error"})

    response["headers"] = {**cors, **response["headers"]}
    return response


__all__ = ["lambda_handler"]
