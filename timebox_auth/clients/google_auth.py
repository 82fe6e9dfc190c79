"""
Google OAuth utilities.

These helpers build the consent URL, exchange authorization codes and renew
access tokens. Tokens are always passed in explicitly; the client keeps no
per-user credentials between calls.
"""

from __future__ import annotations

import base64
import binascii
import json
from dataclasses import dataclass
from typing import Any, Dict, Optional
from urllib.parse import urlencode

import httpx

from timebox_auth.core.config import GoogleSettings, OAuthSettings


class OAuthTokenExchangeError(Exception):
    """Raised when the token endpoint returns an error."""


class OAuthTokenRevokedError(OAuthTokenExchangeError):
    """Raised when Google rejects a refresh token as revoked or expired."""


class OAuthProviderUnavailableError(Exception):
    """Raised when Google could not be reached or timed out."""


class InvalidOAuthStateError(ValueError):
    """Raised when the state parameter round-tripped through Google is unusable."""


class OAuthStateEncoder:
    """Encode and decode the OAuth state as base64 JSON."""

    def encode(self, payload: Dict[str, Any]) -> str:
        serialized = json.dumps(payload, separators=(",", ":"))
        return base64.b64encode(serialized.encode("utf-8")).decode("ascii")

    def decode(self, token: str) -> Dict[str, Any]:
        try:
            padded = token + "=" * (-len(token) % 4)
            raw = base64.b64decode(padded.encode("ascii"), altchars=b"-_")
            payload = json.loads(raw)
        except (binascii.Error, UnicodeError, ValueError) as exc:
            raise InvalidOAuthStateError("OAuth state is not base64 encoded JSON.") from exc
        if not isinstance(payload, dict):
            raise InvalidOAuthStateError("OAuth state must decode to an object.")
        return payload


@dataclass(frozen=True)
class TokenGrant:
    """Tokens returned by Google's token endpoint."""

    access_token: str
    expires_in: int
    refresh_token: Optional[str] = None


class GoogleOAuthClient:
    """Build Google authorization URLs and talk to the token endpoint."""

    AUTH_BASE_URL = "https://accounts.google.com/o/oauth2/v2/auth"
    TOKEN_URL = "https://oauth2.googleapis.com/token"
    USERINFO_URL = "https://www.googleapis.com/oauth2/v2/userinfo"

    def __init__(
        self,
        google_settings: GoogleSettings,
        oauth_settings: OAuthSettings,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._google = google_settings
        self._oauth = oauth_settings
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self._oauth.http_timeout_seconds, transport=self._transport
        )

    def build_authorization_url(self, state: str) -> str:
        """Construct the Google OAuth consent URL."""
        params = {
            "client_id": self._google.client_id,
            "redirect_uri": str(self._google.redirect_uri),
            "response_type": "code",
            "scope": " ".join(self._oauth.scopes),
            # offline + consent makes Google issue a refresh token every time
            "access_type": "offline",
            "include_granted_scopes": "true",
            "prompt": "consent",
            "state": state,
        }
        return f"{self.AUTH_BASE_URL}?{urlencode(params)}"

    async def _post_token(self, payload: Dict[str, str]) -> httpx.Response:
        try:
            async with self._client() as client:
                return await client.post(self.TOKEN_URL, data=payload)
        except httpx.TransportError as exc:
            raise OAuthProviderUnavailableError(
                f"Google token endpoint unreachable: {type(exc).__name__}"
            ) from exc

    async def exchange_authorization_code(self, code: str) -> TokenGrant:
        """Exchange an authorization code for tokens.

        The refresh token is legitimately absent when Google decides not to
        re-issue one, so only the access token and expiry are required.
        """
        response = await self._post_token(
            {
                "code": code,
                "client_id": self._google.client_id,
                "client_secret": self._google.client_secret,
                "redirect_uri": str(self._google.redirect_uri),
                "grant_type": "authorization_code",
            }
        )
        if response.status_code >= 500:
            raise OAuthProviderUnavailableError(
                f"Google token endpoint returned {response.status_code}"
            )
        if response.status_code != httpx.codes.OK:
            raise OAuthTokenExchangeError(_error_code(response))

        token_payload = response.json()
        access_token = token_payload.get("access_token")
        expires_in = token_payload.get("expires_in")
        if not access_token or not expires_in:
            raise OAuthTokenExchangeError("Incomplete token payload returned from Google.")

        return TokenGrant(
            access_token=access_token,
            expires_in=int(expires_in),
            refresh_token=token_payload.get("refresh_token") or None,
        )

    async def refresh_token(self, refresh_token: str) -> TokenGrant:
        """Refresh the access token using a stored refresh token."""
        response = await self._post_token(
            {
                "client_id": self._google.client_id,
                "client_secret": self._google.client_secret,
                "refresh_token": refresh_token,
                "grant_type": "refresh_token",
            }
        )
        if response.status_code >= 500:
            raise OAuthProviderUnavailableError(
                f"Google token endpoint returned {response.status_code}"
            )
        if response.status_code != httpx.codes.OK:
            error = _error_code(response)
            if error == "invalid_grant":
                raise OAuthTokenRevokedError(error)
            raise OAuthTokenExchangeError(error)

        token_payload = response.json()
        access_token = token_payload.get("access_token")
        expires_in = token_payload.get("expires_in")
        if not access_token or not expires_in:
            raise OAuthTokenExchangeError("Incomplete refresh payload returned from Google.")

        return TokenGrant(
            access_token=access_token,
            expires_in=int(expires_in),
            refresh_token=token_payload.get("refresh_token") or None,
        )

    async def fetch_user_email(self, access_token: str) -> Optional[str]:
        """Return the email of the account that granted ``access_token``."""
        try:
            async with self._client() as client:
                response = await client.get(
                    self.USERINFO_URL,
                    headers={"Authorization": f"Bearer {access_token}"},
                )
        except httpx.TransportError as exc:
            raise OAuthProviderUnavailableError(
                f"Google userinfo endpoint unreachable: {type(exc).__name__}"
            ) from exc

        if response.status_code != httpx.codes.OK:
            raise OAuthTokenExchangeError(
                f"Google userinfo returned {response.status_code}"
            )
        return response.json().get("email") or None


def _error_code(response: httpx.Response) -> str:
    """Pull the OAuth ``error`` code out of a token endpoint failure."""
    try:
        body = response.json()
    except ValueError:
        return f"http_{response.status_code}"
    if isinstance(body, dict) and isinstance(body.get("error"), str):
        return body["error"]
    return f"http_{response.status_code}"


__all__ = [
    "GoogleOAuthClient",
    "InvalidOAuthStateError",
    "OAuthProviderUnavailableError",
    "OAuthStateEncoder",
    "OAuthTokenExchangeError",
    "OAuthTokenRevokedError",
    "TokenGrant",
]
