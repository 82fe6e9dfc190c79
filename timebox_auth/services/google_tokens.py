"""
Helpers for connecting, refreshing and disconnecting Google OAuth tokens.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from google.oauth2.credentials import Credentials

from timebox_auth.clients import GoogleOAuthClient, OAuthStateEncoder, TokenStore
from timebox_auth.clients.google_auth import InvalidOAuthStateError, OAuthTokenRevokedError
from timebox_auth.core.config import GoogleSettings, OAuthSettings
from timebox_auth.core.redirects import RedirectPolicy
from timebox_auth.models.oauth import OAuthTokenRecord
from timebox_auth.services.token_cipher import TokenCipherService

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class ConnectResult:
    email: Optional[str]
    return_url: str


@dataclass(frozen=True)
class ConnectionStatus:
    connected: bool
    email: Optional[str] = None


class GoogleTokenService:
    """Manages the lifecycle of each user's stored Google OAuth tokens.

    A user is disconnected (no record), connected with a fresh access token,
    or connected with a stale one. Stale means ``now >= expiry - skew``; the
    skew defaults to five minutes. Stale tokens are refreshed on demand, and
    a refresh token Google reports as revoked deletes the record so the next
    status check tells the user to reconnect.
    """

    def __init__(
        self,
        store: TokenStore,
        oauth_client: GoogleOAuthClient,
        token_cipher: TokenCipherService,
        state_encoder: OAuthStateEncoder,
        redirect_policy: RedirectPolicy,
        google_settings: GoogleSettings,
        oauth_settings: OAuthSettings,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._store = store
        self._oauth = oauth_client
        self._cipher = token_cipher
        self._state = state_encoder
        self._redirects = redirect_policy
        self._google = google_settings
        self._oauth_settings = oauth_settings
        self._clock = clock
        self.refresh_skew = timedelta(seconds=oauth_settings.refresh_skew_seconds)

    def is_fresh(self, record: OAuthTokenRecord, now: datetime) -> bool:
        if record.token_expiry is None:
            return False
        return now < record.token_expiry - self.refresh_skew

    def begin_connect(self, user_id: str, return_url: Optional[str] = None) -> str:
        """Return the Google consent URL carrying the user and return URL in its state."""
        state = self._state.encode(
            {"userId": user_id, "returnUrl": self._redirects.sanitize(return_url)}
        )
        return self._oauth.build_authorization_url(state=state)

    def resolve_return_url(self, state: Optional[str]) -> str:
        """Best-effort return URL from a callback state, for error redirects."""
        if not state:
            return self._redirects.frontend_url
        try:
            payload = self._state.decode(state)
        except InvalidOAuthStateError:
            return self._redirects.frontend_url
        return_url = payload.get("returnUrl")
        return self._redirects.sanitize(return_url if isinstance(return_url, str) else None)

    async def complete_connect(self, code: str, state: str) -> ConnectResult:
        """Exchange the callback code and persist the resulting tokens."""
        payload = self._state.decode(state)
        user_id = payload.get("userId")
        if not user_id or not isinstance(user_id, str):
            raise InvalidOAuthStateError("Missing user identifier in OAuth state.")
        return_url = self.resolve_return_url(state)

        issued_at = self._clock()
        grant = await self._oauth.exchange_authorization_code(code)
        email = await self._oauth.fetch_user_email(grant.access_token)

        if grant.refresh_token is None:
            logger.warning(
                "Google returned no refresh token for user %s; keeping any stored one",
                user_id,
            )

        await self._store.upsert(
            OAuthTokenRecord(
                user_id=user_id,
                encrypted_refresh_token=(
                    self._cipher.encrypt(grant.refresh_token) if grant.refresh_token else None
                ),
                access_token=grant.access_token,
                token_expiry=issued_at + timedelta(seconds=grant.expires_in),
                account_email=email,
                updated_at=issued_at,
            )
        )
        logger.info("Stored Google connection for user %s", user_id)
        return ConnectResult(email=email, return_url=return_url)

    async def get_valid_access_token(self, user_id: str) -> Optional[str]:
        """Return a usable access token, refreshing it when stale.

        Returns ``None`` when the user has to reconnect. Transient provider
        failures propagate and leave the record untouched.
        """
        record = await self._store.get(user_id)
        if record is None:
            return None

        now = self._clock()
        if self.is_fresh(record, now):
            return record.access_token

        if not record.has_refresh_token:
            logger.info("Stale Google token without refresh token for user %s", user_id)
            await self._store.delete(user_id)
            return None

        try:
            refresh_token = self._cipher.decrypt(record.encrypted_refresh_token or "")
        except ValueError:
            logger.error("Stored refresh token for user %s cannot be decrypted", user_id)
            await self._store.delete(user_id)
            return None

        try:
            grant = await self._oauth.refresh_token(refresh_token)
        except OAuthTokenRevokedError:
            logger.info("Google refresh token revoked for user %s; removing record", user_id)
            await self._store.delete(user_id)
            return None

        await self._store.update_access_token(
            user_id,
            grant.access_token,
            now + timedelta(seconds=grant.expires_in),
            encrypted_refresh_token=(
                self._cipher.encrypt(grant.refresh_token) if grant.refresh_token else None
            ),
        )
        return grant.access_token

    async def get_credentials(self, user_id: str) -> Optional[Credentials]:
        """Wrap a valid access token for use with Google client libraries."""
        access_token = await self.get_valid_access_token(user_id)
        if access_token is None:
            return None

        record = await self._store.get(user_id)
        refresh_token = None
        if record is not None and record.has_refresh_token:
            refresh_token = self._cipher.decrypt(record.encrypted_refresh_token or "")

        return Credentials(
            token=access_token,
            refresh_token=refresh_token,
            token_uri=GoogleOAuthClient.TOKEN_URL,
            client_id=self._google.client_id,
            client_secret=self._google.client_secret,
            scopes=list(self._oauth_settings.scopes),
        )

    async def disconnect(self, user_id: str) -> None:
        await self._store.delete(user_id)
        logger.info("Disconnected Google account for user %s", user_id)

    async def connection_status(self, user_id: str) -> ConnectionStatus:
        record = await self._store.get(user_id)
        if record is None or not record.has_refresh_token:
            return ConnectionStatus(connected=False)
        return ConnectionStatus(connected=True, email=record.account_email)


__all__ = ["ConnectResult", "ConnectionStatus", "GoogleTokenService"]
