"""Pytest configuration shared across the suite."""

from __future__ import annotations

from datetime import datetime, timezone
from urllib.parse import urlencode

import pytest

import _bootstrap  # noqa: F401

from timebox_auth.clients import OAuthStateEncoder, SQLiteTokenStore, TokenGrant
from timebox_auth.clients.google_auth import OAuthTokenExchangeError
from timebox_auth.core.config import GoogleSettings, OAuthSettings
from timebox_auth.core.redirects import RedirectPolicy
from timebox_auth.services import GoogleTokenService, TokenCipherService

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def anyio_backend() -> str:
    """Force AnyIO-powered tests to run against asyncio backend only."""
    return "asyncio"


class FrozenClock:
    def __init__(self, now: datetime = NOW) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


class DummyOAuthClient:
    TOKEN_URL = "https://oauth.example/token"

    def __init__(self) -> None:
        self.states: list[str] = []
        self.codes: list[str] = []
        self.refresh_calls: list[str] = []
        self.issue_refresh_token: str | None = "refresh-token"
        self.access_token = "access-token"
        self.refreshed_token = "refreshed-access"
        self.email = "person@example.com"
        self.refresh_error: Exception | None = None
        self.exchange_error: Exception | None = None

    def build_authorization_url(self, state: str) -> str:
        self.states.append(state)
        return f"https://accounts.example/auth?{urlencode({'state': state})}"

    async def exchange_authorization_code(self, code: str) -> TokenGrant:
        self.codes.append(code)
        if self.exchange_error is not None:
            raise self.exchange_error
        return TokenGrant(
            access_token=self.access_token,
            expires_in=3600,
            refresh_token=self.issue_refresh_token,
        )

    async def refresh_token(self, refresh_token: str) -> TokenGrant:
        self.refresh_calls.append(refresh_token)
        if self.refresh_error is not None:
            raise self.refresh_error
        return TokenGrant(access_token=self.refreshed_token, expires_in=3600)

    async def fetch_user_email(self, access_token: str) -> str | None:
        if access_token != self.access_token:
            raise OAuthTokenExchangeError("unexpected access token")
        return self.email


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
def oauth_client() -> DummyOAuthClient:
    return DummyOAuthClient()


@pytest.fixture
def cipher() -> TokenCipherService:
    return TokenCipherService(secret="secret-key")


@pytest.fixture
def token_store(tmp_path) -> SQLiteTokenStore:
    return SQLiteTokenStore(str(tmp_path / "tokens.db"))


@pytest.fixture
def token_service(token_store, oauth_client, cipher, clock) -> GoogleTokenService:
    return GoogleTokenService(
        store=token_store,
        oauth_client=oauth_client,
        token_cipher=cipher,
        state_encoder=OAuthStateEncoder(),
        redirect_policy=RedirectPolicy.build(
            "https://app.example.com", ["https://example.com"]
        ),
        google_settings=GoogleSettings(
            GOOGLE_CLIENT_ID="client",
            GOOGLE_CLIENT_SECRET="secret",
            GOOGLE_REDIRECT_URI="https://example.com/callback",
        ),
        oauth_settings=OAuthSettings(),
        clock=clock,
    )
