"""
Factory functions to provide shared clients and services.

Used as FastAPI dependencies and by the serverless handler, so both
transports wire the same objects the same way.
"""

from functools import lru_cache

from timebox_auth.clients import (
    GoogleOAuthClient,
    OAuthStateEncoder,
    SQLiteTokenStore,
    SupabaseAuthClient,
    SupabaseTokenStore,
    TokenStore,
)
from timebox_auth.core.config import get_settings
from timebox_auth.core.redirects import RedirectPolicy
from timebox_auth.services import GoogleTokenService, TokenCipherService


@lru_cache()
def _settings():
    """Internal helper to cache settings for client factories."""
    return get_settings()


@lru_cache()
def get_oauth_state_encoder() -> OAuthStateEncoder:
    return OAuthStateEncoder()


@lru_cache()
def get_google_oauth_client() -> GoogleOAuthClient:
    """Create a singleton Google OAuth client."""
    settings = _settings()
    return GoogleOAuthClient(settings.google, settings.oauth)


@lru_cache()
def get_token_store() -> TokenStore:
    """Provide the configured token table backend."""
    settings = _settings()
    if settings.token_store_backend == "sqlite":
        return SQLiteTokenStore(settings.token_store_sqlite_path)
    return SupabaseTokenStore(settings.supabase, timeout=settings.oauth.http_timeout_seconds)


@lru_cache()
def get_supabase_auth_client() -> SupabaseAuthClient:
    """Provide the session verifier for bearer-protected endpoints."""
    settings = _settings()
    return SupabaseAuthClient(settings.supabase, timeout=settings.oauth.http_timeout_seconds)


@lru_cache()
def get_token_cipher_service() -> TokenCipherService:
    """Provide symmetric encryption helper for token storage."""
    return TokenCipherService(secret=_settings().security.token_encryption_secret)


@lru_cache()
def get_redirect_policy() -> RedirectPolicy:
    settings = _settings()
    return RedirectPolicy.build(
        settings.frontend_base_url,
        settings.allowed_return_origins,
        allow_lan_origins=settings.allow_lan_return_origins,
    )


@lru_cache()
def get_google_token_service() -> GoogleTokenService:
    """Provide helper for managing Google OAuth tokens."""
    settings = _settings()
    return GoogleTokenService(
        store=get_token_store(),
        oauth_client=get_google_oauth_client(),
        token_cipher=get_token_cipher_service(),
        state_encoder=get_oauth_state_encoder(),
        redirect_policy=get_redirect_policy(),
        google_settings=settings.google,
        oauth_settings=settings.oauth,
    )


__all__ = [
    "get_google_oauth_client",
    "get_google_token_service",
    "get_oauth_state_encoder",
    "get_redirect_policy",
    "get_supabase_auth_client",
    "get_token_cipher_service",
    "get_token_store",
]
