"""Expose dependency helpers for FastAPI routers."""

from .auth import CurrentUserId, get_current_user_id
from .clients import (
    get_google_oauth_client,
    get_google_token_service,
    get_oauth_state_encoder,
    get_redirect_policy,
    get_supabase_auth_client,
    get_token_cipher_service,
    get_token_store,
)
from .config import get_app_settings

__all__ = [
    "CurrentUserId",
    "get_app_settings",
    "get_current_user_id",
    "get_google_oauth_client",
    "get_google_token_service",
    "get_oauth_state_encoder",
    "get_redirect_policy",
    "get_supabase_auth_client",
    "get_token_cipher_service",
    "get_token_store",
]
