"""Expose constructed client wrappers."""

from .google_auth import GoogleOAuthClient, OAuthStateEncoder, TokenGrant
from .sqlite_store import SQLiteTokenStore
from .supabase_auth import SupabaseAuthClient
from .supabase_store import SupabaseTokenStore
from .token_store import TokenStore, TokenStoreError

__all__ = [
    "GoogleOAuthClient",
    "OAuthStateEncoder",
    "SQLiteTokenStore",
    "SupabaseAuthClient",
    "SupabaseTokenStore",
    "TokenGrant",
    "TokenStore",
    "TokenStoreError",
]
