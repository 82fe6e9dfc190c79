"""Service layer exports."""

from .google_tokens import ConnectionStatus, ConnectResult, GoogleTokenService
from .oauth_flow import OAuthCallbackFlow
from .token_cipher import TokenCipherService

__all__ = [
    "ConnectResult",
    "ConnectionStatus",
    "GoogleTokenService",
    "OAuthCallbackFlow",
    "TokenCipherService",
]
