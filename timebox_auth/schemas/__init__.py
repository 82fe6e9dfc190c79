"""Public schema exports."""

from .auth import (
    AccessTokenResponse,
    ConnectionStatusResponse,
    DisconnectResponse,
    ErrorResponse,
)

__all__ = [
    "AccessTokenResponse",
    "ConnectionStatusResponse",
    "DisconnectResponse",
    "ErrorResponse",
]
