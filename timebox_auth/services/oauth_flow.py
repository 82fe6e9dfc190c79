"""Browser redirect handling for the consent and callback legs of the OAuth flow."""

from __future__ import annotations

import logging
from typing import Optional

from timebox_auth.clients.google_auth import InvalidOAuthStateError
from timebox_auth.core.redirects import with_query
from timebox_auth.services.google_tokens import GoogleTokenService

logger = logging.getLogger(__name__)


class OAuthCallbackFlow:
    """Turn callback outcomes into frontend redirect URLs.

    Every failure lands on the frontend with ``google_error=<reason>`` rather
    than an error page, so both transports only ever issue a redirect here.
    """

    def __init__(self, token_service: GoogleTokenService) -> None:
        self._tokens = token_service

    async def callback_redirect(
        self,
        *,
        code: Optional[str],
        state: Optional[str],
        error: Optional[str],
    ) -> str:
        return_url = self._tokens.resolve_return_url(state)

        if error:
            logger.warning("Google OAuth returned error: %s", error)
            return with_query(return_url, {"google_error": error})
        if not code or not state:
            return with_query(return_url, {"google_error": "missing_params"})

        try:
            result = await self._tokens.complete_connect(code, state)
        except InvalidOAuthStateError:
            logger.warning("Rejected OAuth callback with malformed state")
            return with_query(return_url, {"google_error": "invalid_state"})
        except Exception:
            logger.exception("OAuth callback failed")
            return with_query(return_url, {"google_error": "callback_failed"})

        return with_query(
            result.return_url,
            {"google_connected": "true", "google_email": result.email or ""},
        )


__all__ = ["OAuthCallbackFlow"]
