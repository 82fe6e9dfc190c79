"""Verify Supabase session bearer tokens against the project's Auth API."""

from __future__ import annotations

import httpx

from timebox_auth.core.config import SupabaseSettings


class SessionVerificationError(Exception):
    """Raised when a bearer token does not belong to a live Supabase session."""


class SupabaseAuthClient:
    """Resolve a session access token to the Supabase user id."""

    def __init__(
        self,
        settings: SupabaseSettings,
        *,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._user_url = f"{settings.base_url}/auth/v1/user"
        self._anon_key = settings.anon_key
        self._timeout = timeout
        self._transport = transport

    async def get_user_id(self, access_token: str) -> str:
        if not access_token:
            raise SessionVerificationError("Missing session token.")

        try:
            async with httpx.AsyncClient(
                timeout=self._timeout, transport=self._transport
            ) as client:
                response = await client.get(
                    self._user_url,
                    headers={
                        "apikey": self._anon_key,
                        "Authorization": f"Bearer {access_token}",
                    },
                )
        except httpx.HTTPError as exc:
            raise SessionVerificationError(
                f"Supabase Auth unreachable: {type(exc).__name__}"
            ) from exc

        if response.status_code != httpx.codes.OK:
            raise SessionVerificationError(
                f"Supabase Auth rejected the session ({response.status_code})."
            )

        user_id = response.json().get("id")
        if not user_id:
            raise SessionVerificationError("Supabase Auth returned no user.")
        return str(user_id)


__all__ = ["SessionVerificationError", "SupabaseAuthClient"]
