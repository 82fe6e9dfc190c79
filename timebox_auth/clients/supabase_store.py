"""
Token store backed by the Supabase ``google_oauth_tokens`` table.

Requests go through PostgREST with the service-role key, which bypasses the
row-level security policies end-user sessions are subject to.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import httpx

from timebox_auth.clients.token_store import TokenStoreError
from timebox_auth.core.config import SupabaseSettings
from timebox_auth.models.oauth import OAuthTokenRecord

logger = logging.getLogger(__name__)


def _parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class SupabaseTokenStore:
    """CRUD over the token table via the Supabase REST API."""

    def __init__(
        self,
        settings: SupabaseSettings,
        *,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if not settings.service_role_key:
            raise ValueError("Supabase service role key must be provided.")
        self._endpoint = f"{settings.base_url}/rest/v1/{settings.tokens_table}"
        self._headers = {
            "apikey": settings.service_role_key,
            "Authorization": f"Bearer {settings.service_role_key}",
            "Content-Type": "application/json",
        }
        self._timeout = timeout
        self._transport = transport

    async def _request(
        self,
        method: str,
        *,
        params: Dict[str, str],
        json: Any = None,
        prefer: Optional[str] = None,
    ) -> httpx.Response:
        headers = dict(self._headers)
        if prefer:
            headers["Prefer"] = prefer
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout, transport=self._transport
            ) as client:
                response = await client.request(
                    method, self._endpoint, params=params, json=json, headers=headers
                )
        except httpx.HTTPError as exc:
            raise TokenStoreError(f"Supabase request failed: {type(exc).__name__}") from exc

        if response.status_code >= 400:
            logger.error(
                "Supabase %s on token table failed with status %s",
                method,
                response.status_code,
            )
            raise TokenStoreError(
                f"Supabase {method} returned {response.status_code}: {response.text}"
            )
        return response

    async def upsert(self, record: OAuthTokenRecord) -> None:
        row: Dict[str, Any] = {
            "user_id": record.user_id,
            "access_token": record.access_token,
            "token_expiry": record.token_expiry.isoformat() if record.token_expiry else None,
            "google_email": record.account_email,
            "updated_at": record.updated_at.isoformat(),
        }
        # Omitting the column keeps the stored refresh token on conflict.
        if record.encrypted_refresh_token is not None:
            row["refresh_token"] = record.encrypted_refresh_token

        await self._request(
            "POST",
            params={"on_conflict": "user_id"},
            json=row,
            prefer="resolution=merge-duplicates,return=minimal",
        )

    async def get(self, user_id: str) -> Optional[OAuthTokenRecord]:
        response = await self._request(
            "GET",
            params={"user_id": f"eq.{user_id}", "select": "*", "limit": "1"},
        )
        rows = response.json()
        if not rows:
            return None
        row = rows[0]
        return OAuthTokenRecord(
            user_id=row["user_id"],
            encrypted_refresh_token=row.get("refresh_token") or None,
            access_token=row.get("access_token") or "",
            token_expiry=_parse_timestamp(row.get("token_expiry")),
            account_email=row.get("google_email"),
            updated_at=_parse_timestamp(row.get("updated_at")) or datetime.now(timezone.utc),
        )

    async def update_access_token(
        self,
        user_id: str,
        access_token: str,
        token_expiry: Optional[datetime],
        encrypted_refresh_token: Optional[str] = None,
    ) -> None:
        changes: Dict[str, Any] = {
            "access_token": access_token,
            "token_expiry": token_expiry.isoformat() if token_expiry else None,
            "updated_at": datetime.now(timezone.utc).isoformat(),
        }
        if encrypted_refresh_token:
            changes["refresh_token"] = encrypted_refresh_token

        await self._request(
            "PATCH",
            params={"user_id": f"eq.{user_id}"},
            json=changes,
            prefer="return=minimal",
        )

    async def delete(self, user_id: str) -> None:
        await self._request(
            "DELETE",
            params={"user_id": f"eq.{user_id}"},
            prefer="return=minimal",
        )


__all__ = ["SupabaseTokenStore"]
