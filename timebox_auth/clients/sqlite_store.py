"""SQLite-backed token store for local development."""

from __future__ import annotations

import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from timebox_auth.clients.token_store import TokenStoreError
from timebox_auth.models.oauth import OAuthTokenRecord


def _to_text(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _from_text(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class SQLiteTokenStore:
    """Stores tokens in the same column layout as the Supabase table."""

    def __init__(self, db_path: str) -> None:
        self._db_path = Path(db_path)
        if self._db_path.parent and not self._db_path.parent.exists():
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        return conn

    def _execute(self, sql: str, params: tuple = ()) -> list[sqlite3.Row]:
        try:
            with self._connect() as conn:
                return conn.execute(sql, params).fetchall()
        except sqlite3.Error as exc:
            raise TokenStoreError(str(exc)) from exc

    def _ensure_schema(self) -> None:
        self._execute(
            """
            CREATE TABLE IF NOT EXISTS google_oauth_tokens (
                user_id TEXT PRIMARY KEY,
                refresh_token TEXT NOT NULL DEFAULT '',
                access_token TEXT NOT NULL,
                token_expiry TEXT,
                google_email TEXT,
                updated_at TEXT NOT NULL
            )
            """
        )

    async def upsert(self, record: OAuthTokenRecord) -> None:
        self._execute(
            """
            INSERT INTO google_oauth_tokens
                (user_id, refresh_token, access_token, token_expiry, google_email, updated_at)
            VALUES (?, COALESCE(?, ''), ?, ?, ?, ?)
            ON CONFLICT(user_id) DO UPDATE SET
                refresh_token = COALESCE(?, google_oauth_tokens.refresh_token),
                access_token = excluded.access_token,
                token_expiry = excluded.token_expiry,
                google_email = excluded.google_email,
                updated_at = excluded.updated_at
            """,
            (
                record.user_id,
                record.encrypted_refresh_token,
                record.access_token,
                _to_text(record.token_expiry),
                record.account_email,
                _to_text(record.updated_at),
                record.encrypted_refresh_token,
            ),
        )

    async def get(self, user_id: str) -> Optional[OAuthTokenRecord]:
        rows = self._execute(
            "SELECT * FROM google_oauth_tokens WHERE user_id = ?", (user_id,)
        )
        if not rows:
            return None
        row = rows[0]
        return OAuthTokenRecord(
            user_id=row["user_id"],
            encrypted_refresh_token=row["refresh_token"] or None,
            access_token=row["access_token"],
            token_expiry=_from_text(row["token_expiry"]),
            account_email=row["google_email"],
            updated_at=_from_text(row["updated_at"]),
        )

    async def update_access_token(
        self,
        user_id: str,
        access_token: str,
        token_expiry: Optional[datetime],
        encrypted_refresh_token: Optional[str] = None,
    ) -> None:
        self._execute(
            """
            UPDATE google_oauth_tokens
            SET access_token = ?,
                refresh_token = COALESCE(?, refresh_token),
                token_expiry = ?,
                updated_at = ?
            WHERE user_id = ?
            """,
            (
                access_token,
                encrypted_refresh_token,
                _to_text(token_expiry),
                datetime.now(timezone.utc).isoformat(),
                user_id,
            ),
        )

    async def delete(self, user_id: str) -> None:
        self._execute("DELETE FROM google_oauth_tokens WHERE user_id = ?", (user_id,))


__all__ = ["SQLiteTokenStore"]
