from __future__ import annotations

import base64
import json
from datetime import timedelta
from urllib.parse import parse_qs, urlparse

import pytest

from timebox_auth.clients.google_auth import (
    InvalidOAuthStateError,
    OAuthProviderUnavailableError,
    OAuthTokenExchangeError,
    OAuthTokenRevokedError,
)
from timebox_auth.models.oauth import OAuthTokenRecord

from conftest import NOW

SKEW = timedelta(minutes=5)


def _state_from(url: str) -> str:
    return parse_qs(urlparse(url).query)["state"][0]


async def _store_record(token_store, cipher, *, user_id="u1", expiry=NOW + timedelta(hours=1), refresh="refresh-token"):
    await token_store.upsert(
        OAuthTokenRecord(
            user_id=user_id,
            encrypted_refresh_token=cipher.encrypt(refresh) if refresh else "",
            access_token="stored-access",
            token_expiry=expiry,
            account_email=f"{user_id}@example.com",
            updated_at=NOW,
        )
    )


def test_begin_connect_round_trips_state(token_service) -> None:
    url = token_service.begin_connect("u1", "https://example.com/app")

    decoded = json.loads(base64.b64decode(_state_from(url)))
    assert decoded == {"userId": "u1", "returnUrl": "https://example.com/app"}


def test_begin_connect_replaces_disallowed_return_url(token_service) -> None:
    url = token_service.begin_connect("u1", "https://evil.example.net/phish")

    decoded = json.loads(base64.b64decode(_state_from(url)))
    assert decoded["returnUrl"] == "https://app.example.com"


@pytest.mark.anyio
async def test_begin_connect_does_not_touch_store(token_service, token_store) -> None:
    token_service.begin_connect("u1", None)
    assert await token_store.get("u1") is None


@pytest.mark.anyio
async def test_complete_connect_persists_encrypted_refresh_token(
    token_service, token_store, oauth_client, cipher
) -> None:
    state = _state_from(token_service.begin_connect("u1", "https://example.com/app"))

    result = await token_service.complete_connect("auth-code", state)

    assert result.email == "person@example.com"
    assert result.return_url == "https://example.com/app"
    assert oauth_client.codes == ["auth-code"]

    stored = await token_store.get("u1")
    assert stored is not None
    assert stored.access_token == "access-token"
    assert stored.encrypted_refresh_token != "refresh-token"
    assert cipher.decrypt(stored.encrypted_refresh_token) == "refresh-token"
    assert stored.token_expiry == NOW + timedelta(seconds=3600)
    assert stored.account_email == "person@example.com"


@pytest.mark.anyio
async def test_complete_connect_tolerates_missing_refresh_token(
    token_service, token_store, oauth_client
) -> None:
    oauth_client.issue_refresh_token = None
    state = _state_from(token_service.begin_connect("u1", None))

    result = await token_service.complete_connect("auth-code", state)

    assert result.email == "person@example.com"
    stored = await token_store.get("u1")
    assert stored is not None
    assert stored.access_token == "access-token"
    assert not stored.has_refresh_token


@pytest.mark.anyio
async def test_reconsent_without_refresh_token_keeps_stored_one(
    token_service, token_store, oauth_client, cipher
) -> None:
    await _store_record(token_store, cipher, refresh="original-refresh")
    oauth_client.issue_refresh_token = None
    oauth_client.access_token = "second-access"
    oauth_client.email = "second@example.com"
    state = _state_from(token_service.begin_connect("u1", None))

    await token_service.complete_connect("auth-code", state)

    stored = await token_store.get("u1")
    assert stored.access_token == "second-access"
    assert stored.account_email == "second@example.com"
    assert cipher.decrypt(stored.encrypted_refresh_token) == "original-refresh"


@pytest.mark.anyio
async def test_complete_connect_rejects_state_without_user(token_service, token_store) -> None:
    state = base64.b64encode(json.dumps({"returnUrl": "https://example.com"}).encode()).decode()

    with pytest.raises(InvalidOAuthStateError):
        await token_service.complete_connect("auth-code", state)


@pytest.mark.anyio
async def test_failed_exchange_writes_nothing(token_service, token_store, oauth_client) -> None:
    oauth_client.exchange_error = OAuthTokenExchangeError("invalid_grant")
    state = _state_from(token_service.begin_connect("u1", None))

    with pytest.raises(OAuthTokenExchangeError):
        await token_service.complete_connect("bad-code", state)

    assert await token_store.get("u1") is None


@pytest.mark.anyio
async def test_get_valid_access_token_absent_without_record(token_service, oauth_client) -> None:
    assert await token_service.get_valid_access_token("nobody") is None
    assert oauth_client.refresh_calls == []


@pytest.mark.anyio
async def test_token_at_skew_boundary_is_refreshed(
    token_service, token_store, oauth_client, cipher, clock
) -> None:
    expiry = NOW + timedelta(minutes=30)
    await _store_record(token_store, cipher, expiry=expiry)
    clock.now = expiry - SKEW

    token = await token_service.get_valid_access_token("u1")

    assert token == "refreshed-access"
    assert oauth_client.refresh_calls == ["refresh-token"]
    stored = await token_store.get("u1")
    assert stored.access_token == "refreshed-access"
    assert stored.token_expiry == clock.now + timedelta(seconds=3600)
    assert cipher.decrypt(stored.encrypted_refresh_token) == "refresh-token"


@pytest.mark.anyio
async def test_token_just_inside_skew_is_served_from_cache(
    token_service, token_store, oauth_client, cipher, clock
) -> None:
    expiry = NOW + timedelta(minutes=30)
    await _store_record(token_store, cipher, expiry=expiry)
    clock.now = expiry - SKEW - timedelta(milliseconds=1)

    token = await token_service.get_valid_access_token("u1")

    assert token == "stored-access"
    assert oauth_client.refresh_calls == []


@pytest.mark.anyio
async def test_rotated_refresh_token_is_stored(
    token_service, token_store, oauth_client, cipher, clock
) -> None:
    from timebox_auth.clients import TokenGrant

    await _store_record(token_store, cipher, expiry=NOW - timedelta(minutes=1))

    async def rotate(refresh_token: str) -> TokenGrant:
        return TokenGrant(access_token="new-access", expires_in=1800, refresh_token="rotated")

    oauth_client.refresh_token = rotate

    assert await token_service.get_valid_access_token("u1") == "new-access"
    stored = await token_store.get("u1")
    assert cipher.decrypt(stored.encrypted_refresh_token) == "rotated"


@pytest.mark.anyio
async def test_revoked_refresh_token_deletes_record(
    token_service, token_store, oauth_client, cipher
) -> None:
    await _store_record(token_store, cipher, expiry=NOW - timedelta(minutes=1))
    oauth_client.refresh_error = OAuthTokenRevokedError("invalid_grant")

    assert await token_service.get_valid_access_token("u1") is None

    assert await token_store.get("u1") is None
    status = await token_service.connection_status("u1")
    assert status.connected is False


@pytest.mark.anyio
async def test_transient_refresh_failure_keeps_record(
    token_service, token_store, oauth_client, cipher
) -> None:
    await _store_record(token_store, cipher, expiry=NOW - timedelta(minutes=1))
    oauth_client.refresh_error = OAuthProviderUnavailableError("timeout")

    with pytest.raises(OAuthProviderUnavailableError):
        await token_service.get_valid_access_token("u1")

    stored = await token_store.get("u1")
    assert stored is not None
    assert stored.access_token == "stored-access"


@pytest.mark.anyio
async def test_stale_record_without_refresh_token_is_evicted(
    token_service, token_store, oauth_client, cipher
) -> None:
    await _store_record(token_store, cipher, expiry=NOW - timedelta(minutes=1), refresh=None)

    assert await token_service.get_valid_access_token("u1") is None
    assert oauth_client.refresh_calls == []
    assert await token_store.get("u1") is None


@pytest.mark.anyio
async def test_undecryptable_refresh_token_is_evicted(token_service, token_store) -> None:
    from timebox_auth.services import TokenCipherService

    foreign = TokenCipherService(secret="rotated-away").encrypt("refresh-token" * 4)
    await token_store.upsert(
        OAuthTokenRecord(
            user_id="u1",
            encrypted_refresh_token=foreign,
            access_token="stored-access",
            token_expiry=NOW - timedelta(minutes=1),
        )
    )

    assert await token_service.get_valid_access_token("u1") is None
    assert await token_store.get("u1") is None


@pytest.mark.anyio
async def test_connection_status_requires_refresh_token(token_service, token_store, cipher) -> None:
    await _store_record(token_store, cipher, user_id="with", refresh="refresh-token")
    await _store_record(token_store, cipher, user_id="without", refresh="")

    connected = await token_service.connection_status("with")
    assert connected.connected is True
    assert connected.email == "with@example.com"

    not_connected = await token_service.connection_status("without")
    assert not_connected.connected is False
    assert not_connected.email is None


@pytest.mark.anyio
async def test_disconnect_is_idempotent(token_service, token_store, cipher) -> None:
    await token_service.disconnect("never-connected")

    await _store_record(token_store, cipher)
    await token_service.disconnect("u1")
    await token_service.disconnect("u1")

    assert await token_store.get("u1") is None


@pytest.mark.anyio
async def test_get_credentials_wraps_tokens(token_service, token_store, cipher) -> None:
    await _store_record(token_store, cipher)

    credentials = await token_service.get_credentials("u1")

    assert credentials is not None
    assert credentials.token == "stored-access"
    assert credentials.refresh_token == "refresh-token"
    assert credentials.client_id == "client"
    assert await token_service.get_credentials("nobody") is None


@pytest.mark.anyio
async def test_connect_fetch_and_disconnect_scenario(token_service, oauth_client) -> None:
    oauth_client.email = "u42@example.com"

    assert (await token_service.connection_status("u42")).connected is False

    state = _state_from(token_service.begin_connect("u42", None))
    await token_service.complete_connect("valid-code", state)

    status = await token_service.connection_status("u42")
    assert status.connected is True
    assert status.email == "u42@example.com"

    first = await token_service.get_valid_access_token("u42")
    second = await token_service.get_valid_access_token("u42")
    assert first == second == "access-token"
    assert oauth_client.refresh_calls == []

    await token_service.disconnect("u42")
    assert (await token_service.connection_status("u42")).connected is False
