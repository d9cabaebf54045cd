# tests/test_oauth.py
"""Tests for the OAuth token client and per-user token management."""
from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock
from urllib.parse import parse_qs, urlparse

import pytest

from slashride.infra.memory_store import InMemoryAuthorizationStore
from slashride.infra.oauth import AuthorizationService, OAuthClient, OAuthError, TokenGrant

NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def _make_mock_session(status: int, json_data=None):
    resp = AsyncMock()
    resp.status = status
    resp.json = AsyncMock(return_value=json_data)

    ctx = AsyncMock()
    ctx.__aenter__ = AsyncMock(return_value=resp)
    ctx.__aexit__ = AsyncMock(return_value=False)

    session = MagicMock()
    session.post = MagicMock(return_value=ctx)
    return session


def _client(session=None) -> OAuthClient:
    return OAuthClient(
        client_id="cid",
        client_secret="csecret",
        token_url="https://login.example.com/oauth/v2/token",
        authorize_url="https://login.example.com/oauth/v2/authorize",
        redirect_uri="https://bot.example.com/oauth/callback",
        scopes="request profile",
        session=session,
        now=lambda: NOW,
    )


TOKEN_BODY = {
    "access_token": "acc-1",
    "refresh_token": "ref-1",
    "expires_in": 2592000,
    "token_type": "Bearer",
}


class TestOAuthClient:
    def test_authorize_url(self):
        url = urlparse(_client().authorize_url(state="U012ABCDEF"))
        query = parse_qs(url.query)
        assert url.netloc == "login.example.com"
        assert query["client_id"] == ["cid"]
        assert query["response_type"] == ["code"]
        assert query["state"] == ["U012ABCDEF"]
        assert query["scope"] == ["request profile"]
        assert query["redirect_uri"] == ["https://bot.example.com/oauth/callback"]

    @pytest.mark.asyncio
    async def test_exchange_code(self):
        session = _make_mock_session(200, TOKEN_BODY)

        grant = await _client(session).exchange_code("code-xyz")

        assert grant == TokenGrant(
            access_token="acc-1",
            refresh_token="ref-1",
            expires_at=NOW + timedelta(seconds=2592000),
        )
        args, kwargs = session.post.call_args
        assert args == ("https://login.example.com/oauth/v2/token",)
        assert kwargs["data"] == {
            "client_id": "cid",
            "client_secret": "csecret",
            "grant_type": "authorization_code",
            "redirect_uri": "https://bot.example.com/oauth/callback",
            "code": "code-xyz",
        }

    @pytest.mark.asyncio
    async def test_refresh(self):
        session = _make_mock_session(200, {"access_token": "acc-2", "expires_in": 60})

        grant = await _client(session).refresh("ref-1")

        assert grant.access_token == "acc-2"
        assert grant.refresh_token is None
        assert session.post.call_args.kwargs["data"]["grant_type"] == "refresh_token"
        assert session.post.call_args.kwargs["data"]["refresh_token"] == "ref-1"

    @pytest.mark.asyncio
    async def test_rejected_code(self):
        session = _make_mock_session(400, {"error": "invalid_grant"})
        with pytest.raises(OAuthError) as exc_info:
            await _client(session).exchange_code("stale")
        assert exc_info.value.status == 400
        assert exc_info.value.retryable is False
        assert "invalid_grant" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_timeout(self):
        ctx = AsyncMock()
        ctx.__aenter__ = AsyncMock(side_effect=asyncio.TimeoutError())
        ctx.__aexit__ = AsyncMock(return_value=False)
        session = MagicMock()
        session.post = MagicMock(return_value=ctx)

        with pytest.raises(OAuthError) as exc_info:
            await _client(session).exchange_code("code")
        assert exc_info.value.retryable is True


class TestAuthorizationService:
    @pytest.fixture
    def store(self):
        return InMemoryAuthorizationStore()

    @pytest.fixture
    def oauth(self):
        client = MagicMock(spec=OAuthClient)
        client.exchange_code = AsyncMock()
        client.refresh = AsyncMock()
        return client

    @pytest.mark.asyncio
    async def test_never_authorized(self, oauth, store):
        service = AuthorizationService(oauth, store, now=lambda: NOW)
        assert await service.get_valid_token("U1") is None

    @pytest.mark.asyncio
    async def test_complete_authorization_stores_grant(self, oauth, store):
        grant = TokenGrant("acc-1", NOW + timedelta(days=30), "ref-1")
        oauth.exchange_code.return_value = grant
        service = AuthorizationService(oauth, store, now=lambda: NOW)

        await service.complete_authorization("U1", "code-xyz")

        oauth.exchange_code.assert_awaited_once_with("code-xyz")
        assert await store.get("U1") == grant
        assert await service.get_valid_token("U1") == "acc-1"
        oauth.refresh.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_expired_token_is_refreshed(self, oauth, store):
        await store.upsert("U1", TokenGrant("old", NOW - timedelta(minutes=1), "ref-1"))
        oauth.refresh.return_value = TokenGrant("new", NOW + timedelta(days=30))
        service = AuthorizationService(oauth, store, now=lambda: NOW)

        assert await service.get_valid_token("U1") == "new"

        oauth.refresh.assert_awaited_once_with("ref-1")
        stored = await store.get("U1")
        assert stored.access_token == "new"
        assert stored.refresh_token == "ref-1"

    @pytest.mark.asyncio
    async def test_token_about_to_expire_is_refreshed(self, oauth, store):
        await store.upsert("U1", TokenGrant("old", NOW + timedelta(seconds=30), "ref-1"))
        oauth.refresh.return_value = TokenGrant("new", NOW + timedelta(days=30), "ref-2")
        service = AuthorizationService(oauth, store, now=lambda: NOW)

        assert await service.get_valid_token("U1") == "new"
        assert (await store.get("U1")).refresh_token == "ref-2"

    @pytest.mark.asyncio
    async def test_expired_without_refresh_token(self, oauth, store):
        await store.upsert("U1", TokenGrant("old", NOW - timedelta(minutes=1)))
        service = AuthorizationService(oauth, store, now=lambda: NOW)

        assert await service.get_valid_token("U1") is None
        oauth.refresh.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_refresh_failure_propagates(self, oauth, store):
        await store.upsert("U1", TokenGrant("old", NOW - timedelta(minutes=1), "ref-1"))
        oauth.refresh.side_effect = OAuthError(401, "invalid_grant")
        service = AuthorizationService(oauth, store, now=lambda: NOW)

        with pytest.raises(OAuthError):
            await service.get_valid_token("U1")
