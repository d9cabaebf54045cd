# slashride/infra/oauth.py
"""
Ride API OAuth 2.0 (authorization code grant).

Flow:
1. A user without stored tokens gets ``authorize_url(state=user_id)``.
2. The provider redirects to ``GET /oauth/callback?code=...&state=...``.
3. ``AuthorizationService.complete_authorization`` exchanges the code for
   access/refresh tokens in the background and stores them encrypted.
4. Each slash command calls ``get_valid_token``; an expired access token is
   refreshed once before the command runs.

No retries: a failed exchange is logged and the user simply authorizes again.
"""
from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional, Protocol
from urllib.parse import urlencode

import aiohttp

from slashride.core.errors import TransportError
from slashride.infra.http_client import get_default_session
from slashride.infra.logging_config import get_logger, mask_user_id
from slashride.infra.metrics import AppMetrics, inc_counter

logger = get_logger(__name__)

# Refresh a little before the provider would reject the token
_EXPIRY_LEEWAY = timedelta(seconds=60)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class OAuthError(TransportError):
    def __init__(self, status: int, message: str, *, retryable: bool = False):
        super().__init__("oauth", status, message, retryable=retryable)


@dataclass(frozen=True)
class TokenGrant:
    access_token: str
    expires_at: datetime
    refresh_token: Optional[str] = None

    def is_expired(self, now: datetime) -> bool:
        return now + _EXPIRY_LEEWAY >= self.expires_at


class AuthorizationStore(Protocol):
    async def get(self, user_id: str) -> TokenGrant | None: ...
    async def upsert(self, user_id: str, grant: TokenGrant) -> None: ...


class OAuthClient:
    """Token endpoint client for one OAuth application."""

    def __init__(
        self,
        *,
        client_id: str,
        client_secret: str,
        token_url: str,
        authorize_url: str,
        redirect_uri: str,
        scopes: str = "request",
        session: aiohttp.ClientSession | None = None,
        now: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._client_id = client_id
        self._client_secret = client_secret
        self._token_url = token_url
        self._authorize_url = authorize_url
        self._redirect_uri = redirect_uri
        self._scopes = scopes
        self._session = session
        self._now = now

    def authorize_url(self, state: str) -> str:
        query = urlencode({
            "client_id": self._client_id,
            "response_type": "code",
            "redirect_uri": self._redirect_uri,
            "scope": self._scopes,
            "state": state,
        })
        return f"{self._authorize_url}?{query}"

    async def exchange_code(self, code: str) -> TokenGrant:
        """Exchange a temporary authorization code for tokens."""
        return await self._post_token({
            "grant_type": "authorization_code",
            "redirect_uri": self._redirect_uri,
            "code": code,
        })

    async def refresh(self, refresh_token: str) -> TokenGrant:
        return await self._post_token({
            "grant_type": "refresh_token",
            "refresh_token": refresh_token,
        })

    async def _post_token(self, form: dict[str, str]) -> TokenGrant:
        data = {
            "client_id": self._client_id,
            "client_secret": self._client_secret,
            **form,
        }
        session = self._session or get_default_session()
        try:
            async with session.post(self._token_url, data=data) as resp:
                try:
                    body = await resp.json(content_type=None)
                except (aiohttp.ContentTypeError, ValueError):
                    body = None

                if resp.status != 200 or not isinstance(body, dict) or "access_token" not in body:
                    error = (body or {}).get("error", "invalid token response") if isinstance(body, dict) else "non-JSON body"
                    logger.error(
                        "OAuth token request failed: grant=%s status=%d error=%s",
                        form["grant_type"], resp.status, error,
                    )
                    AppMetrics.transport_error("oauth")
                    raise OAuthError(resp.status, str(error), retryable=resp.status >= 500)

        except OAuthError:
            raise
        except asyncio.TimeoutError as exc:
            logger.error("OAuth token request timeout: grant=%s", form["grant_type"])
            AppMetrics.transport_error("oauth")
            raise OAuthError(0, "timeout", retryable=True) from exc
        except aiohttp.ClientError as exc:
            logger.error("OAuth token request connection error: %s", exc)
            AppMetrics.transport_error("oauth")
            raise OAuthError(0, str(exc), retryable=True) from exc

        return TokenGrant(
            access_token=body["access_token"],
            refresh_token=body.get("refresh_token"),
            expires_at=self._now() + timedelta(seconds=int(body.get("expires_in") or 0)),
        )


class AuthorizationService:
    """Keeps one valid ride API bearer token per chat user."""

    def __init__(
        self,
        client: OAuthClient,
        store: AuthorizationStore,
        now: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.client = client
        self.store = store
        self._now = now

    def authorize_url(self, user_id: str) -> str:
        return self.client.authorize_url(state=user_id)

    async def complete_authorization(self, user_id: str, code: str) -> TokenGrant:
        grant = await self.client.exchange_code(code)
        await self.store.upsert(user_id, grant)
        inc_counter("authorizations_completed_total")
        logger.info("Ride API authorization stored: user=%s", mask_user_id(user_id))
        return grant

    async def get_valid_token(self, user_id: str) -> str | None:
        """Access token for ``user_id``; None when the user never authorized
        or the token expired without a refresh token."""
        grant = await self.store.get(user_id)
        if grant is None:
            return None

        if not grant.is_expired(self._now()):
            return grant.access_token

        if not grant.refresh_token:
            logger.info("Access token expired without refresh token: user=%s", mask_user_id(user_id))
            return None

        refreshed = await self.client.refresh(grant.refresh_token)
        if refreshed.refresh_token is None:
            refreshed = TokenGrant(
                access_token=refreshed.access_token,
                expires_at=refreshed.expires_at,
                refresh_token=grant.refresh_token,
            )
        await self.store.upsert(user_id, refreshed)
        logger.info("Access token refreshed: user=%s", mask_user_id(user_id))
        return refreshed.access_token
