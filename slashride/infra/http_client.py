# slashride/infra/http_client.py
"""
One long-lived aiohttp session per outbound service.

Every profile carries its own timeout so no collaborator call made while a
slash command is being answered can hang; a timeout reaches the client
wrapper as ``asyncio.TimeoutError`` and becomes a ``TransportError``.

``close_all_sessions()`` runs in the application shutdown.
"""
from __future__ import annotations

from typing import NamedTuple

import aiohttp

from slashride.infra.logging_config import get_logger

logger = get_logger(__name__)


class SessionProfile(NamedTuple):
    total_timeout: float
    connect_timeout: float
    max_connections: int


PROFILES: dict[str, SessionProfile] = {
    "provider": SessionProfile(total_timeout=15, connect_timeout=5, max_connections=20),
    "geocoder": SessionProfile(total_timeout=10, connect_timeout=5, max_connections=10),
    # response_url notifications and OAuth token calls
    "default": SessionProfile(total_timeout=30, connect_timeout=5, max_connections=10),
}

_sessions: dict[str, aiohttp.ClientSession] = {}


def get_session(profile: str) -> aiohttp.ClientSession:
    session = _sessions.get(profile)
    if session is not None and not session.closed:
        return session

    settings = PROFILES[profile]
    session = aiohttp.ClientSession(
        timeout=aiohttp.ClientTimeout(
            total=settings.total_timeout,
            connect=settings.connect_timeout,
        ),
        connector=aiohttp.TCPConnector(limit=settings.max_connections, keepalive_timeout=30),
    )
    _sessions[profile] = session
    logger.debug(f"HTTP session '{profile}' opened")
    return session


def get_provider_session() -> aiohttp.ClientSession:
    return get_session("provider")


def get_geocoder_session() -> aiohttp.ClientSession:
    return get_session("geocoder")


def get_default_session() -> aiohttp.ClientSession:
    return get_session("default")


async def close_all_sessions() -> None:
    while _sessions:
        profile, session = _sessions.popitem()
        if not session.closed:
            await session.close()
        logger.debug(f"HTTP session '{profile}' closed")
