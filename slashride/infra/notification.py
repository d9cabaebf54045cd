# slashride/infra/notification.py
"""
Delayed replies to the chat platform.

Slack hands every slash command a ``response_url``; posting ``{"text": ...}``
there shows the message to the user who issued the command. This is the only
delivery path for booking outcomes, so failures raise NotificationError
instead of being logged and dropped.
"""
from __future__ import annotations

import asyncio

import aiohttp

from slashride.core.errors import TransportError
from slashride.infra.http_client import get_default_session
from slashride.infra.logging_config import get_logger
from slashride.infra.metrics import AppMetrics, inc_counter

logger = get_logger(__name__)


class NotificationError(TransportError):
    def __init__(self, status: int, message: str, *, retryable: bool = False):
        super().__init__("notification", status, message, retryable=retryable)


def _mask_url(url: str) -> str:
    """Response URLs embed a secret; keep only the host part for logs."""
    if "://" not in url:
        return "***"
    scheme, rest = url.split("://", 1)
    return f"{scheme}://{rest.split('/', 1)[0]}/***"


class ResponseUrlNotifier:
    """Post text messages to chat response URLs."""

    def __init__(
        self,
        *,
        response_type: str = "ephemeral",
        session: aiohttp.ClientSession | None = None,
    ) -> None:
        self._response_type = response_type
        self._session = session

    async def notify(self, destination: str, text: str) -> None:
        payload = {"text": text, "response_type": self._response_type}
        masked = _mask_url(destination)
        session = self._session or get_default_session()

        try:
            async with session.post(destination, json=payload) as resp:
                if resp.status >= 400:
                    detail = await _safe_response_text(resp)
                    logger.error("Notification rejected: dest=%s status=%d body=%s", masked, resp.status, detail)
                    AppMetrics.transport_error("notification")
                    raise NotificationError(
                        resp.status, detail, retryable=resp.status == 429 or resp.status >= 500,
                    )

        except NotificationError:
            raise
        except asyncio.TimeoutError as exc:
            logger.error("Notification timeout: dest=%s", masked)
            AppMetrics.transport_error("notification")
            raise NotificationError(0, "timeout", retryable=True) from exc
        except aiohttp.ClientError as exc:
            logger.error("Notification connection error: dest=%s: %s", masked, exc)
            AppMetrics.transport_error("notification")
            raise NotificationError(0, str(exc), retryable=True) from exc

        logger.info("Notification delivered: dest=%s", masked)
        inc_counter("notifications_sent_total")


async def _safe_response_text(resp: aiohttp.ClientResponse, max_len: int = 300) -> str:
    """Read response body as text, truncated for safe logging."""
    try:
        text = await resp.text()
        return text[:max_len]
    except (aiohttp.ClientError, UnicodeDecodeError):
        return "<unreadable>"
