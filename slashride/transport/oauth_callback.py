# slashride/transport/oauth_callback.py
"""
GET /oauth/callback?code=...&state=...

The provider redirects here after the user approves access. ``state`` is
the chat user id handed out in the authorize link. The code exchange runs
as a background task so the browser gets an immediate answer; a failed
exchange is logged and not retried.
"""
from __future__ import annotations

from fastapi import BackgroundTasks, HTTPException, Request
from fastapi.responses import PlainTextResponse

from slashride.core.errors import TransportError
from slashride.core.texts import AUTHORIZATION_RECEIVED
from slashride.infra.crypto import CryptoError
from slashride.infra.logging_config import get_logger, mask_user_id
from slashride.infra.metrics import inc_counter
from slashride.infra.oauth import AuthorizationService

logger = get_logger(__name__)


async def exchange_authorization_code(
    authorizations: AuthorizationService,
    user_id: str,
    code: str,
) -> None:
    """Background job: trade ``code`` for tokens and store them."""
    try:
        await authorizations.complete_authorization(user_id, code)
    except (TransportError, CryptoError) as exc:
        logger.error(
            f"Authorization code exchange failed for {mask_user_id(user_id)}: "
            f"{exc.__class__.__name__}: {exc}"
        )
        inc_counter("authorizations_failed_total")


async def oauth_callback_handler(
    request: Request,
    background_tasks: BackgroundTasks,
    code: str | None = None,
    state: str | None = None,
) -> PlainTextResponse:
    if not code or not state:
        logger.warning("OAuth callback without code or state")
        raise HTTPException(status_code=400, detail="Missing code or state")

    background_tasks.add_task(
        exchange_authorization_code,
        request.app.state.authorizations,
        state,
        code,
    )
    logger.info(f"OAuth callback received for {mask_user_id(state)}, exchange scheduled")
    return PlainTextResponse(AUTHORIZATION_RECEIVED)
