# slashride/transport/slack_command.py
"""
Slack slash-command webhook.

Handles:
- POST /commands/slack (form fields ``user_id``, ``text``, ``response_url``,
  ``command``)

Flow:
1. Verify ``X-Slack-Signature`` (when validation is required)
2. Per-user rate limiting
3. Look up the user's ride API token; unauthorized users get a connect link
4. Build a CommandInterpreter bound to this request and run it
5. Reply ephemerally, or with an empty 200 when the answer went out through
   the response URL
"""
from __future__ import annotations

import time
from datetime import timedelta

from fastapi import HTTPException, Request, Response
from fastapi.responses import JSONResponse

from slashride.config import Settings
from slashride.core.errors import MissingRideError, TransportError
from slashride.core.interpreter import CommandInterpreter
from slashride.core.ports import RideRepository
from slashride.core.texts import (
    AUTHORIZATION_REQUIRED,
    NO_RIDE_ON_RECORD,
    RATE_LIMITED,
    SOMETHING_WENT_WRONG,
    render,
)
from slashride.infra.geocoding import GoogleAddressResolver
from slashride.infra.logging_config import LogContext, get_logger, mask_user_id
from slashride.infra.metrics import AppMetrics, inc_counter
from slashride.infra.notification import ResponseUrlNotifier
from slashride.infra.ride_provider import UberRideClient
from slashride.transport.security import verify_slack_signature

logger = get_logger(__name__)


def ephemeral(text: str) -> JSONResponse:
    return JSONResponse({"response_type": "ephemeral", "text": text}, status_code=200)


def build_interpreter(
    app_settings: Settings,
    *,
    bearer_token: str,
    response_url: str,
    rides: RideRepository,
) -> CommandInterpreter:
    """Wire a CommandInterpreter for one slash command."""
    return CommandInterpreter(
        resolver=GoogleAddressResolver(
            app_settings.google_geocoding_api_key,
            url=app_settings.geocoding_url,
        ),
        provider=UberRideClient(app_settings.uber_base_url, bearer_token),
        notifier=ResponseUrlNotifier(),
        rides=rides,
        response_url=response_url,
        slash_command=app_settings.slash_command_name,
        confirmation_ttl=timedelta(seconds=app_settings.surge_confirmation_ttl_seconds),
    )


def _verify_request(app_settings: Settings, request: Request, body: bytes) -> None:
    if not app_settings.require_request_validation:
        return

    if not app_settings.slack_signing_secret:
        logger.error("Slash command rejected: SLACK_SIGNING_SECRET is not configured")
        AppMetrics.request_validation_failed("slack")
        raise HTTPException(status_code=403, detail="Invalid signature")

    valid, error = verify_slack_signature(
        app_settings.slack_signing_secret,
        request.headers.get("X-Slack-Request-Timestamp"),
        request.headers.get("X-Slack-Signature"),
        body,
    )
    if not valid:
        logger.error(f"Slash command signature verification failed: {error}")
        AppMetrics.request_validation_failed("slack")
        raise HTTPException(status_code=403, detail="Invalid signature")


async def slack_command_handler(request: Request) -> Response:
    start_time = time.time()
    app_settings: Settings = request.app.state.settings
    slash = app_settings.slash_command_name

    body = await request.body()
    _verify_request(app_settings, request, body)

    form = await request.form()
    user_id = str(form.get("user_id") or "")
    text = str(form.get("text") or "")
    response_url = str(form.get("response_url") or "")

    if not user_id or not response_url:
        logger.warning("Slash command missing user_id or response_url")
        raise HTTPException(status_code=400, detail="Missing user_id or response_url")

    request_id = getattr(request.state, "request_id", "unknown")
    log_ctx = LogContext(logger, user_id=user_id, request_id=request_id)

    allowed, retry_after = request.app.state.rate_limiter.is_allowed(user_id)
    if not allowed:
        log_ctx.warning(f"Rate limit exceeded, retry_after={retry_after}s")
        inc_counter("commands_rate_limited_total")
        return ephemeral(render(RATE_LIMITED, slash, retry_after=retry_after))

    authorizations = request.app.state.authorizations
    bearer_token = await authorizations.get_valid_token(user_id)
    if bearer_token is None:
        log_ctx.info("No ride API authorization, sending connect link")
        inc_counter("authorization_prompts_total")
        return ephemeral(render(
            AUTHORIZATION_REQUIRED, slash, url=authorizations.authorize_url(user_id),
        ))

    interpreter = build_interpreter(
        app_settings,
        bearer_token=bearer_token,
        response_url=response_url,
        rides=request.app.state.rides,
    )

    try:
        reply = await interpreter.run(user_id, text)
    except MissingRideError:
        log_ctx.info("Accept without any ride on record")
        return ephemeral(render(NO_RIDE_ON_RECORD, slash))
    except TransportError as exc:
        log_ctx.error(
            f"Slash command failed: service={exc.service} status={exc.status} "
            f"retryable={exc.retryable}"
        )
        return ephemeral(render(SOMETHING_WENT_WRONG, slash))

    elapsed_ms = (time.time() - start_time) * 1000
    log_ctx.info(
        f"Slash command processed for {mask_user_id(user_id)}: "
        f"deferred={reply == ''}, elapsed={elapsed_ms:.0f}ms"
    )

    if not reply:
        return Response(status_code=200)
    return ephemeral(reply)
