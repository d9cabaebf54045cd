# slashride/transport/middleware.py
"""
One middleware for every request: request id, timing log, last-resort error
reply and security headers.

An unhandled error on the slash command endpoint answers 200 with an
ephemeral apology.
"""
import time
import uuid
from typing import Callable

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from slashride.core.texts import SOMETHING_WENT_WRONG
from slashride.infra.logging_config import LogContext, get_logger
from slashride.transport.security import add_security_headers

logger = get_logger(__name__)

SLASH_COMMAND_PATH = "/commands/slack"
REQUEST_ID_HEADER = "X-Request-ID"


class SlashRideMiddleware(BaseHTTPMiddleware):
    def __init__(self, app: ASGIApp, *, log_requests: bool = True, hsts: bool = False):
        super().__init__(app)
        self.log_requests = log_requests
        self.hsts = hsts

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        request.state.request_id = request_id
        log_ctx = LogContext(logger, request_id=request_id)
        started = time.perf_counter()

        try:
            response = await call_next(request)
        except Exception as exc:
            log_ctx.error(
                f"{request.method} {request.url.path} failed: {exc.__class__.__name__}: {exc}",
                exc_info=True,
            )
            response = self._error_response(request.url.path, request_id)
        else:
            if self.log_requests:
                log_ctx.info(
                    f"{request.method} {request.url.path} -> {response.status_code} "
                    f"in {(time.perf_counter() - started) * 1000:.1f}ms",
                    extra={"path": request.url.path, "status_code": response.status_code},
                )

        response.headers[REQUEST_ID_HEADER] = request_id
        return add_security_headers(response, hsts=self.hsts)

    @staticmethod
    def _error_response(path: str, request_id: str) -> Response:
        if path == SLASH_COMMAND_PATH:
            return JSONResponse({"response_type": "ephemeral", "text": SOMETHING_WENT_WRONG})
        return JSONResponse(
            {"error": "Internal server error", "request_id": request_id},
            status_code=500,
        )
