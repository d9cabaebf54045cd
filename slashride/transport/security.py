# slashride/transport/security.py
"""
Security utilities for the public HTTP surface.

- Slack request signing (HMAC-SHA256 of ``v0:{timestamp}:{body}``)
- Replay protection via the request timestamp
- Bearer token guard for /metrics
- Security headers and sanitized error messages
"""
import hashlib
import hmac
import time

from fastapi import Depends, HTTPException, Request, Response, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from slashride.core.errors import TransportError
from slashride.infra.logging_config import get_logger

logger = get_logger(__name__)

# Maximum age for signed requests (prevents replay attacks)
SLACK_MAX_AGE_SECONDS = 300  # 5 minutes
SLACK_SIGNATURE_VERSION = "v0"

metrics_bearer_scheme = HTTPBearer(
    scheme_name="Metrics Token",
    description="Enter your metrics token (without 'Bearer ' prefix)",
    auto_error=False,
)


# =============================================================================
# SLACK REQUEST SIGNATURES
# =============================================================================

def compute_slack_signature(secret: str, timestamp: str, body: bytes) -> str:
    """
    Compute the ``X-Slack-Signature`` value for a request.

    Args:
        secret: The app's signing secret
        timestamp: ``X-Slack-Request-Timestamp`` header value
        body: Raw request body bytes

    Returns:
        ``"v0=" + hex HMAC-SHA256``
    """
    basestring = f"{SLACK_SIGNATURE_VERSION}:{timestamp}:".encode() + body
    digest = hmac.new(secret.encode(), basestring, hashlib.sha256).hexdigest()
    return f"{SLACK_SIGNATURE_VERSION}={digest}"


def verify_slack_signature(
    secret: str,
    timestamp: str | None,
    signature: str | None,
    body: bytes,
    now: float | None = None,
) -> tuple[bool, str | None]:
    """
    Verify a Slack request signature.

    Returns:
        (is_valid, error_message)
    """
    if not timestamp or not signature:
        return False, "Missing signature headers"

    try:
        request_time = int(timestamp)
    except ValueError:
        return False, "Invalid timestamp format"

    current_time = int(now if now is not None else time.time())
    age = abs(current_time - request_time)

    if age > SLACK_MAX_AGE_SECONDS:
        return False, f"Request expired (age: {age}s, max: {SLACK_MAX_AGE_SECONDS}s)"

    expected = compute_slack_signature(secret, timestamp, body)

    # Constant-time comparison
    if not hmac.compare_digest(signature, expected):
        return False, "Invalid signature"

    return True, None


# =============================================================================
# METRICS ACCESS
# =============================================================================

def require_metrics_auth(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(metrics_bearer_scheme),
) -> None:
    """
    Dependency for /metrics.

    404 unless metrics are enabled and METRICS_TOKEN is set, then 401 for a
    missing or wrong ``Authorization: Bearer <METRICS_TOKEN>``.
    """
    app_settings = request.app.state.settings
    expected = app_settings.metrics_token
    if not app_settings.enable_metrics or not expected:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Not found")

    presented = credentials.credentials if credentials else ""
    if presented and hmac.compare_digest(presented.encode(), expected.encode()):
        return

    logger.warning("Rejected /metrics request (%s token)", "bad" if presented else "no")
    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Invalid credentials" if presented else "Authentication required",
        headers={"WWW-Authenticate": "Bearer"},
    )


# =============================================================================
# RESPONSE HARDENING
# =============================================================================

SECURITY_HEADERS = {
    "X-Frame-Options": "DENY",
    "X-Content-Type-Options": "nosniff",
    "Referrer-Policy": "no-referrer",
    "Content-Security-Policy": "default-src 'none'; frame-ancestors 'none'",
    "Cross-Origin-Opener-Policy": "same-origin",
}
HSTS_HEADER = "max-age=31536000; includeSubDomains"


def add_security_headers(response: Response, *, hsts: bool = False) -> Response:
    response.headers.update(SECURITY_HEADERS)
    response.headers.setdefault("Cache-Control", "no-store")
    if hsts:
        response.headers["Strict-Transport-Security"] = HSTS_HEADER
    return response


_PUBLIC_ERROR_MESSAGES: tuple[tuple[type[Exception], str], ...] = (
    (TransportError, "Service temporarily unavailable"),
    (TimeoutError, "Request timeout"),
    (ValueError, "Invalid input"),
)


def sanitize_error_message(error: Exception, is_production: bool) -> str:
    """Full text in dev; a fixed phrase per error family in production."""
    if not is_production:
        return str(error)
    for error_type, message in _PUBLIC_ERROR_MESSAGES:
        if isinstance(error, error_type):
            return message
    return "An error occurred"
