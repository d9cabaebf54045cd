# slashride/transport/http_app.py
"""
HTTP application.

Public:
- POST /commands/slack   slash commands (Slack request signature)
- GET  /oauth/callback   ride API authorization redirect
- GET  /health, /ready   probes

Protected:
- GET  /metrics          METRICS_TOKEN bearer
"""
from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import BackgroundTasks, Depends, FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse

from slashride.config import Settings, settings, validate_or_warn
from slashride.infra.crypto import CryptoNotConfiguredError, FernetCrypto
from slashride.infra.db_async import close_pool, init_pool, validate_schema_version
from slashride.infra.health_checks_async import ReadinessProbe
from slashride.infra.http_client import close_all_sessions
from slashride.infra.logging_config import get_logger, setup_logging
from slashride.infra.memory_store import InMemoryAuthorizationStore, InMemoryRideRepository
from slashride.infra.metrics import metrics_snapshot
from slashride.infra.oauth import AuthorizationService, OAuthClient
from slashride.infra.pg_auth_repo_async import AsyncPostgresAuthorizationStore
from slashride.infra.pg_ride_repo_async import AsyncPostgresRideRepository
from slashride.infra.rate_limiter import InMemoryRateLimiter
from slashride.transport.middleware import SlashRideMiddleware
from slashride.transport.oauth_callback import oauth_callback_handler
from slashride.transport.security import require_metrics_auth, sanitize_error_message
from slashride.transport.slack_command import slack_command_handler

# Initialize logging first
setup_logging(
    level=settings.log_level,
    use_json=settings.is_production
)

logger = get_logger(__name__)


def build_oauth_client(app_settings: Settings) -> OAuthClient:
    return OAuthClient(
        client_id=app_settings.uber_client_id or "",
        client_secret=app_settings.uber_client_secret or "",
        token_url=app_settings.uber_oauth_url,
        authorize_url=app_settings.uber_authorize_url,
        redirect_uri=app_settings.uber_callback_url or "",
        scopes=app_settings.uber_scopes,
    )


async def _open_postgres_stores(app_settings: Settings):
    try:
        crypto = FernetCrypto(app_settings.token_encryption_key)
    except CryptoNotConfiguredError as exc:
        logger.critical("TOKEN_ENCRYPTION_KEY is required when RIDE_STORE=postgres")
        raise RuntimeError("TOKEN_ENCRYPTION_KEY is not configured") from exc

    await init_pool(
        app_settings.database_dsn,
        min_size=app_settings.pg_pool_min,
        max_size=app_settings.pg_pool_max,
        statement_timeout_ms=app_settings.pg_statement_timeout_ms,
        connect_timeout=app_settings.pg_connect_timeout,
    )
    logger.info("Database pool initialized")

    # Migrations run separately: python -m slashride.infra.migrate
    try:
        schema_result = await validate_schema_version(app_settings.expected_schema_version)
        logger.info(
            f"Schema validated: {schema_result['current_version']}",
            extra=schema_result
        )
    except Exception:
        logger.critical("Schema validation failed", exc_info=True)
        await close_pool()
        raise

    return AsyncPostgresRideRepository(), AsyncPostgresAuthorizationStore(crypto)


@asynccontextmanager
async def lifespan(fastapi_app: FastAPI):
    """Application lifecycle: startup and shutdown"""
    app_settings: Settings = fastapi_app.state.settings

    # STARTUP
    logger.info(f"Starting application: env={app_settings.app_env}, store={app_settings.ride_store}")
    validate_or_warn(app_settings)

    if app_settings.uses_postgres:
        rides, auth_store = await _open_postgres_stores(app_settings)
        fastapi_app.state.readiness = ReadinessProbe()
    else:
        rides, auth_store = InMemoryRideRepository(), InMemoryAuthorizationStore()
        fastapi_app.state.readiness = None

    fastapi_app.state.rides = rides
    fastapi_app.state.authorizations = AuthorizationService(
        build_oauth_client(app_settings),
        auth_store,
    )

    await fastapi_app.state.rate_limiter.start_cleanup()

    logger.info("Application startup complete")

    yield

    # SHUTDOWN
    logger.info("Shutting down application")
    await fastapi_app.state.rate_limiter.stop_cleanup()
    await close_all_sessions()
    if app_settings.uses_postgres:
        await close_pool()
    logger.info("Application shutdown complete")


def create_app(app_settings: Settings | None = None) -> FastAPI:
    app_settings = app_settings or settings

    fastapi_app = FastAPI(
        title="slashride",
        description="Ride requests from chat slash commands",
        version="1.0.0",
        lifespan=lifespan,
        docs_url=None if app_settings.is_production else "/docs",
        redoc_url=None if app_settings.is_production else "/redoc",
        openapi_url=None if app_settings.is_production else "/openapi.json",
    )
    fastapi_app.state.settings = app_settings
    fastapi_app.state.rate_limiter = InMemoryRateLimiter(
        max_requests=app_settings.command_rate_limit_per_minute,
        window_seconds=60,
    )

    fastapi_app.add_middleware(
        SlashRideMiddleware,
        log_requests=app_settings.enable_request_logging,
        hsts=app_settings.is_production or app_settings.is_staging,
    )

    _register_routes(fastapi_app)
    return fastapi_app


def _register_routes(fastapi_app: FastAPI) -> None:

    @fastapi_app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        if exc.status_code >= 500:
            logger.error(f"Server error: {exc.detail}", extra={"status_code": exc.status_code})

        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.detail},
            headers=exc.headers,
        )

    @fastapi_app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled exception: {exc.__class__.__name__}", exc_info=True)
        error_message = sanitize_error_message(exc, request.app.state.settings.is_production)
        return JSONResponse(status_code=500, content={"error": error_message})

    @fastapi_app.get("/health")
    def health():
        """Liveness probe. Minimal information."""
        return {"status": "healthy"}

    @fastapi_app.get("/ready")
    async def ready(request: Request):
        probe = request.app.state.readiness
        if probe is None:
            return {"status": "healthy"}

        result = await probe.run()
        if result["status"] != "healthy":
            return JSONResponse(status_code=503, content={"status": "unhealthy"})

        return {"status": "healthy"}

    @fastapi_app.get("/metrics", dependencies=[Depends(require_metrics_auth)])
    def metrics():
        return metrics_snapshot()

    @fastapi_app.post("/commands/slack")
    async def slash_command(request: Request):
        return await slack_command_handler(request)

    @fastapi_app.get("/oauth/callback")
    async def oauth_callback(
        request: Request,
        background_tasks: BackgroundTasks,
        code: str | None = None,
        state: str | None = None,
    ):
        return await oauth_callback_handler(request, background_tasks, code=code, state=state)


app = create_app()
