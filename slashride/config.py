# slashride/config.py
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Literal

from slashride.infra.logging_config import get_logger

logger = get_logger(__name__)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # Application
    app_env: Literal["dev", "staging", "prod"] = "dev"
    log_level: str = "INFO"

    # Storage
    # "postgres" - asyncpg pool, migrations applied separately
    # "memory"   - in-process dicts, for local development only
    ride_store: Literal["postgres", "memory"] = "postgres"
    expected_schema_version: str = "002_authorizations.sql"  # Update on deploy when new migrations are added
    database_url: str | None = None
    pghost: str = "localhost"
    pgport: int = 5432
    pguser: str = "postgres"
    pgpassword: str = ""
    pgdatabase: str = "postgres"
    pg_pool_min: int = 2
    pg_pool_max: int = 10
    pg_connect_timeout: int = 5
    pg_statement_timeout_ms: int = 30000

    # Ride API
    uber_base_url: str = "https://sandbox-api.uber.com"
    uber_client_id: str | None = None
    uber_client_secret: str | None = None
    uber_authorize_url: str = "https://login.uber.com/oauth/v2/authorize"
    uber_oauth_url: str = "https://login.uber.com/oauth/v2/token"
    uber_callback_url: str | None = None  # Public URL of GET /oauth/callback
    uber_scopes: str = "request profile"

    # Surge confirmation tokens are only honoured for this long after the ride was quoted
    surge_confirmation_ttl_seconds: int = 300

    # Geocoding
    google_geocoding_api_key: str | None = None
    geocoding_url: str = "https://maps.googleapis.com/maps/api/geocode/json"

    # Chat platform
    slack_signing_secret: str | None = None
    slash_command_name: str = "/uber"
    command_rate_limit_per_minute: int = 10  # Max commands per chat user per minute

    # Security
    token_encryption_key: str | None = None  # Fernet key for ride API tokens at rest
    metrics_token: str | None = None
    enable_metrics: bool = True

    # Feature Flags
    require_request_validation: bool = True
    enable_request_logging: bool = True

    @property
    def is_production(self) -> bool:
        return self.app_env == "prod"

    @property
    def is_staging(self) -> bool:
        return self.app_env == "staging"

    @property
    def uses_postgres(self) -> bool:
        return self.ride_store == "postgres"

    @property
    def database_dsn(self) -> str:
        if self.database_url:
            return self.database_url

        return (
            f"postgresql://{self.pguser}:{self.pgpassword}"
            f"@{self.pghost}:{self.pgport}/{self.pgdatabase}"
        )

    @property
    def oauth_enabled(self) -> bool:
        """Check if the ride API OAuth app is configured"""
        return bool(
            self.uber_client_id
            and self.uber_client_secret
            and self.uber_callback_url
        )

    def validate_required_for_production(self) -> list[str]:
        """Validate that required settings exist for production"""
        if not self.is_production:
            return []

        required_fields = [
            ("slack_signing_secret", self.slack_signing_secret),
            ("uber_client_id", self.uber_client_id),
            ("uber_client_secret", self.uber_client_secret),
            ("uber_callback_url", self.uber_callback_url),
            ("google_geocoding_api_key", self.google_geocoding_api_key),
            ("token_encryption_key", self.token_encryption_key),
        ]

        missing = [name for name, value in required_fields if not value]

        if self.ride_store != "postgres":
            missing.append("ride_store=postgres")

        return missing


def warn_on_risky_config(s: "Settings") -> list[str]:
    warnings: list[str] = []

    if not s.require_request_validation:
        warnings.append("require_request_validation=False: slash commands are accepted unsigned.")
    elif not s.slack_signing_secret:
        warnings.append("slack_signing_secret is not set (every slash command will be rejected).")

    if not s.oauth_enabled:
        warnings.append("ride API OAuth app is not fully configured (users cannot connect accounts).")

    if not s.google_geocoding_api_key:
        warnings.append("google_geocoding_api_key is not set (address lookups will fail).")

    if not s.token_encryption_key:
        warnings.append("token_encryption_key is not set (ride API tokens cannot be stored).")

    if s.enable_metrics and not s.metrics_token:
        warnings.append("enable_metrics=True but metrics_token is not set: /metrics is disabled.")

    if s.uber_base_url.startswith("https://sandbox") and s.is_production:
        warnings.append("prod: uber_base_url points at the sandbox API.")

    if s.ride_store == "memory":
        warnings.append("ride_store=memory: rides and authorizations are lost on restart.")

    return warnings


def validate_or_warn(s: "Settings") -> None:
    """
    In prod: enforce required settings (hard fail).
    In non-prod: warn only.
    """
    missing = s.validate_required_for_production()

    if missing:
        raise RuntimeError(f"Missing required settings for production: {', '.join(missing)}")

    for msg in warn_on_risky_config(s):
        logger.warning("[config] %s", msg)


settings = Settings()
