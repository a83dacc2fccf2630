"""
Utilities to centralize configuration handling for the access services.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field

PLACEHOLDER_SECRETS = {
    "change-me-please",
    "super-secret-change-me",
    "your-secret-key-here",
}


@dataclass
class AppConfig:
    """Simple container for application level settings."""

    app_name: str
    environment: str
    # PostgreSQL database
    db_host: str
    db_port: int
    db_user: str
    db_password: str
    db_name: str
    db_sslmode: str
    # App settings
    secret_key: str
    log_level: str
    frontend_url: str
    debug_mode: bool
    trust_proxy_headers: bool
    # JWT settings
    jwt_refresh_secret: str
    jwt_access_token_expires_hours: int
    jwt_refresh_token_expires_days: int
    # AWS
    aws_region: str
    cors_origins: list[str] = field(default_factory=list)

    @property
    def is_production(self) -> bool:
        return self.environment.strip().lower() == "production"

    @property
    def sqlalchemy_uri(self) -> str:
        """
        Build a SQLAlchemy PostgreSQL URI using psycopg2 as the driver.

        DATABASE_URL takes precedence when it is set; see db.init_engine.
        """
        ssl_arg = f"?sslmode={self.db_sslmode}" if self.db_sslmode else ""
        return (
            f"postgresql+psycopg2://{self.db_user}:{self.db_password}"
            f"@{self.db_host}:{self.db_port}/{self.db_name}{ssl_arg}"
        )


def _read_env(name: str, default: str | None = None) -> str:
    """
    Internal helper to fetch environment variables with support for defaults.
    """
    value = os.getenv(name)
    if value is None:
        if default is None:
            raise RuntimeError(f"Missing required environment variable '{name}'")
        value = default
    return value


def read_bool(name: str, default: str = "false") -> bool:
    value = _read_env(name, default)
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _split_csv(value: str) -> list[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


def validate_required_env_vars() -> None:
    """
    Validate that the critical environment variables are set.

    Designed to fail fast during startup rather than at the first signed token.
    Skipped when TESTING is enabled.

    Raises:
        RuntimeError: If any required variable is missing or has an invalid value
    """
    if read_bool("TESTING", "false"):
        return

    errors = []

    secret_key = os.getenv("SECRET_KEY", "")
    if not secret_key or secret_key in PLACEHOLDER_SECRETS:
        errors.append(
            "SECRET_KEY must be configured with a secure random value. "
            'Generate with: python3 -c "import secrets; print(secrets.token_urlsafe(32))"'
        )

    if not os.getenv("DATABASE_URL") and not os.getenv("POSTGRES_HOST"):
        errors.append("DATABASE_URL or POSTGRES_HOST must be configured")

    jwt_access_hours = os.getenv("JWT_ACCESS_TOKEN_EXPIRES_HOURS", "")
    if jwt_access_hours:
        try:
            int(jwt_access_hours)
        except ValueError:
            errors.append(
                f"JWT_ACCESS_TOKEN_EXPIRES_HOURS must be a valid integer, got: {jwt_access_hours}"
            )

    if errors:
        error_msg = "\nConfiguration Errors - Missing or invalid environment variables:\n"
        for error in errors:
            error_msg += f"  - {error}\n"
        raise RuntimeError(error_msg)


def load_config(app_name: str) -> AppConfig:
    """
    Produce an AppConfig instance populated from environment variables.
    """
    secret_key = _read_env("SECRET_KEY", "super-secret-change-me")
    return AppConfig(
        app_name=app_name,
        environment=_read_env("APP_ENV", "development"),
        db_host=_read_env("POSTGRES_HOST", "localhost"),
        db_port=int(_read_env("POSTGRES_PORT", "5432")),
        db_user=_read_env("POSTGRES_USER", "access"),
        db_password=_read_env("POSTGRES_PASSWORD", "access"),
        db_name=_read_env("POSTGRES_DB", "secure_access"),
        db_sslmode=_read_env("POSTGRES_SSLMODE", "disable"),
        secret_key=secret_key,
        log_level=_read_env("LOG_LEVEL", "INFO"),
        frontend_url=_read_env("FRONTEND_URL", "http://localhost:3000").rstrip("/"),
        debug_mode=read_bool("DEBUG_MODE", "false"),
        trust_proxy_headers=read_bool("TRUST_PROXY_HEADERS", "false"),
        jwt_refresh_secret=_read_env("JWT_REFRESH_SECRET", secret_key),
        jwt_access_token_expires_hours=int(_read_env("JWT_ACCESS_TOKEN_EXPIRES_HOURS", "24")),
        jwt_refresh_token_expires_days=int(_read_env("JWT_REFRESH_TOKEN_EXPIRES_DAYS", "7")),
        aws_region=_read_env("AWS_REGION", "us-east-1"),
        cors_origins=_split_csv(_read_env("CORS_ORIGINS", "http://localhost:3000")),
    )
