"""
Utilities to centralize configuration handling across the smartmenu services.
"""

from __future__ import annotations

import os
from dataclasses import dataclass


@dataclass
class AppConfig:
    """Simple container for application level settings."""

    app_name: str
    # PostgreSQL/Supabase database
    db_host: str
    db_port: int
    db_user: str
    db_password: str
    db_name: str
    db_sslmode: str
    database_url: str
    # Supabase
    supabase_url: str
    supabase_service_role_key: str
    # Storage
    storage_bucket_qr: str
    # App settings
    app_url: str
    secret_key: str
    log_level: str
    debug_mode: bool
    whatsapp_business_number: str
    whatsapp_token_ttl_minutes: int
    restaurant_cache_ttl_seconds: int
    # JWT settings
    jwt_access_token_expires_hours: int

    @property
    def sqlalchemy_uri(self) -> str:
        """
        Build a SQLAlchemy PostgreSQL URI using psycopg2 as the driver.

        DATABASE_URL, when set, wins over the individual POSTGRES_* settings.
        """
        if self.database_url:
            return self.database_url
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


def validate_required_env_vars() -> None:
    """
    Validate that all required environment variables are set.

    Database credentials are read at request time by the engine, so a missing
    value must stop the process at startup rather than on the first query.

    Raises:
        RuntimeError: If any required variable is missing
    """
    errors = []

    secret_key = os.getenv("SECRET_KEY", "")
    if not secret_key or secret_key in ["change-me-please", "your-secret-key-here"]:
        errors.append(
            "SECRET_KEY must be configured with a secure random value. "
            'Generate with: python3 -c "import secrets; print(secrets.token_urlsafe(32))"'
        )

    if not os.getenv("DATABASE_URL"):
        for name in ("POSTGRES_HOST", "POSTGRES_USER", "POSTGRES_PASSWORD", "POSTGRES_DB"):
            if not os.getenv(name, ""):
                errors.append(f"{name} must be configured (or set DATABASE_URL)")

    ttl = os.getenv("WHATSAPP_TOKEN_TTL_MINUTES", "")
    if ttl:
        try:
            if int(ttl) < 1:
                errors.append("WHATSAPP_TOKEN_TTL_MINUTES must be a positive integer")
        except ValueError:
            errors.append(f"WHATSAPP_TOKEN_TTL_MINUTES must be a valid integer, got: {ttl}")

    if errors:
        error_msg = "\nConfiguration Errors - Missing or invalid environment variables:\n"
        for error in errors:
            error_msg += f"  - {error}\n"
        raise RuntimeError(error_msg)


def load_config(app_name: str) -> AppConfig:
    """
    Produce an AppConfig instance populated from environment variables.

    Each service passes its desired `app_name` to keep logs easy to tell apart
    while still reusing the same config loader.
    """
    return AppConfig(
        app_name=app_name,
        db_host=_read_env("POSTGRES_HOST", "localhost"),
        db_port=int(_read_env("POSTGRES_PORT", "5432")),
        db_user=_read_env("POSTGRES_USER", ""),
        db_password=_read_env("POSTGRES_PASSWORD", ""),
        db_name=_read_env("POSTGRES_DB", "smartmenu"),
        db_sslmode=_read_env("POSTGRES_SSLMODE", "require"),
        database_url=_read_env("DATABASE_URL", ""),
        supabase_url=_read_env("SUPABASE_URL", ""),
        supabase_service_role_key=_read_env("SUPABASE_SERVICE_ROLE_KEY", ""),
        storage_bucket_qr=_read_env("STORAGE_BUCKET_QR", "qr-codes"),
        app_url=_read_env("APP_URL", "").rstrip("/"),
        secret_key=_read_env("SECRET_KEY", "change-me-please"),
        log_level=_read_env("LOG_LEVEL", "INFO"),
        debug_mode=read_bool("DEBUG_MODE", "false"),
        whatsapp_business_number=_read_env("WHATSAPP_BUSINESS_NUMBER", ""),
        whatsapp_token_ttl_minutes=int(_read_env("WHATSAPP_TOKEN_TTL_MINUTES", "60")),
        restaurant_cache_ttl_seconds=int(_read_env("RESTAURANT_CACHE_TTL_SECONDS", "300")),
        jwt_access_token_expires_hours=int(_read_env("JWT_ACCESS_TOKEN_EXPIRES_HOURS", "24")),
    )
