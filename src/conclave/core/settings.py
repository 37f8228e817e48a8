"""Application settings and configuration.

This module defines all configuration options for the Conclave service.
Settings are loaded from environment variables with sensible defaults and are
built once at process startup, then handed to ``create_app``.
"""

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Settings can be overridden via environment variables or .env files.
    """

    # Application metadata
    app_name: str = Field(default="Conclave", alias="APP_NAME")
    app_version: str = Field(default="0.1.0", alias="APP_VERSION")
    debug: bool = Field(default=False, alias="DEBUG")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Database configuration
    database_url: str = Field(default="sqlite:///./conclave.db", alias="DATABASE_URL")
    sql_debug: bool = Field(default=False, alias="SQL_DEBUG")
    auto_create_tables: bool = Field(default=True, alias="AUTO_CREATE_TABLES")

    # Identity verification
    identity_mode: Literal["remote", "jwt"] = Field(default="remote", alias="IDENTITY_MODE")
    identity_service_url: str = Field(
        default="https://auth.imajin.ai",
        alias="IDENTITY_SERVICE_URL",
    )
    identity_timeout_seconds: float = Field(default=5.0, alias="IDENTITY_TIMEOUT_SECONDS")

    # Shared secret for locally issued bearer tokens (IDENTITY_MODE=jwt)
    secret_key: str = Field(default="change-me", alias="SECRET_KEY")
    jwt_algorithm: str = Field(default="HS256", alias="JWT_ALGORITHM")

    # Invites
    invite_base_url: str = Field(default="https://chat.imajin.ai", alias="INVITE_BASE_URL")

    # Message pagination
    message_page_default: int = Field(default=50, alias="MESSAGE_PAGE_DEFAULT")
    message_page_max: int = Field(default=100, alias="MESSAGE_PAGE_MAX")

    # CORS configuration for web frontend access
    cors_origins: list[str] = Field(
        default=["*"],
        alias="CORS_ORIGINS",
    )
    cors_allow_credentials: bool = Field(default=True, alias="CORS_ALLOW_CREDENTIALS")
    cors_allow_methods: list[str] = Field(
        default=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        alias="CORS_ALLOW_METHODS",
    )
    cors_allow_headers: list[str] = Field(
        default=["*"],
        alias="CORS_ALLOW_HEADERS",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        validate_assignment=True,
        extra="ignore",
        populate_by_name=True,
    )

    @property
    def database_url_sync(self) -> str:
        """Return a sync-compatible database URL for tooling.

        Converts asyncpg URLs to psycopg for synchronous database operations
        like Alembic migrations.
        """
        url = self.database_url
        if url.startswith("postgresql+asyncpg"):
            return url.replace("postgresql+asyncpg", "postgresql+psycopg", 1)
        if url.startswith(("postgresql://", "postgres://")):
            return "postgresql+psycopg://" + url.split("://", 1)[1]
        return url
