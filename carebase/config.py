"""
Application configuration.

Loads settings from environment variables with sensible defaults.
"""

from __future__ import annotations

import logging
from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    # ==========================================================================
    # Environment
    # ==========================================================================

    environment: str = "development"
    debug: bool = True
    log_level: str = "INFO"

    # ==========================================================================
    # API Server
    # ==========================================================================

    api_host: str = "0.0.0.0"
    api_port: int = 8103
    base_url: str = "http://localhost:8103/"
    cors_origins: str = "http://localhost:3000,http://localhost:5173"

    # ==========================================================================
    # Binary Storage
    # ==========================================================================

    binary_storage_path: str = "./data/binary"
    binary_chunk_size: int = 64 * 1024

    # Max chunks held between the content store and the HTTP response
    stream_queue_size: int = 8

    # Key used to sign storage URLs
    signing_key: str = "dev-signing-key-change-in-production"
    signed_url_expires_in: int = 3600

    # ==========================================================================
    # Repository
    # ==========================================================================

    # How many times a write that lost an optimistic-concurrency race is re-run
    conflict_retry_attempts: int = 3

    # ==========================================================================
    # Authentication
    # ==========================================================================

    jwt_secret_key: str = "dev-jwt-secret-change-in-production"
    jwt_algorithm: str = "HS256"
    jwt_access_token_expire_minutes: int = 60

    # ==========================================================================
    # Optional Services
    # ==========================================================================

    sentry_dsn: str = ""

    # ==========================================================================
    # Helpers
    # ==========================================================================

    @property
    def cors_origins_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def storage_base_url(self) -> str:
        """Public base URL of the binary storage endpoint."""
        return self.base_url.rstrip("/") + "/storage/"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


def configure_logging(settings: Settings | None = None) -> None:
    """Configure root logging from settings."""
    settings = settings or get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
