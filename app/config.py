"""
Application Configuration - Pydantic Settings for type-safe config.

FAIL FAST - Critical config is validated at startup.
"""

import sys

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ConfigurationError(Exception):
    """Raised when critical configuration is missing or invalid."""

    pass


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database Configuration - NO DEFAULT for production safety
    database_url: str = ""
    database_read_url: str | None = None  # Optional read replica
    database_pool_size: int = 10
    database_max_overflow: int = 5
    database_pool_timeout: int = 30
    database_pool_recycle: int = 3600
    run_migrations_on_startup: bool = False

    # API Configuration
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    api_title: str = "Image Studio API"
    api_version: str = "0.1.0"
    api_description: str = "Credit-gated image generation and background removal"

    # Auth service (resolves bearer tokens to user identities)
    auth_url: str = ""  # e.g. https://<project>.supabase.co
    auth_api_key: str = ""  # Sent as the apikey header
    auth_timeout_seconds: float = 10.0

    # Image generation provider
    provider_url: str = "https://ai.gateway.lovable.dev/v1/chat/completions"
    provider_api_key: str = ""
    provider_model: str = "google/gemini-2.5-flash-image"
    provider_timeout_seconds: float = 120.0

    # Credits
    max_images_per_request: int = 4
    signup_credits: int = 5

    # Background removal models (rembg session names)
    removal_model_fast: str = "u2netp"
    removal_model_quality: str = "isnet-general-use"

    # Logging
    log_level: str = "INFO"
    log_format: str = "json"  # json or console

    # Observability - Metrics
    metrics_enabled: bool = True

    # Observability - Tracing
    tracing_enabled: bool = False
    otlp_endpoint: str = "http://otel-collector:4317"
    otlp_insecure: bool = True
    service_name: str = "image-studio-api"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    @model_validator(mode="after")
    def validate_critical_config(self) -> "Settings":
        """
        FAIL FAST: Validate critical configuration at startup.

        The app MUST NOT start if critical config is missing.
        """
        errors: list[str] = []

        if not self.database_url:
            errors.append("DATABASE_URL is required but empty or missing")
        elif not self.database_url.startswith(("postgresql", "postgres")):
            errors.append(
                f"DATABASE_URL must be a PostgreSQL URL, got: {self.database_url[:20]}..."
            )

        if not self.auth_url:
            errors.append("AUTH_URL is required but empty or missing")

        if not self.provider_api_key:
            errors.append("PROVIDER_API_KEY is required but empty or missing")

        if self.max_images_per_request < 1:
            errors.append(
                f"MAX_IMAGES_PER_REQUEST must be at least 1, got: {self.max_images_per_request}"
            )

        if self.signup_credits < 0:
            errors.append(f"SIGNUP_CREDITS cannot be negative, got: {self.signup_credits}")

        if errors:
            error_msg = "\n".join(
                [
                    "",
                    "=" * 60,
                    "CRITICAL CONFIGURATION ERROR - APPLICATION CANNOT START",
                    "=" * 60,
                    *[f"  ✗ {e}" for e in errors],
                    "=" * 60,
                    "",
                ]
            )
            print(error_msg, file=sys.stderr)
            raise ConfigurationError(error_msg)

        return self

    @property
    def read_database_url(self) -> str:
        """Get read database URL (fallback to primary if no replica)."""
        return self.database_read_url or self.database_url


# Global settings instance - validates at import time
settings = Settings()
