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
    database_pool_size: int = 10
    database_max_overflow: int = 5
    database_pool_timeout: int = 30
    database_pool_recycle: int = 3600

    # API Configuration
    api_host: str = "0.0.0.0"
    api_port: int = 3000
    api_title: str = "PhotoForge API"
    api_version: str = "0.1.0"
    api_description: str = "AI photo generation backend with a crystal credit economy"

    # Public URL the provider calls back on (no trailing slash)
    public_base_url: str = "http://localhost:3000"
    webhook_secret: str = ""  # Shared token embedded in callback URLs

    # Identity provider
    GOOGLE_CLIENT_ID: str = ""

    # Admin authentication
    ADMIN_EMAIL: str = ""
    ADMIN_PASSWORD_HASH: str = ""  # Argon2id hash, see `argon2 -id`
    ADMIN_JWT_SECRET: str = ""
    admin_jwt_expire_hours: int = 24

    # Generation / training provider (Astria-compatible)
    astria_api_key: str = ""
    astria_base_url: str = "https://api.astria.ai"
    provider_timeout_seconds: float = 60.0
    demo_tune_id: str = "1504944"  # Public base tune used for the "demo" model
    base_tune_id: str = "1504944"  # Base tune new LoRA trainings derive from
    model_trigger_token: str = "ohwx"
    placeholder_image_url: str = "https://placehold.co/512x768?text=Generating"

    # Prompt enhancement (OpenAI-compatible chat completions)
    openai_api_key: str = ""
    openai_base_url: str = "https://api.openai.com/v1"
    openai_model: str = "gpt-4o-mini"
    prompt_enhancement_timeout_seconds: float = 5.0

    # Admin notifications (Telegram Bot API)
    telegram_bot_token: str = ""
    telegram_admin_chat_id: str = ""
    telegram_api_base_url: str = "https://api.telegram.org"

    # Listing
    list_limit: int = 50

    # Logging
    log_level: str = "INFO"
    log_format: str = "json"  # json or console

    # Observability - Metrics
    metrics_enabled: bool = True

    # Observability - Tracing
    tracing_enabled: bool = False
    otlp_endpoint: str = "http://otel-collector:4317"
    otlp_insecure: bool = True
    service_name: str = "photoforge-api"

    # Migrations
    run_migrations_on_startup: bool = False

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

        if self.public_base_url.endswith("/"):
            errors.append("PUBLIC_BASE_URL must not end with a slash")

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
    def telegram_configured(self) -> bool:
        """Whether admin notifications can be delivered."""
        return bool(self.telegram_bot_token and self.telegram_admin_chat_id)


# Global settings instance - validates at import time
settings = Settings()


def get_settings() -> Settings:
    """Get application settings instance."""
    return settings
