# =============================================================================
# app/config.py - Application Settings
# =============================================================================
# This module loads configuration from environment variables using pydantic-settings.
# It provides a single Settings class with all configuration values.
#
# Usage:
#   from app.config import settings
#   print(settings.SUPABASE_URL)
#
# Environment variables are loaded from:
# 1. System environment variables
# 2. .env file in project root (if exists)
# =============================================================================

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Uses pydantic-settings to:
    - Automatically load from .env file
    - Validate types and constraints
    - Provide sensible defaults for development

    All settings are accessed via the global `settings` instance.
    """

    # -------------------------------------------------------------------------
    # Supabase Configuration
    # -------------------------------------------------------------------------
    # These are required - app won't start without them

    SUPABASE_URL: str = Field(
        ...,
        description="Supabase project URL (e.g., https://xxx.supabase.co)"
    )

    SUPABASE_ANON_KEY: str = Field(
        ...,
        description="Supabase anon/public API key"
    )

    SUPABASE_SERVICE_KEY: str = Field(
        ...,
        description="Supabase service_role key (bypasses RLS)"
    )

    SUPABASE_JWT_SECRET: str = Field(
        default="dev-jwt-secret-change-in-production",
        description="Legacy HS256 JWT secret used to verify Supabase access tokens"
    )

    # -------------------------------------------------------------------------
    # Redis Configuration (for Celery)
    # -------------------------------------------------------------------------

    REDIS_URL: str = Field(
        default="redis://localhost:6379/0",
        description="Redis connection URL for Celery broker"
    )

    # -------------------------------------------------------------------------
    # Gemini / LLM Configuration
    # -------------------------------------------------------------------------

    GEMINI_API_KEY: str = Field(
        ...,
        description="Google Generative AI API key"
    )

    GEMINI_EXTRACTION_MODEL: str = Field(
        default="gemini-2.5-flash",
        description="Vision model used for invoice/receipt extraction"
    )

    GEMINI_ANALYSIS_MODEL: str = Field(
        default="gemini-2.5-flash",
        description="Model used for analysis cards (must support JSON output)"
    )

    GEMINI_CHAT_MODEL: str = Field(
        default="gemini-2.5-flash",
        description="Model used for the streaming chat assistant"
    )

    GEMINI_ENRICHMENT_MODEL: str = Field(
        default="gemini-2.5-pro",
        description="Model used for entity enrichment with Google Search"
    )

    GEMINI_TIMEOUT_SECONDS: int = Field(
        default=60,
        ge=5,
        le=600,
        description="Timeout for a single extraction/analysis/enrichment call"
    )

    CHAT_TIMEOUT_SECONDS: int = Field(
        default=120,
        ge=5,
        le=600,
        description="Timeout for a streaming chat call"
    )

    CHAT_TEMPERATURE: float = Field(
        default=0.1,
        ge=0.0,
        le=2.0,
        description="Sampling temperature for the chat assistant"
    )

    # -------------------------------------------------------------------------
    # Application Settings
    # -------------------------------------------------------------------------

    ENVIRONMENT: Literal["development", "staging", "production"] = Field(
        default="development",
        description="Current environment"
    )

    DEBUG: bool = Field(
        default=False,
        description="Enable debug mode (verbose logging, auto-reload)"
    )

    LOG_LEVEL: str | None = Field(
        default=None,
        description="Override the log level (defaults to DEBUG in debug mode, INFO otherwise)"
    )

    API_HOST: str = Field(
        default="0.0.0.0",
        description="Host to bind the API server to"
    )

    API_PORT: int = Field(
        default=3001,
        ge=1,
        le=65535,
        description="Port for the API server"
    )

    FRONTEND_URL: str = Field(
        default="https://verifloapp.com",
        description="Public URL of the web app, used in email links"
    )

    # CORS origins (comma-separated string that gets parsed)
    CORS_ORIGINS: str = Field(
        default="http://localhost:3000,http://localhost:5173",
        description="Allowed CORS origins (comma-separated)"
    )

    # -------------------------------------------------------------------------
    # Credits
    # -------------------------------------------------------------------------

    CREDIT_STORE_BACKEND: Literal["supabase", "memory"] = Field(
        default="supabase",
        description="Where balances live; 'memory' is for local development only"
    )

    # -------------------------------------------------------------------------
    # Rate Limiting
    # -------------------------------------------------------------------------

    RATE_LIMIT_WINDOW_SECONDS: int = Field(
        default=60,
        ge=1,
        description="Fixed window length for per-user rate limits"
    )

    RATE_LIMIT_EXTRACT_MAX: int = Field(default=30, ge=1)
    RATE_LIMIT_ANALYZE_MAX: int = Field(default=30, ge=1)
    RATE_LIMIT_CHAT_MAX: int = Field(default=60, ge=1)
    RATE_LIMIT_ENRICH_MAX: int = Field(default=10, ge=1)
    RATE_LIMIT_PAYMENT_MAX: int = Field(default=10, ge=1)

    # -------------------------------------------------------------------------
    # Error Tracking
    # -------------------------------------------------------------------------

    SENTRY_DSN: str | None = Field(
        default=None,
        description="Sentry DSN; error tracking is disabled when unset"
    )

    SENTRY_TRACES_SAMPLE_RATE: float = Field(
        default=0.1,
        ge=0.0,
        le=1.0,
    )

    # -------------------------------------------------------------------------
    # Email (ZeptoMail)
    # -------------------------------------------------------------------------

    ZEPTOMAIL_API_URL: str = Field(
        default="https://api.zeptomail.com/v1.1/email",
    )

    ZEPTOMAIL_API_KEY: str | None = Field(
        default=None,
        description="ZeptoMail send-mail token; email is disabled when unset"
    )

    EMAIL_FROM_ADDRESS: str = Field(default="noreply@verifloapp.com")
    EMAIL_FROM_NAME: str = Field(default="Veriflo")

    # -------------------------------------------------------------------------
    # Payments (Razorpay)
    # -------------------------------------------------------------------------

    RAZORPAY_API_URL: str = Field(default="https://api.razorpay.com/v1")
    RAZORPAY_KEY_ID: str | None = Field(default=None)
    RAZORPAY_KEY_SECRET: str | None = Field(default=None)

    USD_TO_INR: float = Field(
        default=85,
        gt=0,
        description="Conversion rate used to price USD plans in INR"
    )

    # -------------------------------------------------------------------------
    # Scheduled Jobs
    # -------------------------------------------------------------------------

    CRON_SECRET: str = Field(
        default="",
        description="Shared secret expected in X-Cron-Secret; empty disables the check"
    )

    # -------------------------------------------------------------------------
    # Upload Settings
    # -------------------------------------------------------------------------

    MAX_UPLOAD_SIZE_MB: int = Field(
        default=10,
        ge=1,
        le=50,
        description="Maximum decoded document size for extraction in MB"
    )

    # -------------------------------------------------------------------------
    # Pydantic Settings Configuration
    # -------------------------------------------------------------------------

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_ignore_empty=True,
        case_sensitive=True,
        extra="ignore",
    )

    # -------------------------------------------------------------------------
    # Computed Properties
    # -------------------------------------------------------------------------

    @property
    def cors_origins_list(self) -> list[str]:
        """
        Parse CORS_ORIGINS string into a list.

        Example: "http://localhost:3000, https://verifloapp.com" -> ["http://localhost:3000", "https://verifloapp.com"]
        """
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]

    @property
    def max_upload_size_bytes(self) -> int:
        """Convert MB to bytes for file size validation."""
        return self.MAX_UPLOAD_SIZE_MB * 1024 * 1024

    @property
    def log_level(self) -> str:
        if self.LOG_LEVEL:
            return self.LOG_LEVEL.upper()
        return "DEBUG" if self.DEBUG else "INFO"

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.ENVIRONMENT == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.ENVIRONMENT == "production"

    @property
    def payments_configured(self) -> bool:
        return bool(self.RAZORPAY_KEY_ID and self.RAZORPAY_KEY_SECRET)


@lru_cache
def get_settings() -> Settings:
    """
    Get cached Settings instance.

    Using lru_cache ensures we only parse .env and validate once,
    not on every access.

    Returns:
        Settings: The application settings instance
    """
    return Settings()


# Global settings instance for easy importing
# Usage: from app.config import settings
settings = get_settings()
