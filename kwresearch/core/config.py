"""Application configuration loaded from environment variables.

All configuration is via environment variables (or a local .env file).
No hardcoded credentials. Provider credentials are optional: a missing
SerpAPI key switches suggestions to the synthetic generator, and missing
Google Ads credentials make metrics enrichment return no data.
"""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = Field(default="Keyword Research Service")
    app_version: str = Field(default="1.0.0")
    debug: bool = Field(default=False)
    environment: str = Field(default="development")

    # Server
    port: int = Field(default=8000, description="Port to bind to")
    host: str = Field(default="0.0.0.0", description="Host to bind to")
    frontend_url: str | None = Field(
        default=None, description="Allowed CORS origin (all origins if unset)"
    )

    # Logging
    log_level: str = Field(default="INFO", description="Log level")
    log_format: str = Field(default="json", description="Log format: json or text")

    # SerpAPI (suggestion provider)
    serpapi_key: str | None = Field(
        default=None,
        description="SerpAPI key; synthetic suggestions are used when unset",
    )
    serpapi_timeout: float = Field(
        default=30.0, description="SerpAPI request timeout in seconds"
    )
    serpapi_max_retries: int = Field(
        default=2, description="Maximum attempts for SerpAPI requests"
    )
    serpapi_retry_delay: float = Field(
        default=1.0, description="Base delay between retries in seconds"
    )
    serpapi_circuit_failure_threshold: int = Field(
        default=5, description="Failures before circuit opens"
    )
    serpapi_circuit_recovery_timeout: float = Field(
        default=60.0, description="Seconds before attempting recovery"
    )

    # Google Ads (metrics provider)
    google_ads_client_id: str | None = Field(default=None)
    google_ads_client_secret: str | None = Field(default=None)
    google_ads_refresh_token: str | None = Field(default=None)
    google_ads_developer_token: str | None = Field(default=None)
    google_ads_customer_id: str | None = Field(
        default=None, description="Customer account id (digits, dashes allowed)"
    )
    google_ads_login_customer_id: str | None = Field(
        default=None, description="Manager account id sent as login-customer-id"
    )
    google_ads_api_version: str = Field(default="v18")
    google_ads_timeout: float = Field(
        default=30.0, description="Google Ads request timeout in seconds"
    )
    google_ads_max_retries: int = Field(
        default=3, description="Maximum attempts for token exchange and metrics calls"
    )
    google_ads_retry_delay: float = Field(
        default=1.0, description="Base delay between retries in seconds"
    )
    google_ads_cache_access_token: bool = Field(
        default=False,
        description="Reuse the OAuth access token until shortly before it expires",
    )
    google_ads_circuit_failure_threshold: int = Field(
        default=5, description="Failures before circuit opens"
    )
    google_ads_circuit_recovery_timeout: float = Field(
        default=60.0, description="Seconds before attempting recovery"
    )

    # Keyword research
    default_geography: str = Field(
        default="2840", description="Default geo target constant (United States)"
    )
    default_language: str = Field(
        default="1000", description="Default language constant (English)"
    )
    result_cache_ttl_hours: float = Field(
        default=24.0, description="Freshness window for cached research results"
    )


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings()
