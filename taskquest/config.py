"""
Configuration management using pydantic-settings.
All settings loaded from environment variables (12-factor app).
"""

from functools import lru_cache
from typing import List

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Security
    jwt_secret: str = Field(
        default="change-this-to-a-secure-random-string-in-production",
        description="JWT signing secret (Supabase project JWT secret in production)",
    )
    jwt_algorithm: str = Field(default="HS256", description="JWT algorithm")
    jwt_expiration_minutes: int = Field(default=1440, description="JWT expiration (24h)")
    jwt_audience: str = Field(default="authenticated", description="Expected JWT audience")

    # Storage
    storage_backend: str = Field(default="duckdb", description="Storage backend (duckdb|supabase)")
    db_path: str = Field(default="./data/taskquest.duckdb", description="DuckDB file path")
    supabase_url: str = Field(default="", description="Supabase project URL")
    supabase_key: str = Field(default="", description="Supabase service role key")

    # Outbound HTTP
    http_timeout_seconds: float = Field(
        default=15.0, gt=0, description="Timeout for PostgREST and OAuth calls"
    )

    # OAuth providers
    oauth_redirect_base: str = Field(
        default="http://localhost:3000/integrations",
        description="Base URL the providers redirect back to",
    )
    google_client_id: str = Field(default="", description="Google OAuth client ID")
    google_client_secret: str = Field(default="", description="Google OAuth client secret")
    outlook_client_id: str = Field(default="", description="Microsoft OAuth client ID")
    outlook_client_secret: str = Field(default="", description="Microsoft OAuth client secret")
    slack_client_id: str = Field(default="", description="Slack OAuth client ID")
    slack_client_secret: str = Field(default="", description="Slack OAuth client secret")
    notion_client_id: str = Field(default="", description="Notion OAuth client ID")
    notion_client_secret: str = Field(default="", description="Notion OAuth client secret")
    github_client_id: str = Field(default="", description="GitHub OAuth client ID")
    github_client_secret: str = Field(default="", description="GitHub OAuth client secret")
    github_api_base_url: str = Field(
        default="https://api.github.com", description="GitHub REST API base URL"
    )

    # API
    api_host: str = Field(default="0.0.0.0", description="API host")
    api_port: int = Field(default=8000, description="API port")
    api_reload: bool = Field(default=True, description="Enable hot reload")
    cors_origins: str = Field(
        default="http://localhost:3000,http://localhost:5173",
        description="CORS allowed origins (comma-separated)",
    )

    # Logging
    log_level: str = Field(default="info", description="Log level")
    log_format: str = Field(default="json", description="Log format (json|console)")

    # Engine Configuration
    analytics_lookback_days: int = Field(
        default=30, ge=1, le=365, description="Default history window for dashboards"
    )
    forecast_lookback_days: int = Field(
        default=90, ge=7, le=365, description="History window for workload forecasts"
    )
    trend_tolerance: float = Field(
        default=0.10, ge=0.0, le=1.0, description="Relative band treated as a stable trend"
    )
    persist_insights: bool = Field(
        default=True, description="Upsert generated insights back to the store"
    )

    # Development
    dev_mode: bool = Field(default=True, description="Development mode")
    testing: bool = Field(default=False, description="Testing mode")

    @field_validator("cors_origins")
    @classmethod
    def parse_cors_origins(cls, v: str) -> List[str]:
        """Parse comma-separated CORS origins."""
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(",") if origin.strip()]
        return v

    @field_validator("storage_backend")
    @classmethod
    def validate_storage_backend(cls, v: str) -> str:
        v = v.lower()
        if v not in ("duckdb", "supabase"):
            raise ValueError(f"Unsupported storage backend: {v}")
        return v

    @property
    def supabase_rest_url(self) -> str:
        """PostgREST base URL for the Supabase project."""
        return f"{self.supabase_url.rstrip('/')}/rest/v1"

    def oauth_credentials(self, provider: str) -> tuple[str, str]:
        """Return (client_id, client_secret) for an OAuth provider."""
        return (
            getattr(self, f"{provider}_client_id", ""),
            getattr(self, f"{provider}_client_secret", ""),
        )


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.
    Uses lru_cache to ensure singleton behavior.
    """
    return Settings()
