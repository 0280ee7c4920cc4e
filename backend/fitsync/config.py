"""
Application Configuration

Uses Pydantic Settings for type-safe configuration.
"""

from pathlib import Path
from typing import List, Optional
from pydantic_settings import BaseSettings
from pydantic import Field, field_validator, ConfigDict

# Project root: repository checkout
PROJECT_ROOT = Path(__file__).parent.parent.parent


class Settings(BaseSettings):
    """Application settings with validation."""

    # === Core ===
    debug: bool = Field(default=False, description="Enable debug mode")
    log_level: str = Field(default="INFO", description="Logging level")
    environment: str = Field(
        default="development",
        description="Deployment environment (development, production)"
    )

    # === Database ===
    database_url: str = Field(
        default="sqlite:///./fitsync.db",
        description="Database connection URL"
    )

    # === CORS ===
    cors_origins: List[str] = Field(
        default_factory=lambda: ["http://localhost:3000"],
        description="Allowed CORS origins"
    )

    # === Strava ===
    strava_client_id: Optional[str] = Field(default=None)
    strava_client_secret: Optional[str] = Field(
        default=None,
        validation_alias="strava_secret"  # Also accept STRAVA_SECRET
    )
    strava_redirect_uri: Optional[str] = Field(
        default=None,
        description="OAuth callback URL (defaults to the request origin)"
    )
    strava_api_url: str = Field(default="https://www.strava.com/api/v3")
    strava_oauth_url: str = Field(default="https://www.strava.com/oauth")
    http_timeout_seconds: float = Field(default=30.0)

    # === Request queue ===
    # Strava allows ~600 requests / 15 min; stay below it.
    strava_max_requests_per_window: int = Field(default=550)
    strava_window_seconds: float = Field(default=15 * 60)
    strava_min_request_delay_seconds: float = Field(default=0.1)
    strava_max_retries: int = Field(default=3)
    strava_base_backoff_seconds: float = Field(default=1.0)

    # === Response cache ===
    cache_default_ttl_seconds: float = Field(default=5 * 60)

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    @field_validator('database_url')
    @classmethod
    def fix_postgres_url(cls, v: str) -> str:
        """Fix Render/Railway postgres:// URL to postgresql://"""
        if v.startswith("postgres://"):
            return v.replace("postgres://", "postgresql://", 1)
        return v

    @field_validator('cors_origins', mode='before')
    @classmethod
    def parse_cors_origins(cls, v):
        """Parse CORS origins from comma-separated string."""
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(',')]
        return v

    model_config = ConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )


# Global settings instance
settings = Settings()
