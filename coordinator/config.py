"""Application configuration."""

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
        env_parse_none_str="null",
    )

    # Application
    app_name: str = Field(default="Counseling Coordinator API", alias="APP_NAME")
    app_version: str = Field(default="0.1.0", alias="APP_VERSION")
    environment: str = Field(default="development", alias="ENVIRONMENT")
    debug: bool = Field(default=False, alias="DEBUG")
    api_v1_prefix: str = Field(default="/api/v1", alias="API_V1_PREFIX")

    # Server
    host: str = Field(default="0.0.0.0", alias="HOST")
    port: int = Field(default=8000, alias="PORT")
    reload: bool = Field(default=False, alias="RELOAD")

    # Database
    database_url: str = Field(..., alias="DATABASE_URL")

    # Redis
    redis_host: str = Field(..., alias="REDIS_HOST")
    redis_port: int = Field(..., alias="REDIS_PORT")
    redis_username: str = Field(default="default", alias="REDIS_USERNAME")
    redis_password: str = Field(default="", alias="REDIS_PASSWORD")
    redis_decode_responses: bool = Field(default=True, alias="REDIS_DECODE_RESPONSES")

    # JWT
    jwt_secret_key: str = Field(..., alias="JWT_SECRET_KEY")
    jwt_algorithm: str = Field(default="HS256", alias="JWT_ALGORITHM")
    access_token_expire_minutes: int = Field(default=30, alias="ACCESS_TOKEN_EXPIRE_MINUTES")

    # Gate devices
    gate_device_secret: str = Field(
        default="test-gate-secret-for-development-only",
        alias="GATE_DEVICE_SECRET",
        description="Shared secret presented by entry-gate devices",
    )
    gate_scan_rate_limit_per_minute: int = Field(
        default=30,
        alias="GATE_SCAN_RATE_LIMIT_PER_MINUTE",
    )

    # Scheduling policy
    min_interval_minutes: int = Field(default=80, alias="MIN_INTERVAL_MINUTES")
    gate_entry_window_minutes: int = Field(default=15, alias="GATE_ENTRY_WINDOW_MINUTES")
    reminder_window_hours: int = Field(default=24, alias="REMINDER_WINDOW_HOURS")
    allow_weekend_slots: bool = Field(default=False, alias="ALLOW_WEEKEND_SLOTS")
    schedule_timezone: str = Field(
        default="UTC",
        alias="SCHEDULE_TIMEZONE",
        description="IANA timezone the appointment date/time labels are expressed in",
    )
    optimistic_retry_attempts: int = Field(default=3, alias="OPTIMISTIC_RETRY_ATTEMPTS")
    provider_cache_ttl_seconds: int = Field(default=300, alias="PROVIDER_CACHE_TTL_SECONDS")
    sync_cursor_skew_seconds: int = Field(default=5, alias="SYNC_CURSOR_SKEW_SECONDS")

    # CORS
    cors_origins_str: str = Field(
        default="http://localhost:3000",
        alias="CORS_ORIGINS",
    )
    cors_allow_credentials: bool = Field(default=True, alias="CORS_ALLOW_CREDENTIALS")

    @property
    def cors_origins(self) -> list[str]:
        """Get CORS origins as a list."""
        if isinstance(self.cors_origins_str, str):
            return [origin.strip() for origin in self.cors_origins_str.split(",") if origin.strip()]
        return [self.cors_origins_str]

    # Logging
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_format: str = Field(default="json", alias="LOG_FORMAT")

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment.lower() == "production"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()  # type: ignore[call-arg]


# Global settings instance
settings = get_settings()
