"""
Agricultural Marketplace Analytics
Centralized Configuration Management

This module provides configuration management using Pydantic settings with
environment variable support, validation, and type safety.
"""

from functools import lru_cache
from typing import Dict, List, Optional
from pydantic import Field, field_validator, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseSettings(BaseSettings):
    """PostgreSQL Database Configuration"""

    model_config = SettingsConfigDict(env_prefix="POSTGRES_")

    host: str = Field(default="localhost", description="Database host")
    port: int = Field(default=5432, description="Database port")
    db: str = Field(default="agrimarket", alias="database", description="Database name")
    user: str = Field(default="agrimarket", description="Database user")
    password: SecretStr = Field(default="secure_password", description="Database password")
    echo: bool = Field(default=False, description="Echo SQL queries")
    url: Optional[str] = Field(default=None, alias="DATABASE_URL", description="Database URL (overrides host/port)")

    @property
    def async_url(self) -> str:
        """Async database URL - uses DATABASE_URL if set, otherwise asyncpg from host/port"""
        if self.url:
            return self.url
        return f"postgresql+asyncpg://{self.user}:{self.password.get_secret_value()}@{self.host}:{self.port}/{self.db}"


class PostHogSettings(BaseSettings):
    """Event Analytics Service Configuration"""

    model_config = SettingsConfigDict(env_prefix="POSTHOG_")

    host: str = Field(default="https://us.i.posthog.com", description="Event API host")
    project_id: Optional[str] = Field(default=None, description="Event API project identifier")
    personal_api_key: Optional[SecretStr] = Field(default=None, description="Bearer credential for the event API")
    event_limit: int = Field(default=10000, description="Maximum events fetched per report")
    timeout_seconds: float = Field(default=10.0, description="HTTP timeout in seconds")

    @property
    def is_configured(self) -> bool:
        """Both the project identifier and the credential are present"""
        return bool(self.project_id) and self.personal_api_key is not None and bool(
            self.personal_api_key.get_secret_value()
        )


class AnalyticsSettings(BaseSettings):
    """Report Aggregation Configuration"""

    model_config = SettingsConfigDict(env_prefix="ANALYTICS_")

    default_window_days: int = Field(default=7, description="Days covered when no window is requested")
    top_limit: int = Field(default=10, description="Cap for top pages and top products")
    breakdown_limit: int = Field(default=10, description="Cap for browser and country breakdowns")

    # Placeholder proportions used only when no stage-tagged events exist
    funnel_estimates: Dict[str, float] = Field(
        default={
            "browse": 0.75,
            "view_product": 0.60,
            "add_to_cart": 0.18,
            "start_checkout": 0.12,
        },
        description="Share of visitors assumed to reach each funnel stage",
    )
    browse_path_prefixes: List[str] = Field(
        default=["/products", "/search", "/product/", "/category"],
        description="Page paths that count as browsing the catalogue",
    )


class SecuritySettings(BaseSettings):
    """Security Configuration"""

    model_config = SettingsConfigDict(env_prefix="")

    # CORS
    cors_origins: List[str] = Field(
        default=["http://localhost:3000"],
        description="Allowed CORS origins"
    )


class MonitoringSettings(BaseSettings):
    """Monitoring and Observability Configuration"""

    model_config = SettingsConfigDict(env_prefix="")

    # Logging
    log_level: str = Field(default="INFO", alias="LOG_LEVEL", description="Logging level")
    log_format: str = Field(default="json", alias="LOG_FORMAT", description="Log format: json or text")


class Settings(BaseSettings):
    """
    Main Application Settings

    Aggregates all configuration sections and provides a single entry point
    for accessing application configuration.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = Field(default="agrimarket-analytics", alias="APP_NAME", description="Application name")
    app_env: str = Field(default="development", alias="APP_ENV", description="Environment")
    debug: bool = Field(default=False, alias="DEBUG", description="Debug mode")

    # API Server
    api_host: str = Field(default="0.0.0.0", alias="API_HOST", description="API host")
    api_port: int = Field(default=8000, alias="API_PORT", description="API port")

    # Version
    version: str = Field(default="1.0.0", description="Application version")

    # Subsystem configurations
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    posthog: PostHogSettings = Field(default_factory=PostHogSettings)
    analytics: AnalyticsSettings = Field(default_factory=AnalyticsSettings)
    security: SecuritySettings = Field(default_factory=SecuritySettings)
    monitoring: MonitoringSettings = Field(default_factory=MonitoringSettings)

    @field_validator("app_env")
    @classmethod
    def validate_env(cls, v: str) -> str:
        """Validate environment value"""
        allowed = ["development", "staging", "production", "testing"]
        if v.lower() not in allowed:
            raise ValueError(f"Environment must be one of: {allowed}")
        return v.lower()

    @property
    def is_production(self) -> bool:
        """Check if running in production"""
        return self.app_env == "production"

    @property
    def is_development(self) -> bool:
        """Check if running in development"""
        return self.app_env == "development"


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached application settings.

    Uses LRU cache to ensure settings are only loaded once.

    Returns:
        Settings: Application settings instance
    """
    return Settings()


# Convenience function for accessing settings
settings = get_settings()
