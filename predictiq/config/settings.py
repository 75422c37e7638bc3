"""
PredictIQ Analytics Core
Centralized Configuration Management

Pydantic settings with environment variable support for the service surface
and the analytics pipeline defaults.
"""

from functools import lru_cache
from typing import List, Optional
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ApiSettings(BaseSettings):
    """HTTP surface configuration"""

    model_config = SettingsConfigDict(env_prefix="API_")

    host: str = Field(default="0.0.0.0", description="API host")
    port: int = Field(default=8000, description="API port")
    workers: int = Field(default=4, description="API workers")
    reload: bool = Field(default=False, description="Enable reload")

    # Rate limiting
    rate_limit_requests: int = Field(default=100, description="Rate limit requests")
    rate_limit_window_seconds: int = Field(default=60, description="Rate limit window")

    # CORS
    cors_origins: List[str] = Field(
        default=["http://localhost:3000"],
        description="Allowed CORS origins"
    )

    # Upload guard
    max_records: int = Field(default=500_000, description="Max records accepted per request")


class MonitoringSettings(BaseSettings):
    """Monitoring and Observability Configuration"""

    model_config = SettingsConfigDict(env_prefix="")

    log_level: str = Field(default="INFO", alias="LOG_LEVEL", description="Logging level")
    log_format: str = Field(default="json", alias="LOG_FORMAT", description="Log format: json or text")
    pipeline_log_level: Optional[str] = Field(
        default=None,
        alias="PIPELINE_LOG_LEVEL",
        description="Level for predictiq.* loggers; falls back to LOG_LEVEL",
    )

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        if v.lower() not in ("json", "text"):
            raise ValueError("Log format must be 'json' or 'text'")
        return v.lower()


class AnalyticsSettings(BaseSettings):
    """
    Default analytics pipeline parameters.

    Every value can be overridden per call through PipelineConfig.
    """

    model_config = SettingsConfigDict(env_prefix="ANALYTICS_")

    # Forecasting
    moving_average_window: int = Field(default=7, description="Moving average window (days)")
    smoothing_alpha: float = Field(default=0.2, description="Exponential smoothing factor")
    forecast_horizon_days: int = Field(default=30, description="Forecast horizon (days)")

    # Inventory
    service_level_z: float = Field(default=1.65, description="Safety stock z multiplier (~95%)")
    default_lead_time_days: float = Field(default=7.0, description="Lead time used when a record has none")
    abc_threshold_a: float = Field(default=70.0, description="Cumulative revenue % for category A")
    abc_threshold_b: float = Field(default=90.0, description="Cumulative revenue % for category B")

    # Segmentation
    rfm_reference_max: float = Field(default=1000.0, description="Fixed RFM scoring ceiling")
    cluster_count: int = Field(default=3, description="K-means cluster count")
    cluster_random_state: int = Field(default=42, description="K-means seed")

    # Anomalies and market basket
    anomaly_sales_z: float = Field(default=2.5, description="Unit sales z-score threshold")
    anomaly_price_z: float = Field(default=2.0, description="Price z-score threshold")
    min_support: float = Field(default=0.05, description="Association rule minimum support")
    min_confidence: float = Field(default=0.3, description="Association rule minimum confidence")

    # Data quality
    max_rejection_rate: float = Field(default=0.5, description="Max fraction of rejected records")
    revenue_tolerance: float = Field(default=0.01, description="Relative revenue vs units*price tolerance")

    # Execution
    parallel: bool = Field(default=False, description="Fan modules out to worker threads")
    max_workers: int = Field(default=4, description="Worker threads when parallel")


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
    app_name: str = Field(default="predictiq-analytics", alias="APP_NAME", description="Application name")
    app_env: str = Field(default="development", alias="APP_ENV", description="Environment")
    debug: bool = Field(default=False, alias="DEBUG", description="Debug mode")

    # Version
    version: str = Field(default="1.0.0", description="Application version")

    # Subsystem configurations
    api: ApiSettings = Field(default_factory=ApiSettings)
    monitoring: MonitoringSettings = Field(default_factory=MonitoringSettings)
    analytics: AnalyticsSettings = Field(default_factory=AnalyticsSettings)

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
