"""
Retail Sales Analytics
Centralized Configuration Management

This module provides configuration management using Pydantic settings with
environment variable support, validation, and type safety.
"""

from functools import lru_cache
from typing import Optional, List
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class DataSettings(BaseSettings):
    """Source Data Configuration"""

    model_config = SettingsConfigDict(env_prefix="DATA_")

    source_path: Optional[str] = Field(default=None, description="Default sales dataset path")
    date_formats: List[str] = Field(
        default=["%d-%m-%Y", "%d-%m-%y"],
        description="Accepted day-month-year formats, tried in order",
    )
    parse_error_policy: str = Field(default="skip", description="Row parse failures: skip or abort")
    dead_letter_path: Optional[str] = Field(default=None, description="Directory for rejected rows")
    null_values: List[str] = Field(
        default=["", "NULL", "null", "None", "NA", "N/A"],
        description="Text values read as null",
    )

    @field_validator("parse_error_policy")
    @classmethod
    def validate_policy(cls, v: str) -> str:
        """Validate parse error policy"""
        allowed = ["skip", "abort"]
        if v.lower() not in allowed:
            raise ValueError(f"Parse error policy must be one of: {allowed}")
        return v.lower()


class DataQualitySettings(BaseSettings):
    """Data Quality Configuration"""

    model_config = SettingsConfigDict(env_prefix="QUALITY_")

    customer_types: List[str] = Field(default=["Member", "Normal"], description="Allowed customer types")
    genders: List[str] = Field(default=["Male", "Female"], description="Allowed genders")
    payment_methods: List[str] = Field(
        default=["Cash", "Credit card", "Ewallet"],
        description="Allowed payment methods",
    )
    product_lines: List[str] = Field(
        default=[
            "Electronic accessories",
            "Fashion accessories",
            "Food and beverages",
            "Health and beauty",
            "Home and lifestyle",
            "Sports and travel",
        ],
        description="Allowed product lines",
    )
    total_tolerance: float = Field(default=0.01, description="Absolute tolerance for total reconciliation")
    strict_mode: bool = Field(default=False, description="Treat warnings as failures")


class ReportSettings(BaseSettings):
    """Report Computation Configuration"""

    model_config = SettingsConfigDict(env_prefix="REPORT_")

    # Anomaly detection
    anomaly_stddev_factor: float = Field(default=2.0, description="Standard deviations from the mean")
    anomaly_ddof: int = Field(default=1, description="Delta degrees of freedom (1 = sample stddev)")

    # Customer segmentation
    high_tier_threshold: float = Field(default=0.66, description="Percentile for High tier")
    medium_tier_threshold: float = Field(default=0.33, description="Percentile for Medium tier")
    percentile_method: str = Field(default="weak", description="weak or percent_rank")

    # Repeat customers
    repeat_window_days: int = Field(default=30, description="Max days between paired purchases")
    repeat_mode: str = Field(default="pairs", description="pairs or purchases")

    top_customers_n: int = Field(default=5, description="Customers in the top-N report")
    output_format: str = Field(default="table", description="Default CLI output format")

    @field_validator("percentile_method")
    @classmethod
    def validate_percentile_method(cls, v: str) -> str:
        """Validate percentile method"""
        allowed = ["weak", "percent_rank"]
        if v.lower() not in allowed:
            raise ValueError(f"Percentile method must be one of: {allowed}")
        return v.lower()

    @field_validator("repeat_mode")
    @classmethod
    def validate_repeat_mode(cls, v: str) -> str:
        """Validate repeat customer mode"""
        allowed = ["pairs", "purchases"]
        if v.lower() not in allowed:
            raise ValueError(f"Repeat mode must be one of: {allowed}")
        return v.lower()


class MonitoringSettings(BaseSettings):
    """Logging Configuration"""

    model_config = SettingsConfigDict(env_prefix="")

    log_level: str = Field(default="INFO", description="Logging level")
    log_format: str = Field(default="text", description="Log format: json or text")


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
    app_name: str = Field(default="sales-analytics", description="Application name")
    app_env: str = Field(default="development", description="Environment")

    # Version
    version: str = Field(default="1.0.0", description="Application version")

    # Subsystem configurations
    data: DataSettings = Field(default_factory=DataSettings)
    data_quality: DataQualitySettings = Field(default_factory=DataQualitySettings)
    report: ReportSettings = Field(default_factory=ReportSettings)
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


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached application settings.

    Uses LRU cache to ensure settings are only loaded once.

    Returns:
        Settings: Application settings instance
    """
    return Settings()
