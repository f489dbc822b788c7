"""
Application configuration.

Environment variables (and an optional .env file) provide defaults; command
line flags override them through ``load_config(**overrides)``.
"""

from typing import Any, Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppConfig(BaseSettings):
    """
    f6n settings.
    """

    # ===== Provider =====
    CLOUD_PROVIDER: Literal["aws", "gcp", "sample"] = Field(
        default="aws", description="Cloud provider backend (aws, gcp or sample)"
    )
    AWS_REGION: str = Field(default="us-east-1", description="AWS region")
    AWS_PROFILE: Optional[str] = Field(default=None, description="AWS shared credentials profile")
    STAGE: str = Field(default="dev", description="Environment label shown in the header")
    GCP_PROJECT: Optional[str] = Field(default=None, description="GCP project ID")
    GCP_LOCATION: str = Field(default="us-central1", description="GCP location")

    # ===== Logging =====
    LOG_LEVEL: str = Field(default="INFO", description="Log level")
    LOG_CONFIG_PATH: Optional[str] = Field(
        default=None, description="Path to a logging dictConfig YAML (packaged default if unset)"
    )
    LOG_FILE: str = Field(default="f6n-debug.log", description="Debug log file")

    # ===== Code downloads =====
    DOWNLOAD_DIR: str = Field(default="downloads", description="Root directory for downloaded code")

    # ===== Streaming / fetching =====
    STREAM_POLL_INTERVAL: float = Field(
        default=2.0, gt=0, description="Seconds between log stream polls"
    )
    STREAM_LOOKBACK_SECONDS: float = Field(
        default=60.0, ge=0, description="How far back a new log stream starts"
    )
    STREAM_BUFFER_SIZE: int = Field(
        default=1000, ge=1, description="Streamed log lines kept for display"
    )
    LOG_FETCH_LIMIT: int = Field(default=200, ge=1, description="Log lines fetched for the Logs view")
    METRICS_WINDOW_MINUTES: int = Field(
        default=60, ge=1, description="Time range shown in the Metrics view"
    )

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", case_sensitive=True, extra="ignore"
    )

    @property
    def region_label(self) -> str:
        return self.GCP_LOCATION if self.CLOUD_PROVIDER == "gcp" else self.AWS_REGION


def load_config(**overrides: Any) -> AppConfig:
    """Build the config, letting non-None ``overrides`` win over the environment."""
    values = {key: value for key, value in overrides.items() if value is not None}
    return AppConfig(**values)
