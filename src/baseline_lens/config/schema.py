"""Pydantic models for configuration schema."""

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class AnalyzersConfig(BaseModel):
    """Which analyzer families run."""

    css: bool = True
    javascript: bool = True
    html: bool = True
    css_in_js: bool = Field(True, description="Scan JS/TS sources for CSS-in-JS styles")

    def is_enabled(self, family: str) -> bool:
        """Check whether an analyzer family is enabled."""
        return bool(getattr(self, family, False))


class LimitsConfig(BaseModel):
    """Input size limits."""

    max_file_size: int = Field(10 * 1024 * 1024, ge=1, description="Max characters per document")


class TimeoutConfig(BaseModel):
    """Per-analysis deadlines and concurrency."""

    base_timeout: float = Field(5.0, gt=0, le=120.0, description="Deadline for small files (s)")
    max_timeout: float = Field(15.0, gt=0, le=600.0, description="Hard ceiling for any file (s)")
    large_file_threshold: int = Field(1024 * 1024, ge=1, description="Size that doubles the base")
    max_concurrent: int = Field(4, ge=1, le=64, description="Max simultaneous analyses")

    @model_validator(mode="after")
    def check_ceiling(self) -> "TimeoutConfig":
        """Ensure the hard ceiling is not below the base deadline."""
        if self.max_timeout < self.base_timeout:
            raise ValueError(
                f"max_timeout ({self.max_timeout}) must be >= base_timeout ({self.base_timeout})"
            )
        return self


class DatasetConfig(BaseModel):
    """Compatibility dataset sources."""

    path: Path | None = None
    url: str | None = None
    request_timeout: float = Field(30.0, gt=0, le=300.0)
    upgrade_in_background: bool = False
    upgrade_delay: float = Field(30.0, ge=0, description="Seconds before the background retry")
    search_cache_size: int = Field(256, ge=1)

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str | None) -> str | None:
        """Only plain http(s) URLs can be downloaded."""
        if v is not None and not v.startswith(("http://", "https://")):
            raise ValueError(f"Dataset URL must use http or https: {v}")
        return v


class ErrorsConfig(BaseModel):
    """Error normalizer configuration."""

    max_recent_errors: int = Field(100, ge=1, le=10000)


class FileLoggingConfig(BaseModel):
    """File logging configuration."""

    enabled: bool = False
    path: Path = Path("baseline-lens.log")


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "WARNING"
    format: Literal["json", "console"] = "console"
    file: FileLoggingConfig = FileLoggingConfig()


class BaselineLensConfig(BaseSettings):
    """Root configuration for baseline-lens."""

    analyzers: AnalyzersConfig = AnalyzersConfig()
    limits: LimitsConfig = LimitsConfig()
    timeouts: TimeoutConfig = TimeoutConfig()
    dataset: DatasetConfig = DatasetConfig()
    errors: ErrorsConfig = ErrorsConfig()
    logging: LoggingConfig = LoggingConfig()

    model_config = SettingsConfigDict(
        env_prefix="BASELINE_LENS_",
        env_nested_delimiter="__",
    )
