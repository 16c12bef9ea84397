"""Configuration loading and validation."""

from .loader import build_config, load_config
from .schema import (
    AnalyzersConfig,
    BaselineLensConfig,
    DatasetConfig,
    ErrorsConfig,
    LimitsConfig,
    LoggingConfig,
    TimeoutConfig,
)

__all__ = [
    # Loader
    "load_config",
    "build_config",
    # Root config
    "BaselineLensConfig",
    # Sections
    "AnalyzersConfig",
    "LimitsConfig",
    "TimeoutConfig",
    "DatasetConfig",
    "ErrorsConfig",
    "LoggingConfig",
]
