"""Configuration loader with YAML parsing and environment variable substitution."""

import os
import re
from pathlib import Path

import yaml
from pydantic import ValidationError

from ..utils.async_helpers import ConfigurationError
from .schema import BaselineLensConfig


def substitute_env_vars(text: str) -> str:
    """
    Replace ${VAR_NAME} patterns with environment variable values.

    Args:
        text: Text containing ${VAR_NAME} patterns

    Returns:
        Text with environment variables substituted

    Raises:
        ConfigurationError: If a referenced environment variable is not found
    """

    def replacer(match: re.Match[str]) -> str:
        var_name = match.group(1)
        value = os.environ.get(var_name)
        if value is None:
            raise ConfigurationError(f"Environment variable {var_name} not found")
        return value

    return re.sub(r"\$\{([^}]+)\}", replacer, text)


def load_config(path: Path | None = None) -> BaselineLensConfig:
    """
    Load configuration from a YAML file with environment variable substitution.

    Without a path, the defaults plus any ``BASELINE_LENS_*`` environment
    overrides are returned.

    Args:
        path: Path to YAML configuration file

    Returns:
        Validated BaselineLensConfig instance

    Raises:
        ConfigurationError: If the file is missing, unreadable, or invalid
    """
    if path is None:
        return build_config({})

    if not path.exists():
        raise ConfigurationError(f"Configuration file not found: {path}")

    with path.open(encoding="utf-8") as f:
        raw_yaml = f.read()

    yaml_with_env = substitute_env_vars(raw_yaml)

    try:
        config_dict = yaml.safe_load(yaml_with_env) or {}
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {path}: {e}") from e

    if not isinstance(config_dict, dict):
        raise ConfigurationError(f"Configuration root must be a mapping: {path}")

    return build_config(config_dict)


def build_config(config_dict: dict) -> BaselineLensConfig:
    """
    Validate a configuration mapping.

    Args:
        config_dict: Raw configuration values

    Returns:
        Validated BaselineLensConfig instance

    Raises:
        ConfigurationError: If values fail validation
    """
    try:
        # The constructor applies BASELINE_LENS_* environment overrides
        return BaselineLensConfig(**config_dict)
    except ValidationError as e:
        raise ConfigurationError(str(e)) from e
