"""Configuration loading and validation."""

import logging
from pathlib import Path
from typing import Optional, Union

import yaml
from pydantic import ValidationError

from dwight.config.schema import DwightConfig
from dwight.errors import DwightError

DEFAULT_CONFIG_PATH = Path.home() / ".dwight" / "dwight.yaml"


class ConfigError(DwightError):
    """Configuration loading or validation error."""


def load_config(path: Optional[Path] = None) -> DwightConfig:
    """Load and validate dwight configuration from YAML file.

    Args:
        path: Path to config file. If None, tries default location.
              If file doesn't exist, returns default config.

    Returns:
        Validated configuration object

    Raises:
        ConfigError: If config file exists but is invalid
    """
    if path is None:
        path = DEFAULT_CONFIG_PATH

    # Zero-config mode: if file doesn't exist, use all defaults
    if not path.exists():
        return DwightConfig()

    try:
        with open(path, "r") as f:
            config_data = yaml.safe_load(f)

        # Handle empty file
        if config_data is None:
            return DwightConfig()

        if not isinstance(config_data, dict):
            raise ConfigError(f"Expected a mapping at the top of {path}")

        return DwightConfig(**config_data)

    except ConfigError:
        raise
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e
    except ValidationError as e:
        raise ConfigError(f"Configuration validation failed: {e}") from e
    except OSError as e:
        raise ConfigError(f"Failed to load config from {path}: {e}") from e


def save_config(config: DwightConfig, path: Optional[Union[str, Path]] = None) -> None:
    """Save configuration to YAML file.

    Args:
        config: Configuration object to save
        path: Destination path (string or Path object). If None, uses default location.
    """
    if path is None:
        path = DEFAULT_CONFIG_PATH
    elif isinstance(path, str):
        path = Path(path)

    path.parent.mkdir(parents=True, exist_ok=True)

    config_dict = config.model_dump()

    with open(path, "w") as f:
        yaml.safe_dump(config_dict, f, default_flow_style=False, sort_keys=False)


def setup_logging(config: DwightConfig) -> None:
    """Configure the root logger from the ``logging`` section."""
    logging.basicConfig(
        level=getattr(logging, config.logging.level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
