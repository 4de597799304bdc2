"""Configuration loading and validation for the cloud function adapter.

Options are resolved once per process, in this order: the
``CLOUDFN_ADAPTER_CONFIG`` environment variable (JSON), the ``adapter``
section of ``config.yaml``, then built-in defaults.
"""

import json
import logging
import os
from typing import Any, Dict, Optional

import yaml
from pydantic import ValidationError

from core.config_schema import AdapterOptions

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "CLOUDFN_ADAPTER_CONFIG"


class ConfigurationError(Exception):
    """Raised when configuration validation fails."""

    pass


def validate_options(config: Any) -> AdapterOptions:
    """Validate a raw options mapping.

    Args:
        config: Parsed configuration (camelCase or snake_case keys)

    Returns:
        Validated AdapterOptions

    Raises:
        ConfigurationError: If the mapping is not a dictionary or fails validation
    """
    if config is None:
        return AdapterOptions()

    if not isinstance(config, dict):
        raise ConfigurationError("Adapter configuration must be a dictionary")

    try:
        return AdapterOptions.model_validate(config)
    except ValidationError as e:
        problems = "\n".join(
            f"  • {'.'.join(str(p) for p in err['loc'])}: {err['msg']}"
            for err in e.errors()
        )
        raise ConfigurationError(f"Invalid adapter configuration:\n{problems}") from e


def load_and_validate_config(config_path: str = "config.yaml") -> AdapterOptions:
    """Load and validate adapter options from a YAML file.

    Args:
        config_path: Path to config.yaml file

    Returns:
        Validated AdapterOptions

    Raises:
        ConfigurationError: If validation fails
        FileNotFoundError: If config file doesn't exist
    """
    try:
        with open(config_path, "r") as f:
            config = yaml.safe_load(f)
    except FileNotFoundError:
        raise FileNotFoundError(
            f"Configuration file not found: {config_path}\n"
            "Create config.yaml based on the template in the repository."
        )
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {config_path}: {e}")

    if config is None:
        raise ConfigurationError(f"Configuration file {config_path} is empty")

    if not isinstance(config, dict):
        raise ConfigurationError("Configuration must be a YAML dictionary")

    options = validate_options(config.get("adapter"))
    logger.info(f"Configuration validated from {config_path}")
    return options


def load_options(config_path: str = "config.yaml") -> AdapterOptions:
    """Resolve adapter options from the environment, config file or defaults.

    Returns:
        Validated AdapterOptions
    """
    config_json = os.environ.get(CONFIG_ENV_VAR)
    if config_json:
        try:
            config = json.loads(config_json)
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"Failed to parse {CONFIG_ENV_VAR}: {e}") from e
        logger.info("Loaded configuration from environment variable")
        return validate_options(config)

    try:
        return load_and_validate_config(config_path)
    except FileNotFoundError:
        logger.info("No configuration found, using defaults")
        return AdapterOptions()


def get_logging_config(options: Optional[AdapterOptions]) -> Dict[str, Any]:
    """Get the logging section derived from adapter options."""
    if options is None:
        return {"level": "INFO"}
    return {"level": options.log_level}
