"""
Configuration management module for the budgets engine.

This module loads and saves YAML configuration (API endpoint, local database,
budget rules and logging) and configures logging from it.
"""

import copy
import logging
import os
import sys
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

from exceptions import ConfigError
from utils import resolve_log_path

logger = logging.getLogger(__name__)

# Default configuration values
DEFAULT_CONFIG: Dict[str, Any] = {
    'api': {
        'base_url': 'http://localhost:8000',
        'timeout': 10,
        'verify_ssl': True,
    },
    'database': {
        'data_dir': 'data',
        'path': 'budgets.db',
    },
    'budgets': {
        'timezone': 'UTC',
        'max_goal': 999999999999.99,
        'max_name_length': 30,
    },
    'logging': {
        'level': 'INFO',
        'format': '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    },
}

CONFIG_FILE = 'config.yaml'
CONFIG_ENV_VAR = 'BUDGETS_CONFIG'


def get_config_path(config_path: Optional[Union[str, Path]] = None) -> Path:
    """
    Resolve the configuration file path.

    Order of precedence: explicit argument, BUDGETS_CONFIG env var, config.yaml.
    """
    if config_path is not None:
        return Path(config_path)
    return Path(os.environ.get(CONFIG_ENV_VAR, CONFIG_FILE))


def _merge_defaults(config: Dict[str, Any], path: Path) -> Dict[str, Any]:
    merged = copy.deepcopy(DEFAULT_CONFIG)
    for key, value in config.items():
        if not isinstance(merged.get(key), dict):
            merged[key] = value
        elif value is None:
            continue
        elif isinstance(value, dict):
            merged[key].update(value)
        else:
            raise ConfigError(
                "Configuration section must be a mapping",
                details={"config_path": str(path), "section": key}
            )
    return merged


def load_config(config_path: Optional[Union[str, Path]] = None) -> Dict[str, Any]:
    """
    Load configuration from a YAML file.

    Args:
        config_path: Optional path (defaults to BUDGETS_CONFIG or config.yaml)

    Returns:
        Configuration dictionary with defaults for missing values

    Raises:
        ConfigError: If the file cannot be read or is not a YAML mapping
    """
    path = get_config_path(config_path)
    if not path.exists():
        logger.debug("Config file %s not found; using defaults", path)
        return copy.deepcopy(DEFAULT_CONFIG)

    try:
        with open(path, 'r') as f:
            config = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        logger.error(f"Error loading configuration: {e}")
        raise ConfigError(
            "Failed to load configuration",
            details={"config_path": str(path)},
            original_error=e
        ) from e

    if not isinstance(config, dict):
        raise ConfigError("Configuration must be a mapping", details={"config_path": str(path)})

    logger.info("Configuration loaded successfully")
    return _merge_defaults(config, path)


def save_config(config: Dict[str, Any], config_path: Optional[Union[str, Path]] = None) -> bool:
    """
    Save configuration to a YAML file, preserving unrelated settings.

    Args:
        config: Configuration values to save
        config_path: Optional path (defaults to BUDGETS_CONFIG or config.yaml)

    Returns:
        True if successful, False otherwise
    """
    path = get_config_path(config_path)
    try:
        existing_config: Dict[str, Any] = {}
        if path.exists():
            with open(path, 'r') as f:
                existing_config = yaml.safe_load(f) or {}

        existing_config.update(config)

        with open(path, 'w') as f:
            yaml.dump(existing_config, f, default_flow_style=False)

        logger.info("Configuration saved successfully")
        return True

    except (OSError, yaml.YAMLError) as e:
        logger.error(f"Error saving configuration: {e}", exc_info=True)
        return False


def setup_logging(config: dict) -> None:
    """
    Configure logging based on config settings.

    Args:
        config: Configuration dictionary with logging settings
    """
    log_config = config.get("logging", {})
    level_name = str(log_config.get("level", "INFO")).upper()
    log_level = getattr(logging, level_name, None)
    if not isinstance(log_level, int):
        logger.warning("Invalid log level '%s'; defaulting to INFO", level_name)
        log_level = logging.INFO
    log_format = log_config.get("format", "%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    log_file = log_config.get("file")

    handlers = [logging.StreamHandler(sys.stdout)]
    if log_file:
        try:
            log_path = resolve_log_path(log_file)
        except OSError as exc:
            raise ConfigError(
                "Unable to prepare log file path",
                details={"file": log_file},
                original_error=exc
            ) from exc
        handlers.append(logging.FileHandler(log_path))

    logging.basicConfig(
        level=log_level,
        format=log_format,
        handlers=handlers,
        force=True
    )
