"""
Configuration loader — reads crewcli.yml into the CliConfig model.

The file is optional.  When no explicit path is given the loader walks
up from the working directory; finding nothing yields the built-in
defaults.  An explicit path that does not exist is an error.
"""

from __future__ import annotations

import logging
from pathlib import Path

import yaml

from crewcli.core.models.config import CliConfig

logger = logging.getLogger(__name__)

# Default config filename
CONFIG_FILE = "crewcli.yml"


class ConfigError(Exception):
    """Raised when the configuration file is unreadable or invalid."""


def find_config_file(start_dir: Path | None = None) -> Path | None:
    """Search for crewcli.yml starting from the given directory, walking up.

    Args:
        start_dir: Directory to start searching from (default: cwd).

    Returns:
        Path to crewcli.yml, or None if not found.
    """
    current = (start_dir or Path.cwd()).resolve()

    for _ in range(20):  # safety limit
        candidate = current / CONFIG_FILE
        if candidate.is_file():
            return candidate
        parent = current.parent
        if parent == current:
            break  # filesystem root
        current = parent

    return None


def load_config(path: Path | None = None, start_dir: Path | None = None) -> CliConfig:
    """Load and validate the CLI configuration.

    Args:
        path: Explicit path to a config file. If None, searches upward.
        start_dir: Where the upward search begins (default: cwd).

    Returns:
        Validated CliConfig (defaults when no file is found).

    Raises:
        ConfigError: If an explicit file is missing, or any file is invalid.
    """
    if path is None:
        path = find_config_file(start_dir)
        if path is None:
            logger.debug("No %s found, using defaults", CONFIG_FILE)
            return CliConfig()
    elif not path.is_file():
        raise ConfigError(f"Config file not found: {path}")

    logger.debug("Loading config from %s", path)

    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e

    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        return CliConfig()
    if not isinstance(data, dict):
        raise ConfigError(f"Expected a YAML mapping in {path}, got {type(data).__name__}")

    try:
        config = CliConfig.model_validate(data)
    except Exception as e:
        raise ConfigError(f"Invalid configuration in {path}: {e}") from e

    logger.info("Loaded config from %s (%d flow defaults)", path, len(config.defaults))
    return config
