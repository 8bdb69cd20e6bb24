"""
ConfigLoader for the flatauth YAML configuration.

The file names the auth sources a store can be built from::

    auth_sources:
      - type: properties_file
        options:
          users_property_file: ${USERS_DIR}/users.properties
          create_missing: false
    logging:
      level: INFO
"""

import json
import logging
import os
import re
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import jsonschema
import yaml

logger = logging.getLogger(__name__)

PROPERTIES_FILE_SOURCE = "properties_file"
CONFIG_FILE_NAME = "config.yaml"
SCHEMA_PATH = Path(__file__).parent / "schema" / "config_schema.json"

_ENV_VAR_PATTERN = re.compile(r"\${([^}]+)}|\$([a-zA-Z0-9_]+)")


class ConfigError(Exception):
    """Exception raised for configuration errors."""

    pass


class ConfigLoader:
    """Locates, reads and validates config.yaml."""

    def __init__(self, config_path: Optional[Union[str, Path]] = None):
        """
        Args:
            config_path: Optional explicit path to the config file
        """
        self.config_path = self._find_config_path(config_path)
        self.config = self._load_config()
        logger.info(f"ConfigLoader: config={self.config_path or '<defaults>'}")

    def _find_config_path(
        self, config_path: Optional[Union[str, Path]]
    ) -> Optional[Path]:
        """
        Return the first existing config file, or None.

        Checked in order: the explicit path, ``FLATAUTH_CONFIG`` /
        ``FLATAUTH_CONFIG_FILE``, ``./config.yaml`` and
        ``~/.config/flatauth/config.yaml``.
        """
        explicit = [
            (config_path, "Specified config path"),
            (
                os.getenv("FLATAUTH_CONFIG") or os.getenv("FLATAUTH_CONFIG_FILE"),
                "Config path from environment variable",
            ),
        ]
        for candidate, label in explicit:
            if not candidate:
                continue
            path = Path(candidate)
            if path.exists():
                return path
            logger.warning(f"{label} does not exist: {path}")

        for directory in (Path.cwd(), Path.home() / ".config" / "flatauth"):
            path = directory / CONFIG_FILE_NAME
            if path.exists():
                return path

        logger.info("No config.yaml found, using default configuration.")
        return None

    def _interpolate_env_vars(self, value: Any) -> Any:
        """Replace ``${VAR}`` / ``$VAR`` in strings; unset variables stay as ``${VAR}``."""
        if isinstance(value, str):
            return _ENV_VAR_PATTERN.sub(
                lambda m: os.environ.get(
                    m.group(1) or m.group(2), f"${{{m.group(1) or m.group(2)}}}"
                ),
                value,
            )
        if isinstance(value, list):
            return [self._interpolate_env_vars(item) for item in value]
        if isinstance(value, dict):
            return {k: self._interpolate_env_vars(v) for k, v in value.items()}
        return value

    def _validate_config(self, config: Dict[str, Any]) -> None:
        """
        Raises:
            ConfigError: If *config* does not match the bundled schema
        """
        with open(SCHEMA_PATH, "r", encoding="utf-8") as f:
            schema = json.load(f)
        try:
            jsonschema.validate(instance=config, schema=schema)
        except jsonschema.exceptions.ValidationError as e:
            path = " -> ".join(str(p) for p in e.path)
            message = f"Configuration validation error: {e.message}"
            if path:
                message = f"{message} (at {path})"
            raise ConfigError(message) from e

    def _load_config(self) -> Dict[str, Any]:
        """
        Read the config file on top of the defaults.

        Raises:
            ConfigError: If the file cannot be read, parsed or validated
        """
        config = {"auth_sources": [], "logging": {"level": "INFO"}}
        if self.config_path is None:
            return config

        try:
            with open(self.config_path, "r", encoding="utf-8") as f:
                loaded = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            error_msg = f"Error parsing {self.config_path.name}: {e}"
            logger.error(error_msg)
            raise ConfigError(error_msg) from e
        except OSError as e:
            error_msg = f"Error reading {self.config_path}: {e}"
            logger.error(error_msg)
            raise ConfigError(error_msg) from e

        loaded = self._interpolate_env_vars(loaded)
        self._validate_config(loaded)

        config["auth_sources"] = loaded.get("auth_sources") or []
        config["logging"].update(loaded.get("logging") or {})
        return config

    def get_auth_sources(self) -> List[Dict[str, Any]]:
        """Return every configured auth source."""
        return self.config["auth_sources"]

    def get_auth_source(self, source_type: str) -> Optional[Dict[str, Any]]:
        """
        Get the first authentication source of a given type.

        Args:
            source_type: The ``type`` value to look for

        Returns:
            The auth source configuration, or None if not found
        """
        for source in self.get_auth_sources():
            if source.get("type") == source_type:
                return source
        return None

    def get_properties_file_options(self) -> Dict[str, Any]:
        """Options of the ``properties_file`` source, empty when there is none."""
        source = self.get_auth_source(PROPERTIES_FILE_SOURCE)
        if source is None:
            return {}
        return source.get("options") or {}

    def get_logging_config(self) -> Dict[str, Any]:
        return self.config["logging"]
