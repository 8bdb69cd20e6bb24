"""
Configuration management for flatauth.
"""

from pathlib import Path
from typing import Optional, Union

from flatauth.config.config_loader import (
    PROPERTIES_FILE_SOURCE,
    ConfigError,
    ConfigLoader,
)

# Default instance, created on first use
_config_loader: Optional[ConfigLoader] = None


def get_config_loader(
    config_path: Optional[Union[str, Path]] = None,
) -> ConfigLoader:
    """
    Get the shared ConfigLoader.

    Passing *config_path* replaces the shared instance with one loaded from
    that path.

    Returns:
        The ConfigLoader instance
    """
    global _config_loader
    if _config_loader is None or config_path is not None:
        _config_loader = ConfigLoader(config_path)
    return _config_loader


__all__ = [
    "PROPERTIES_FILE_SOURCE",
    "ConfigError",
    "ConfigLoader",
    "get_config_loader",
]
