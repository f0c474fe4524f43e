"""Core infrastructure layer - no business logic dependencies.

This module provides foundation-level services:
- Configuration management (TOML + .env)
- Logging setup (Loguru)

Clean architecture principle: The core layer has no dependencies on
domain or web layers.
"""

from .config import (
    Config,
    create_default_config,
    get_config_dir,
    get_config_path,
    get_data_dir,
    load_config,
)
from .output import setup_from_config, setup_loguru

__all__ = [
    "Config",
    "create_default_config",
    "get_config_dir",
    "get_config_path",
    "get_data_dir",
    "load_config",
    "setup_from_config",
    "setup_loguru",
]
