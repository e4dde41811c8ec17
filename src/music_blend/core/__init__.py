"""Core infrastructure layer - no business logic dependencies.

This module provides foundation-level services:
- Configuration management (TOML)
- Logging setup (loguru)
"""

from .config import (
    AIConfig,
    BlendConfig,
    Config,
    LoggingConfig,
    create_default_config,
    get_config_dir,
    get_config_path,
    get_data_dir,
    load_config,
    parse_config,
)
from .logging import get_log_file_path, setup_logging

__all__ = [
    "AIConfig",
    "BlendConfig",
    "Config",
    "LoggingConfig",
    "create_default_config",
    "get_config_dir",
    "get_config_path",
    "get_data_dir",
    "load_config",
    "parse_config",
    "get_log_file_path",
    "setup_logging",
]
