"""
Centralized loguru configuration for Music Blend
"""

import sys
from pathlib import Path
from typing import Optional

from loguru import logger

from .config import LoggingConfig, get_data_dir

FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{line} | {message}"
CONSOLE_FORMAT = "{level}: {message}"


def get_log_file_path() -> Path:
    """Get the path to the log file."""
    return get_data_dir() / "music-blend.log"


def setup_logging(config: Optional[LoggingConfig] = None) -> Path:
    """
    Configure loguru sinks for the application.

    Removes the default stderr handler, then adds a rotating file sink and,
    when enabled, a simpler console sink on stderr.

    Args:
        config: Logging configuration (defaults used when None)

    Returns:
        Path of the log file in use
    """
    config = config or LoggingConfig()
    level = config.level.upper()

    log_file = Path(config.log_file).expanduser() if config.log_file else get_log_file_path()
    log_file.parent.mkdir(parents=True, exist_ok=True)

    logger.remove()

    logger.add(
        log_file,
        rotation=f"{config.max_file_size_mb} MB",
        retention=config.backup_count,
        level=level,
        format=FILE_FORMAT,
        encoding="utf-8",
        enqueue=False,  # Synchronous writes
    )

    if config.console_output:
        logger.add(sys.stderr, level=level, format=CONSOLE_FORMAT)

    logger.info(
        f"Logging initialized: {log_file} (level={level}, "
        f"max_size={config.max_file_size_mb}MB, backups={config.backup_count})"
    )
    return log_file
