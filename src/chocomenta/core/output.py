"""
Logging setup using Loguru.
"""

import sys
from pathlib import Path
from typing import Optional

from loguru import logger

from .config import LoggingConfig, get_data_dir

LOG_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{line} | {message}"


def get_log_file_path() -> Path:
    """Get the default path to the log file."""
    return get_data_dir() / "chocomenta.log"


def setup_loguru(
    log_file: Optional[Path] = None,
    level: str = "INFO",
    console_output: bool = True,
) -> None:
    """
    Configure loguru with a rotating file sink and an optional stderr sink.

    Args:
        log_file: Path to log file (default: ~/.local/share/chocomenta/chocomenta.log)
        level: Minimum level (DEBUG, INFO, WARNING, ERROR)
        console_output: Whether to also log to stderr
    """
    log_file = Path(log_file) if log_file else get_log_file_path()
    log_file.parent.mkdir(parents=True, exist_ok=True)

    # Remove default handler
    logger.remove()

    logger.add(
        log_file,
        rotation="10 MB",
        retention=5,  # Keep 5 backup files
        level=level.upper(),
        format=LOG_FORMAT,
        enqueue=False,
    )

    if console_output:
        logger.add(sys.stderr, level=level.upper(), format="{level}: {message}")

    logger.info(f"Loguru initialized: {log_file} (level={level})")


def setup_from_config(config: LoggingConfig) -> None:
    """Configure logging from the [logging] config section."""
    setup_loguru(
        log_file=Path(config.log_file).expanduser() if config.log_file else None,
        level=config.level,
        console_output=config.console_output,
    )
