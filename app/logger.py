"""Loguru-based logging setup."""

from __future__ import annotations

import sys
from pathlib import Path

from loguru import logger

LOG_FILE_NAME = "applytrak-backup.log"


def setup_logger(log_dir: Path | None = None, console_level: str = "INFO") -> Path | None:
    """Configure loguru with console + rotating file output. Returns the log file path."""
    logger.remove()

    logger.add(
        sys.stderr,
        level=console_level,
        format="<green>{time:HH:mm:ss}</green> | <level>{level:<7}</level> | <cyan>{module}</cyan> | {message}",
        colorize=True,
    )

    if not log_dir:
        return None

    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / LOG_FILE_NAME
    # Tracebacks must not carry variable values: payloads hold personal data.
    logger.add(
        str(log_file),
        level="DEBUG",
        format="{time:YYYY-MM-DD HH:mm:ss.SSS} | {level:<7} | {name}:{function}:{line} | {message}",
        rotation="5 MB",
        retention="7 days",
        encoding="utf-8",
        diagnose=False,
    )
    return log_file
