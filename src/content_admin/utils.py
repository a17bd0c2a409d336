"""Utility functions for content-admin."""

import sys
from pathlib import Path

from loguru import logger

CONSOLE_FORMAT = "<green>{time:HH:mm:ss}</green> <level>{level: <8}</level> {message}"


def setup_logging(
    level: str = "INFO",
    log_file: str | Path | None = None,
) -> None:
    """Configure loguru sinks.

    Replaces all existing handlers with a stderr sink and, when log_file is
    given, a rotating file sink.

    Args:
        level: Minimum level for both sinks
        log_file: Optional path of a log file
    """
    logger.remove()

    logger.add(
        sys.stderr,
        level=level,
        format=CONSOLE_FORMAT,
        colorize=sys.stderr.isatty(),
        backtrace=False,
        diagnose=False,
    )

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            log_path,
            level=level,
            rotation="10 MB",
            retention="1 week",
            backtrace=True,
            diagnose=False,
        )

    logger.debug(f"Logging configured at {level}")
