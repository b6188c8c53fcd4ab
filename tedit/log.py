"""Loguru sink setup for the editor and its language server client."""

from __future__ import annotations

import sys

from loguru import logger

LOG_FORMAT = "<green>{time:HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | {name}:{line} - {message}"


def configure_logging(level: str = "INFO", log_file: str = "") -> None:
    """Replace loguru's default handler with a stderr sink and an optional file sink.

    The editor owns stdout, so nothing is ever logged there.
    """
    clean_level = str(level or "INFO").strip().upper() or "INFO"
    logger.remove()
    logger.add(sys.stderr, level=clean_level, format=LOG_FORMAT, backtrace=False, diagnose=False)
    if log_file:
        logger.add(
            log_file,
            level="DEBUG",
            rotation="5 MB",
            retention=3,
            enqueue=True,
            format="{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {name}:{function}:{line} - {message}",
        )
