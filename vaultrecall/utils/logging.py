"""Loguru sink setup."""

import sys

from loguru import logger


def setup_logging(level: str = "info") -> None:
    """
    Route vaultrecall logs to stderr at the given level.

    "silent" removes every sink.
    """
    logger.remove()
    if level == "silent":
        return
    logger.add(
        sys.stderr,
        level=level.upper(),
        format="<green>{time:HH:mm:ss}</green> <level>{level: <7}</level> {message}",
    )
