"""Configure loguru and keep agent-supplied text out of daemon logs."""

from __future__ import annotations

import sys

from loguru import logger


_USER_PREFIX = "[USER] "


def configure_logging(level: str = "INFO") -> None:
    """Configure loguru logger with the specified level."""
    logger.remove()
    logger.add(
        sys.stderr,
        level=level.upper(),
        format=(
            "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
            "<level>{level: <8}</level> | "
            "<cyan>{module}</cyan>:<cyan>{line}</cyan> - "
            "{message}"
        ),
    )


def redact_log_message(message: str, limit: int = 200) -> str:
    """Shorten an agent log line for the daemon's own log.

    User prompts are replaced entirely; other lines are truncated to *limit*
    characters.
    """
    if message.startswith(_USER_PREFIX):
        return f"{_USER_PREFIX}[redacted]"
    return truncate(message, limit)


def truncate(text: str, limit: int = 100) -> str:
    return text[:limit] + ("..." if len(text) > limit else "")
