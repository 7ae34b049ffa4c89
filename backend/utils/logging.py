"""
Logging utilities for the Doula CRM backend.

Provides standardized logger configuration following security and privacy rules.

CRITICAL SECURITY RULES:
- NEVER log record field values (client names, due dates, birth notes, etc.)
- NEVER log sharing criteria operands (they are copied from record data)
- NEVER log Supabase Auth tokens, API keys, or secrets

Acceptable logging:
- Record, rule, share, user and organization IDs
- Access decisions (level and winning source) and grant counts
- Error codes and sanitized error messages (no stack traces with secrets)
"""

import logging
from typing import Optional

from backend.config import settings


def get_logger(name: str, level: Optional[int] = None) -> logging.Logger:
    """
    Get a configured logger for the specified module.

    Args:
        name: Module name (typically __name__)
        level: Optional logging level (defaults to settings.LOG_LEVEL)

    Returns:
        Configured logger instance

    Usage:
        >>> from backend.utils.logging import get_logger
        >>> logger = get_logger(__name__)
        >>> logger.info("Sharing rule created")
    """
    logger = logging.getLogger(name)

    if level is None:
        level = logging.getLevelName(settings.LOG_LEVEL.upper())
        if not isinstance(level, int):
            level = logging.INFO

    logger.setLevel(level)

    # Add handler if not already configured (avoid duplicate handlers)
    if not logger.handlers:
        handler = logging.StreamHandler()
        formatter = logging.Formatter(
            fmt='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    return logger
