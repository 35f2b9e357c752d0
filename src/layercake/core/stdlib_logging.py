from __future__ import annotations

import logging
import sys
from typing import Optional, TextIO

PACKAGE_LOGGER = "layercake"

_LAYERCAKE_HANDLER: logging.Handler | None = None


def _level_from_name(name: str) -> int:
    level = logging.getLevelName(str(name).upper())
    return level if isinstance(level, int) else logging.INFO


def configure_logging(level: Optional[str] = None, *, stream: Optional[TextIO] = None) -> logging.Logger:
    """Attach a single stream handler to the ``layercake`` logger.

    Idempotent per-process: calling again replaces the previously installed
    handler instead of stacking another one. When ``level`` is omitted the
    configured ``logging.level`` is used.
    """
    global _LAYERCAKE_HANDLER

    if level is None:
        from layercake.core.config import get_config

        level = get_config().log_level

    logger = logging.getLogger(PACKAGE_LOGGER)
    logger.setLevel(_level_from_name(level))

    if _LAYERCAKE_HANDLER is not None:
        logger.removeHandler(_LAYERCAKE_HANDLER)
        _LAYERCAKE_HANDLER.close()

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setLevel(_level_from_name(level))
    handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
    logger.addHandler(handler)
    _LAYERCAKE_HANDLER = handler
    return logger


def reset_logging_for_tests() -> None:
    """Test-only: drop the handler installed by configure_logging."""
    global _LAYERCAKE_HANDLER
    logger = logging.getLogger(PACKAGE_LOGGER)
    if _LAYERCAKE_HANDLER is not None:
        logger.removeHandler(_LAYERCAKE_HANDLER)
        _LAYERCAKE_HANDLER.close()
    _LAYERCAKE_HANDLER = None
    logger.setLevel(logging.NOTSET)


__all__ = ["configure_logging", "reset_logging_for_tests", "PACKAGE_LOGGER"]
