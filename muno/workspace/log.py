"""Logging configuration using loguru.

Intercepts stdlib logging so that any library logging through ``logging``
flows through loguru with the same format as the workspace engine.
"""

from __future__ import annotations

import logging
import sys

from loguru import logger


class _InterceptHandler(logging.Handler):
    """Bridge stdlib logging records into loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        # Map stdlib level name -> loguru level
        try:
            level: str | int = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # Walk the call stack so loguru reports the real call-site
        frame = logging.currentframe()
        depth = 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def setup_logging(level: str = "WARNING", *, verbose: bool = False) -> None:
    """Configure loguru as the sole logging sink.

    Call this once from the CLI entrypoint.  ``verbose`` switches to a format
    that includes the call site, which is useful when debugging a walk.
    """
    level = level.upper()

    if verbose:
        fmt = (
            "<green>{time:HH:mm:ss.SSS}</green> | "
            "<level>{level: <8}</level> | "
            "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
            "<level>{message}</level>"
        )
    else:
        fmt = "<level>{level: <8}</level> | <level>{message}</level>"

    # Remove default loguru handler and add ours
    logger.remove()
    logger.add(sys.stderr, level=level, format=fmt)

    # Intercept all stdlib logging
    logging.basicConfig(handlers=[_InterceptHandler()], level=0, force=True)

    logger.debug("Logging initialised (level={})", level)
