"""loguru setup for the CLI and embedding applications.

stdlib ``logging`` records (anyio, asyncio, host application libraries) are
routed into loguru so everything shares one sink and format.
"""

from __future__ import annotations

import logging
import sys

from loguru import logger

_DETAILED_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
    "<level>{message}</level>"
)
_COMPACT_FORMAT = "<level>{level: <8}</level> | <level>{message}</level>"


class _InterceptHandler(logging.Handler):
    """Forward stdlib log records to loguru, keeping the caller's location."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level: str | int = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        frame, depth = logging.currentframe(), 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def _stderr_sink(message: str) -> None:
    # Resolved per message so a replaced sys.stderr is honoured.
    sys.stderr.write(message)


def setup_logging(level: str = "INFO", *, detailed: bool | None = None) -> None:
    """Make loguru the only logging sink.

    ``detailed`` adds timestamps and call sites; it defaults to on at DEBUG
    level and off otherwise.  Safe to call more than once.
    """
    level = level.upper()
    if detailed is None:
        detailed = level == "DEBUG"

    logger.remove()
    logger.add(_stderr_sink, level=level, format=_DETAILED_FORMAT if detailed else _COMPACT_FORMAT)
    logging.basicConfig(handlers=[_InterceptHandler()], level=0, force=True)
    logging.getLogger("asyncio").setLevel(logging.WARNING)

    logger.debug("Logging configured (level={}, detailed={})", level, detailed)
