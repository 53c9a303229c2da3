"""Loguru setup for the broker process.

Everything that logs through stdlib ``logging`` (uvicorn, websockets, httpx)
is redirected into loguru so the service has one format and one level.
"""

from __future__ import annotations

import logging
import sys

from loguru import logger

_CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
    "<level>{message}</level>"
)

_NOISY_LOGGERS = ("uvicorn.access", "websockets", "httpx", "httpcore")


def _loguru_level(record: logging.LogRecord) -> str | int:
    try:
        return logger.level(record.levelname).name
    except ValueError:
        return record.levelno


class _InterceptHandler(logging.Handler):
    """Re-emit stdlib records through loguru under the stdlib logger's name."""

    def emit(self, record: logging.LogRecord) -> None:
        origin = {"name": record.name, "function": record.funcName, "line": record.lineno}
        logger.patch(lambda r: r.update(origin)).opt(exception=record.exc_info).log(
            _loguru_level(record), record.getMessage()
        )


def setup_logging(level: str = "INFO", *, json: bool = False) -> None:
    """Install loguru as the only sink.

    Call once per process: from the app lifespan, or from a CLI command that
    does not start the server.  With ``json=True`` records are emitted as
    serialized JSON lines for log shippers.
    """
    level = level.upper()

    logger.remove()
    if json:
        logger.add(sys.stderr, level=level, serialize=True)
    else:
        logger.add(sys.stderr, level=level, format=_CONSOLE_FORMAT)

    logging.basicConfig(handlers=[_InterceptHandler()], level=0, force=True)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logger.debug("Logging initialised (level={}, json={})", level, json)
