"""Logger factory shared by the engine, the CLI and the HTTP surface.

Usage example:
    from mandate_matching.observability import get_logger

    logger = get_logger("mandate_matching.application.search")
    logger.info("Scored %d candidates for mandate %s", count, mandate_id)
"""

from __future__ import annotations

import logging
import time

_ENGINE_PREFIX = "mandate_matching"
_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
_LOG_DATE_FORMAT = "%Y-%m-%dT%H:%M:%S%z"

_engine_level = logging.INFO


def _utc_stream_handler() -> logging.Handler:
    formatter = logging.Formatter(fmt=_LOG_FORMAT, datefmt=_LOG_DATE_FORMAT)
    formatter.converter = time.gmtime
    handler = logging.StreamHandler()
    handler.setFormatter(formatter)
    return handler


def get_logger(name: str) -> logging.Logger:
    """Return a named logger writing UTC-stamped lines to stderr.

    Args:
        name: Module-qualified logger name. Names under ``mandate_matching``
            follow the level chosen with ``set_log_level``.

    Returns:
        The logger, configured once with its own stream handler.
    """
    logger = logging.getLogger(name)
    if logger.handlers:
        return logger
    logger.addHandler(_utc_stream_handler())
    logger.setLevel(_engine_level if name.startswith(_ENGINE_PREFIX) else logging.INFO)
    logger.propagate = False
    return logger


def set_log_level(level: str) -> None:
    """Apply a level name such as ``"DEBUG"`` to engine loggers, present and future."""
    global _engine_level
    resolved = logging.getLevelNamesMapping().get(level.strip().upper())
    if resolved is None:
        raise ValueError(f"Unknown log level: {level}")
    _engine_level = resolved
    for name, candidate in logging.Logger.manager.loggerDict.items():
        if name.startswith(_ENGINE_PREFIX) and isinstance(candidate, logging.Logger):
            candidate.setLevel(resolved)
