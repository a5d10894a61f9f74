"""Logging configuration for ``finboard``.

Two helpers make up the public surface:

- ``configure_logging(...)`` installs one ``StreamHandler`` on the ``finboard``
  package logger. Entrypoints (the CLI, a host web app) call it once at
  startup; repeated calls are no-ops unless ``force=True``.
- ``get_logger(name)`` returns a named logger and makes sure the package logger
  carries a ``NullHandler`` while nothing has been configured, so library use
  stays silent.

Pipeline modules only ever call ``get_logger("finboard.<module>")``. They do
not add handlers of their own.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import IO

PACKAGE_LOGGER = "finboard"
LEVEL_ENV_VAR = "FINBOARD_LOG_LEVEL"
DEFAULT_FORMAT = "%(asctime)s %(name)s %(levelname)s %(message)s"

_handler: logging.Handler | None = None


def resolve_level(level: int | str | None) -> int:
    """Translate ``level`` (int, name, or numeric string) into a logging level.

    ``None`` falls back to ``$FINBOARD_LOG_LEVEL`` and then to ``INFO``.
    Unrecognized names also resolve to ``INFO``.
    """

    if level is None:
        level = os.getenv(LEVEL_ENV_VAR) or logging.INFO
    if isinstance(level, int):
        return level
    name = level.strip().upper()
    if name.isdigit():
        return int(name)
    value = logging.getLevelName(name)
    return value if isinstance(value, int) else logging.INFO


def configure_logging(
    level: int | str | None = None,
    *,
    fmt: str | None = None,
    stream: IO[str] | None = None,
    force: bool = False,
) -> logging.Logger:
    """Attach the package ``StreamHandler`` and return the package logger.

    Parameters
    ----------
    level:
        Level as ``int`` or name. ``None`` reads ``FINBOARD_LOG_LEVEL``.
    fmt:
        Format string; defaults to :data:`DEFAULT_FORMAT`.
    stream:
        Output stream; defaults to ``sys.stderr`` at call time.
    force:
        Replace a handler installed by an earlier call.
    """

    global _handler
    logger = logging.getLogger(PACKAGE_LOGGER)
    if _handler is not None:
        if not force:
            return logger
        logger.removeHandler(_handler)
        _handler = None

    for h in list(logger.handlers):
        if isinstance(h, logging.NullHandler):
            logger.removeHandler(h)

    resolved = resolve_level(level)
    handler = logging.StreamHandler(stream if stream is not None else sys.stderr)
    handler.setLevel(resolved)
    handler.setFormatter(logging.Formatter(fmt or DEFAULT_FORMAT))
    logger.addHandler(handler)
    logger.setLevel(resolved)
    # The root logger must not print the same records a second time.
    logger.propagate = False
    _handler = handler
    return logger


def reset_logging() -> None:
    """Undo :func:`configure_logging` (used between test cases)."""

    global _handler
    logger = logging.getLogger(PACKAGE_LOGGER)
    if _handler is not None:
        logger.removeHandler(_handler)
        _handler = None
    logger.setLevel(logging.NOTSET)
    logger.propagate = True


def get_logger(name: str) -> logging.Logger:
    """Return ``logging.getLogger(name)`` with a silent default for library use."""

    pkg = logging.getLogger(PACKAGE_LOGGER)
    if _handler is None and not pkg.handlers:
        pkg.addHandler(logging.NullHandler())
    return logging.getLogger(name)


__all__ = [
    "configure_logging",
    "reset_logging",
    "get_logger",
    "resolve_level",
    "PACKAGE_LOGGER",
    "LEVEL_ENV_VAR",
]
