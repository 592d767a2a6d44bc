"""Logging wiring for ``finance_flow``.

Statement parsing runs inside hosts that own stdout (the CLI prints one JSON
document there), so all diagnostics go through the ``finance_flow`` logger
tree and, once configured, to a single stderr ``StreamHandler``.

- ``configure_logging(...)``: install (or retune) the package handler. Level
  and format come from arguments, then ``FINANCE_FLOW_LOG_LEVEL`` /
  ``FINANCE_FLOW_LOG_FORMAT``, then ``INFO`` and :data:`DEFAULT_FORMAT`.
- ``get_logger(name)``: a child logger; silent (``NullHandler``) until a host
  configures output.

What gets logged where:

- DEBUG: skipped statement lines, rule compile fallbacks, per-section parser
  choices.
- INFO: one summary per processed batch, store writes.
- WARNING: classifier failures, deposit rows stamped with a fallback date.
- ERROR: the top-level failure converted into a failure result.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import IO

PACKAGE_LOGGER = "finance_flow"
LEVEL_ENV = "FINANCE_FLOW_LOG_LEVEL"
FORMAT_ENV = "FINANCE_FLOW_LOG_FORMAT"
DEFAULT_FORMAT = "%(asctime)s %(name)s %(levelname)s %(message)s"

_handler: logging.Handler | None = None


def resolve_level(level: int | str | None = None) -> int:
    """Turn ``level`` (or ``FINANCE_FLOW_LOG_LEVEL``) into a numeric level.

    Unknown names resolve to ``INFO`` rather than failing the host.
    """

    if level is None:
        level = os.getenv(LEVEL_ENV) or logging.INFO
    if isinstance(level, int):
        return level
    name = level.strip().upper()
    if name.isdigit():
        return int(name)
    numeric = logging.getLevelName(name)
    return numeric if isinstance(numeric, int) else logging.INFO


def configure_logging(
    level: int | str | None = None,
    *,
    fmt: str | None = None,
    stream: IO[str] = sys.stderr,
    force: bool = False,
) -> logging.Logger:
    """Attach the package handler and return the package logger.

    Parameters
    ----------
    level:
        ``int`` or level name. ``None`` reads ``FINANCE_FLOW_LOG_LEVEL``.
    fmt:
        Format string. ``None`` reads ``FINANCE_FLOW_LOG_FORMAT``.
    stream:
        Destination of the handler.
    force:
        Replace an already installed handler (new stream and format).

    Notes
    -----
    A second call without ``force`` keeps the installed handler and only
    applies an explicitly given ``level``, so a ``--log-level`` flag still
    takes effect after an earlier default configuration.
    """

    global _handler
    logger = logging.getLogger(PACKAGE_LOGGER)

    if _handler is not None and not force:
        if level is not None:
            resolved = resolve_level(level)
            logger.setLevel(resolved)
            _handler.setLevel(resolved)
        return logger

    for h in list(logger.handlers):
        if isinstance(h, logging.NullHandler) or h is _handler:
            logger.removeHandler(h)

    resolved = resolve_level(level)
    handler = logging.StreamHandler(stream)
    handler.setLevel(resolved)
    handler.setFormatter(logging.Formatter(fmt or os.getenv(FORMAT_ENV) or DEFAULT_FORMAT))
    logger.addHandler(handler)
    logger.setLevel(resolved)
    # stdout belongs to the host; keep records off the root logger.
    logger.propagate = False

    _handler = handler
    return logger


def get_logger(name: str) -> logging.Logger:
    """Return ``name``'s logger, silent until a host configures output."""

    pkg_logger = logging.getLogger(PACKAGE_LOGGER)
    if _handler is None and not pkg_logger.handlers:
        pkg_logger.addHandler(logging.NullHandler())
    return logging.getLogger(name)


__all__ = [
    "PACKAGE_LOGGER",
    "LEVEL_ENV",
    "FORMAT_ENV",
    "DEFAULT_FORMAT",
    "resolve_level",
    "configure_logging",
    "get_logger",
]
