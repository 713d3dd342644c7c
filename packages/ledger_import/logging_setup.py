"""Logging for the ``ledger_import`` package.

Log lines follow one shape so imports can be grepped per batch::

    2025-02-01 10:00:00 INFO ledger_import.importer import_statement:done batch_id=7 imported=12

``event:phase`` names the operation and the step inside it; the ``key=value``
pairs after it carry identifiers and counts, never transaction contents.
``log_event`` renders that shape; plain ``logger.info("event:phase k=%s", v)``
calls produce the same thing.

``configure_logging`` attaches one ``StreamHandler`` to the ``ledger_import``
logger and is called once by the CLI. Library use stays silent until then
because ``get_logger`` parks a ``NullHandler`` on the package logger.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import IO, Any

_PKG_LOGGER_NAME = "ledger_import"
_LEVEL_ENV = "LEDGER_IMPORT_LOG_LEVEL"
_DEFAULT_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"
_CONFIGURED = False


def _parse_level(level: int | str | None) -> int:
    if level is None:
        level = os.getenv(_LEVEL_ENV)
    if isinstance(level, int):
        return level
    name = (level or "").strip().upper()
    if name.isdigit():
        return int(name)
    return logging.getLevelNamesMapping().get(name, logging.INFO)


def _render_value(value: Any) -> str:
    text = str(value)
    if text == "" or any(ch.isspace() or ch == "=" for ch in text):
        return repr(text)
    return text


def format_event(event: str, phase: str, **fields: Any) -> str:
    """Render ``event:phase key=value ...``; ``None`` values are left out."""

    parts = [f"{event}:{phase}"]
    parts.extend(f"{key}={_render_value(value)}" for key, value in fields.items() if value is not None)
    return " ".join(parts)


def log_event(
    logger: logging.Logger,
    event: str,
    phase: str,
    *,
    level: int = logging.INFO,
    **fields: Any,
) -> None:
    if logger.isEnabledFor(level):
        logger.log(level, format_event(event, phase, **fields))


def configure_logging(
    level: int | str | None = None,
    *,
    fmt: str | None = None,
    stream: IO[str] = sys.stderr,
) -> None:
    """Attach the package handler once.

    ``level`` falls back to ``LEDGER_IMPORT_LOG_LEVEL`` and then ``INFO``.
    Unknown level names also resolve to ``INFO``.
    """

    global _CONFIGURED
    if _CONFIGURED:
        return

    logger = logging.getLogger(_PKG_LOGGER_NAME)
    for handler in [h for h in logger.handlers if isinstance(h, logging.NullHandler)]:
        logger.removeHandler(handler)

    resolved = _parse_level(level)
    handler = logging.StreamHandler(stream)
    handler.setFormatter(logging.Formatter(fmt or _DEFAULT_FORMAT))
    logger.addHandler(handler)
    logger.setLevel(resolved)
    logger.propagate = False

    _CONFIGURED = True


def get_logger(name: str) -> logging.Logger:
    pkg_logger = logging.getLogger(_PKG_LOGGER_NAME)
    if not _CONFIGURED and not pkg_logger.handlers:
        pkg_logger.addHandler(logging.NullHandler())
    return logging.getLogger(name)


__all__ = ["configure_logging", "format_event", "get_logger", "log_event"]
