"""Process-wide logging for ``beancount_ledger``.

Modules log through ``get_logger("beancount_ledger.<module>")`` and never add
handlers of their own. Used as a library the package is silent; the CLI calls
:func:`configure_logging` to send records to stderr.
"""

from __future__ import annotations

import logging
import os

_PKG_LOGGER_NAME = "beancount_ledger"
_HANDLER_NAME = "beancount_ledger.stderr"
_LEVEL_ENV_VAR = "BEANCOUNT_LEDGER_LOG_LEVEL"
_FORMAT = "%(asctime)s %(name)s %(levelname)s %(message)s"


def _resolve_level(level: int | str | None) -> int:
    if level is None:
        level = os.getenv(_LEVEL_ENV_VAR) or logging.INFO
    if isinstance(level, int):
        return level
    name = level.strip().upper()
    if name.isdigit():
        return int(name)
    # Unknown names fall back to INFO rather than failing startup.
    resolved = logging.getLevelNamesMapping().get(name)
    return resolved if resolved is not None else logging.INFO


def _own_handler(logger: logging.Logger) -> logging.Handler | None:
    for handler in logger.handlers:
        if handler.get_name() == _HANDLER_NAME:
            return handler
    return None


def configure_logging(level: int | str | None = None) -> None:
    """Log package records to stderr at ``level``.

    ``level`` is a number or a level name. When omitted, the
    ``BEANCOUNT_LEDGER_LOG_LEVEL`` environment variable is used, then INFO.
    Calling this again only changes the level; the stderr handler is added
    once.
    """

    logger = logging.getLogger(_PKG_LOGGER_NAME)
    resolved = _resolve_level(level)

    handler = _own_handler(logger)
    if handler is None:
        for existing in list(logger.handlers):
            if isinstance(existing, logging.NullHandler):
                logger.removeHandler(existing)
        handler = logging.StreamHandler()
        handler.set_name(_HANDLER_NAME)
        handler.setFormatter(logging.Formatter(_FORMAT))
        logger.addHandler(handler)
        logger.propagate = False

    handler.setLevel(resolved)
    logger.setLevel(resolved)


def get_logger(name: str) -> logging.Logger:
    pkg_logger = logging.getLogger(_PKG_LOGGER_NAME)
    if not pkg_logger.handlers:
        pkg_logger.addHandler(logging.NullHandler())
    return logging.getLogger(name)
