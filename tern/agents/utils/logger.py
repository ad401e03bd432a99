"""
Process-wide logging capability.

Components that accept a ``logger`` argument fall back to the logger held
here. Tests swap it with ``set_logger`` and restore it with
``reset_logger``.
"""

import logging
from typing import Optional, Union

DEFAULT_LOGGER_NAME = "tern.agents"

_NULL_LOGGER_NAME = "tern.agents.null"

_current_logger: Optional[logging.Logger] = None


def _null_logger() -> logging.Logger:
    null_logger = logging.getLogger(_NULL_LOGGER_NAME)
    if not null_logger.handlers:
        null_logger.addHandler(logging.NullHandler())
    null_logger.propagate = False
    null_logger.disabled = True
    return null_logger


def get_logger() -> logging.Logger:
    """Return the process-wide logger."""
    if _current_logger is None:
        return logging.getLogger(DEFAULT_LOGGER_NAME)
    return _current_logger


def set_logger(logger: Optional[logging.Logger]) -> None:
    """Install a process-wide logger; None silences engine logging."""
    global _current_logger
    _current_logger = logger if logger is not None else _null_logger()


def reset_logger() -> None:
    """Restore the default logger."""
    global _current_logger
    _current_logger = None


def set_log_level(level: Union[int, str]) -> None:
    """Set the level of the default logger and the engine's module loggers."""
    if isinstance(level, str):
        level = level.upper()
    logging.getLogger(DEFAULT_LOGGER_NAME).setLevel(level)
    if _current_logger is not None:
        _current_logger.setLevel(level)
