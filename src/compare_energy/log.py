"""Logging setup.

Usage:
    from compare_energy.log import get_logger
    logger = get_logger(__name__)

Handlers are attached by the CLI through configure_logging(); library code
only asks for loggers.
"""

import logging

from rich.console import Console
from rich.logging import RichHandler

from .config import DEFAULT_LOG_LEVEL, get_log_level

ROOT_LOGGER = "compare_energy"


def resolve_level(name: str) -> int | None:
    """Numeric level for a level name, or None if the name is unknown."""
    level = logging.getLevelName(name.strip().upper())
    return level if isinstance(level, int) else None


def configure_logging(level: str | None = None) -> logging.Logger:
    """Attach a rich handler (stderr) to the package logger and set its level.

    The level comes from the argument, else COMPARE_ENERGY_LOG_LEVEL. An
    unknown level name falls back to WARNING with a warning. Safe to call
    more than once; the handler is only added the first time.
    """
    logger = logging.getLogger(ROOT_LOGGER)

    if not logger.handlers:
        handler = RichHandler(console=Console(stderr=True), show_path=False)
        handler.setFormatter(logging.Formatter("%(message)s", datefmt="%Y-%m-%d %H:%M:%S"))
        logger.addHandler(handler)
        logger.propagate = False

    name = level or get_log_level()
    numeric = resolve_level(name)
    if numeric is None:
        logger.setLevel(DEFAULT_LOG_LEVEL)
        logger.warning("Unknown log level %r, using %s", name, DEFAULT_LOG_LEVEL)
    else:
        logger.setLevel(numeric)

    return logger


def get_logger(name: str = ROOT_LOGGER) -> logging.Logger:
    """Return a logger under the package logger."""
    if name == ROOT_LOGGER or name.startswith(ROOT_LOGGER + "."):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER}.{name}")
