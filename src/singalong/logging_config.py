"""Logging setup for Singalong.

Modules log through ``logging.getLogger(__name__)``; this module only
attaches a rich console handler to the package logger.
"""

import logging

from rich.console import Console
from rich.logging import RichHandler

from singalong.config import get_settings

PACKAGE_LOGGER = "singalong"

_configured = False


def configure_logging(
    level: str | int | None = None, console: Console | None = None
) -> logging.Logger:
    """Attach a RichHandler to the package logger.

    Calling this more than once only updates the level.

    Args:
        level: Log level name or number. Defaults to ``Settings.log_level``.
        console: Console to render to. Defaults to stderr.

    Returns:
        The package logger.
    """
    global _configured
    logger = logging.getLogger(PACKAGE_LOGGER)
    logger.setLevel(level if level is not None else get_settings().log_level)

    if not _configured:
        handler = RichHandler(
            console=console or Console(stderr=True),
            show_path=False,
            rich_tracebacks=True,
        )
        handler.setFormatter(logging.Formatter("%(message)s", datefmt="[%X]"))
        logger.addHandler(handler)
        logger.propagate = False
        _configured = True

    return logger
