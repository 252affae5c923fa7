"""Singalong - pitch analysis and note segmentation for a singing game.

The package only creates loggers. A host application calls
``configure_logging()`` once at startup to attach the console handler.
"""

from singalong.logging_config import configure_logging

__version__ = "0.1.0"

__all__ = ["configure_logging", "__version__"]
