"""
Logging module -- Structured logging with a HUMAN progress level.
"""

from .human import HumanFormatter, HumanLog, HumanLogHandler
from .levels import HUMAN
from .setup import configure_logging, get_logger

__all__ = [
    "HUMAN",
    "HumanFormatter",
    "HumanLog",
    "HumanLogHandler",
    "configure_logging",
    "get_logger",
]
