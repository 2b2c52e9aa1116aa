"""Logging for the ``mathpad`` logger tree.

Modules log through ``get_logger("solver")``, ``get_logger("engine")`` and
so on. Nothing is printed until the CLI, or an application embedding the
package, calls ``setup_logging``.
"""

import logging
import sys
from datetime import datetime
from typing import List, Optional

from .config import LOG_LEVEL

ROOT_LOGGER = "mathpad"

logging.getLogger(ROOT_LOGGER).addHandler(logging.NullHandler())


class StructuredFormatter(logging.Formatter):
    """``<time> [LEVEL] component: message``, with the ``mathpad.`` prefix dropped."""

    def format(self, record: logging.LogRecord) -> str:
        component = record.name
        if component.startswith(ROOT_LOGGER + "."):
            component = component[len(ROOT_LOGGER) + 1:]
        timestamp = datetime.fromtimestamp(record.created).isoformat(timespec="milliseconds")
        text = f"{timestamp} [{record.levelname}] {component}: {record.getMessage()}"
        if record.exc_info:
            text += "\n" + self.formatException(record.exc_info)
        return text


def setup_logging(level: str = LOG_LEVEL, log_file: Optional[str] = None) -> logging.Logger:
    """Send the mathpad tree to stderr, and to ``log_file`` when given.

    Calling it again replaces the handlers installed by the previous call,
    so the level can change without duplicated output.

    Args:
        level: DEBUG, INFO, WARNING, ERROR or CRITICAL (unknown names mean WARNING)
        log_file: Optional path that receives the same records

    Returns:
        The ``mathpad`` root logger
    """
    root = logging.getLogger(ROOT_LOGGER)
    root.setLevel(getattr(logging, str(level).upper(), logging.WARNING))
    root.propagate = False

    for handler in list(root.handlers):
        if not isinstance(handler, logging.NullHandler):
            root.removeHandler(handler)
            handler.close()

    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if log_file:
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))
    formatter = StructuredFormatter()
    for handler in handlers:
        handler.setFormatter(formatter)
        root.addHandler(handler)
    return root


def get_logger(name: str = "") -> logging.Logger:
    """Logger for one component: ``get_logger("solver")`` is ``mathpad.solver``."""
    return logging.getLogger(f"{ROOT_LOGGER}.{name}" if name else ROOT_LOGGER)
