"""Logging utilities for pico-abtest.

All pico-abtest loggers live under the ``pico_abtest`` namespace.  Use
``get_logger()`` to obtain a namespaced logger and ``configure_logging()``
to set the level and handler for the entire library.
"""

import logging
import sys
from typing import Optional

DEFAULT_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
"""str: Default log format used by ``configure_logging``."""

NAMESPACE = "pico_abtest"


def get_logger(name: str) -> logging.Logger:
    """Get a logger inside the pico_abtest namespace.

    Args:
        name: Logger name, usually ``__name__``. Names outside the
            namespace are nested under it.

    Returns:
        The namespaced Logger instance.
    """
    if name != NAMESPACE and not name.startswith(f"{NAMESPACE}."):
        name = f"{NAMESPACE}.{name}"
    return logging.getLogger(name)


def configure_logging(level: int = logging.INFO, handler: Optional[logging.Handler] = None) -> None:
    """Configure logging for the pico_abtest library.

    Calling it more than once only updates the level; a single handler is
    ever installed.

    Args:
        level: Logging level (default: INFO)
        handler: Custom handler. If None, uses StreamHandler to stderr.
    """
    root_logger = logging.getLogger(NAMESPACE)
    root_logger.setLevel(level)

    if not root_logger.handlers:
        if handler is None:
            handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(DEFAULT_FORMAT))
        root_logger.addHandler(handler)
