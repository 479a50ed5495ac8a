"""Logging setup for the borrowdesk logger tree."""

from __future__ import annotations

import logging
import sys
from typing import Optional

from borrowdesk.utils.config import get_settings


ROOT_LOGGER_NAME = "borrowdesk"
LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"

_configured_level: Optional[str] = None


def configure_logging(level: Optional[str] = None, force: bool = False) -> logging.Logger:
    """Attach a single stdout handler to the ``borrowdesk`` logger.

    Only the package tree is touched; the root logger stays under the control
    of whatever hosts the app (uvicorn, pytest). Calling again with
    ``force=True`` swaps the handler and level.
    """

    global _configured_level
    root = logging.getLogger(ROOT_LOGGER_NAME)
    if _configured_level is not None and not force:
        return root

    resolved_level = (level or get_settings().log_level).upper()
    for handler in list(root.handlers):
        root.removeHandler(handler)
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root.addHandler(handler)
    root.setLevel(resolved_level)
    root.propagate = False
    _configured_level = resolved_level
    return root


def get_logger(name: str) -> logging.Logger:
    """Return a logger inside the ``borrowdesk`` tree for ``name``."""
    configure_logging()
    if name != ROOT_LOGGER_NAME and not name.startswith(ROOT_LOGGER_NAME + "."):
        name = f"{ROOT_LOGGER_NAME}.{name}"
    return logging.getLogger(name)
