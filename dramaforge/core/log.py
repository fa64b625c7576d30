"""
Logging setup shared by every DramaForge module.
"""

import logging
import os

ROOT_LOGGER_NAME = "dramaforge"

_root = logging.getLogger(ROOT_LOGGER_NAME)
if not _root.handlers:
    _handler = logging.StreamHandler()
    _handler.setFormatter(logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s"))
    _root.addHandler(_handler)
    _root.setLevel(os.getenv("DRAMAFORGE_LOG_LEVEL", "INFO").upper())


def get_logger(name: str) -> logging.Logger:
    """Return a child of the dramaforge logger for a module name."""
    if name == ROOT_LOGGER_NAME or name.startswith(ROOT_LOGGER_NAME + "."):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")
