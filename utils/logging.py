"""Logging helpers for the image converter."""

import logging
import os
from typing import Optional

_BASE_NAME = "image_converter"
_LOGGER: Optional[logging.Logger] = None


def setup_logger(level: Optional[str] = None) -> logging.Logger:
    """
    Configure the project logger once.

    The level comes from the argument, then IMAGE_CONVERTER_LOG_LEVEL, then INFO.
    """
    global _LOGGER
    logger = logging.getLogger(_BASE_NAME)
    if not logger.handlers:
        handler = logging.StreamHandler()
        formatter = logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    level_name = (level or os.getenv("IMAGE_CONVERTER_LOG_LEVEL") or "INFO").strip().upper()
    logger.setLevel(getattr(logging, level_name, logging.INFO))
    _LOGGER = logger
    return logger


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Return the project logger, or a named child of it."""
    base = _LOGGER if _LOGGER is not None else setup_logger()
    return base if not name else base.getChild(name)
