"""Logging configuration for MedBot."""
import logging
import sys
import os
from datetime import datetime
from typing import Optional

from medbot.config import Settings, settings as default_settings

_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def setup_logging(config: Optional[Settings] = None) -> logging.Logger:
    """Configure the root logger. Safe to call more than once."""
    config = config or default_settings
    formatter = logging.Formatter(_FORMAT)

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, config.LOG_LEVEL.upper(), logging.INFO))

    # Drop handlers from an earlier call so records are not duplicated
    for handler in list(root_logger.handlers):
        if getattr(handler, "_medbot", False):
            root_logger.removeHandler(handler)
            handler.close()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    console_handler._medbot = True
    root_logger.addHandler(console_handler)

    if config.LOG_DIR:
        try:
            os.makedirs(config.LOG_DIR, exist_ok=True)
            file_handler = logging.FileHandler(
                os.path.join(config.LOG_DIR, f"medbot_{datetime.now().strftime('%Y%m%d')}.log")
            )
            file_handler.setFormatter(formatter)
            file_handler._medbot = True
            root_logger.addHandler(file_handler)
        except OSError as e:
            # If file logging fails, just log to console
            root_logger.warning(f"Could not set up file logging: {e}")

    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
    return root_logger


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance for a specific module."""
    return logging.getLogger(name)
