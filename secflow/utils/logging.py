"""
Logging configuration and utilities.
"""

import logging
import logging.handlers
from pathlib import Path
from typing import Optional


DETAILED_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(message)s"


def setup_root_logger(log_file: Optional[Path] = None,
                      level: str = "INFO",
                      format_string: Optional[str] = None,
                      max_file_size_mb: int = 10,
                      backup_count: int = 5):
    """
    Set up the root logger for the application.

    Args:
        log_file: Optional log file path
        level: Logging level
        format_string: Log format string; defaults to the detailed format
        max_file_size_mb: Size at which the log file rotates
        backup_count: Number of rotated files to keep
    """
    root_logger = logging.getLogger()

    # Clear any existing handlers
    root_logger.handlers.clear()

    root_logger.setLevel(getattr(logging, level.upper()))

    formatter = logging.Formatter(format_string or DETAILED_FORMAT)

    # Console handler
    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    # File handler
    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=max_file_size_mb * 1024 * 1024,
            backupCount=backup_count
        )
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    # Set levels for third-party loggers
    logging.getLogger("asyncio").setLevel(logging.WARNING)
