"""
Centralized Logging Configuration
==================================
Consistent logging for the forecast engine, cache and refresh scheduler.

Design Decisions:
- Uses Python's built-in logging (no external dependencies)
- Console output always, file output when a log file is configured
- Level can be overridden with the FLOWCAST_LOG_LEVEL environment variable

Usage:
    from flowcast.utils.logger import get_logger
    logger = get_logger(__name__)
    logger.info("Refresh tick started")
"""

import logging
import os
import sys
from pathlib import Path
from datetime import datetime
from typing import Optional

from flowcast.utils.constants import LOGGING_CONFIG


def _resolve_level(level: Optional[int]) -> int:
    if level is not None:
        return level
    env_level = os.environ.get("FLOWCAST_LOG_LEVEL", LOGGING_CONFIG["level"])
    resolved = logging.getLevelName(env_level.upper())
    return resolved if isinstance(resolved, int) else logging.INFO


def get_logger(
    name: str,
    log_file: Optional[str] = None,
    level: Optional[int] = None
) -> logging.Logger:
    """
    Create and configure a logger instance.

    Parameters
    ----------
    name : str
        Logger name (typically __name__ of the calling module)
    log_file : str, optional
        Path to log file. Falls back to FLOWCAST_LOG_FILE; console only if unset.
    level : int, optional
        Logging level. Default comes from LOGGING_CONFIG / FLOWCAST_LOG_LEVEL.

    Returns
    -------
    logging.Logger
        Configured logger instance

    Example
    -------
    >>> logger = get_logger(__name__)
    >>> logger.info("Cache prewarm started")
    2026-10-19 10:30:00 | INFO     | flowcast.services.scheduler | Cache prewarm started
    """
    logger = logging.getLogger(name)

    # Avoid adding duplicate handlers
    if logger.handlers:
        return logger

    resolved_level = _resolve_level(level)
    logger.setLevel(resolved_level)

    formatter = logging.Formatter(
        fmt=LOGGING_CONFIG["format"],
        datefmt=LOGGING_CONFIG["datefmt"]
    )

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(resolved_level)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    log_file = log_file or os.environ.get("FLOWCAST_LOG_FILE")
    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_path, encoding='utf-8')
        file_handler.setLevel(resolved_level)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    # Prevent propagation to root logger
    logger.propagate = False

    return logger


def log_sales_frame_info(logger: logging.Logger, source: str, df) -> None:
    """
    Log row count and date range of a loaded sales frame.

    Parameters
    ----------
    logger : logging.Logger
        Logger instance
    source : str
        Where the frame came from (file name, provider name)
    df : pd.DataFrame
        Sales records with a ``timestamp`` column
    """
    logger.info(f"Sales source '{source}': {len(df):,} records")

    if len(df) > 0 and 'timestamp' in df.columns:
        try:
            logger.info(
                f"Sales source '{source}' date range: "
                f"{df['timestamp'].min()} to {df['timestamp'].max()}"
            )
        except (TypeError, ValueError) as e:
            logger.warning(f"Could not determine date range for '{source}': {e}")


class LogContext:
    """
    Context manager for structured logging of operations.

    Usage:
        with LogContext(logger, "Sweeping stale forecasts"):
            # ... operation code ...
    """

    def __init__(self, logger: logging.Logger, operation: str):
        self.logger = logger
        self.operation = operation
        self.start_time = None

    def __enter__(self):
        self.start_time = datetime.now()
        self.logger.debug(f"Starting: {self.operation}")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        elapsed = (datetime.now() - self.start_time).total_seconds()

        if exc_type is None:
            self.logger.info(f"Completed: {self.operation} ({elapsed:.2f}s)")
        else:
            self.logger.error(f"Failed: {self.operation} ({elapsed:.2f}s) - {exc_val}")

        # Don't suppress exceptions
        return False
