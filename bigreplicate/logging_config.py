"""Centralized logging configuration for BigReplicate.

Replicator agents run on worker threads, so every record carries the thread
name to make interleaved per-table output readable.
"""

import logging
import sys
from typing import Optional

LOG_FORMAT = "%(asctime)s - %(threadName)s - %(name)s - %(levelname)s - %(message)s"

# Google client libraries log every HTTP retry at INFO
NOISY_LOGGERS = ("google.auth", "google.api_core", "urllib3")


def setup_logging(
    level: str = "INFO",
    log_file: Optional[str] = None,
    verbose: bool = False,
) -> logging.Logger:
    """Configure application-wide logging.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional file path for log output
        verbose: If True, sets level to DEBUG (job polling becomes visible)

    Returns:
        Configured ``bigreplicate`` logger

    Example:
        >>> logger = setup_logging(verbose=True)
        >>> logger.info("creating 4 replicator agents")
    """
    log_level = logging.DEBUG if verbose else getattr(logging, level.upper())

    logger = logging.getLogger("bigreplicate")
    logger.setLevel(log_level)

    # Remove existing handlers to avoid duplicates when invoked repeatedly
    logger.handlers = []

    formatter = logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(log_level)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    logger.propagate = False

    for noisy in NOISY_LOGGERS:
        logging.getLogger(noisy).setLevel(logging.WARNING)

    return logger


def get_logger(name: str) -> logging.Logger:
    """Get a logger namespaced under ``bigreplicate``.

    Example:
        >>> get_logger("replication.state_machine").name
        'bigreplicate.replication.state_machine'
    """
    return logging.getLogger(f"bigreplicate.{name}")
