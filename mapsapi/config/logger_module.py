"""
Logging utilities for mapsapi.

Everything the library logs goes to the "mapsapi" logger hierarchy, so
applications can route or silence it without touching the root logger.
Per-request progress lines use the "mapsapi.progress" child, which
writes to stderr out of the box; callers turn it off with quiet=True.
"""

import logging
import sys
from pathlib import Path
from typing import Optional


LIBRARY_LOGGER = "mapsapi"
PROGRESS_LOGGER = "mapsapi.progress"

# Flag to track if logger has been initialized to ensure idempotency
_logger_initialized = False


class _ConsoleHandler(logging.StreamHandler):
    """StreamHandler bound to whatever sys.stderr is at emit time."""

    @property
    def stream(self):
        return sys.stderr

    @stream.setter
    def stream(self, value):
        pass


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Return the library logger, or one of its children."""
    return logging.getLogger(f"{LIBRARY_LOGGER}.{name}" if name else LIBRARY_LOGGER)


def _progress_logger() -> logging.Logger:
    """The progress logger, with its console handler attached on first use."""
    logger = logging.getLogger(PROGRESS_LOGGER)
    if not any(isinstance(h, _ConsoleHandler) for h in logger.handlers):
        handler = _ConsoleHandler()
        handler.setFormatter(logging.Formatter("%(message)s"))
        logger.addHandler(handler)
        logger.setLevel(logging.INFO)
        logger.propagate = False
    return logger


def initialize_logger(log_level: str = "INFO", log_file: Optional[str] = None) -> None:
    """
    Attach console (and optionally file) handlers to the library logger.

    Progress lines keep their own console output; with a log_file they
    are also written to the file.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional path to a log file
    """
    global _logger_initialized

    if _logger_initialized:
        return

    library_logger = get_logger()
    library_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))
    library_logger.handlers.clear()

    console_handler = _ConsoleHandler()
    console_handler.setFormatter(logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    ))
    library_logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_path, mode='a', encoding='utf-8')
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(filename)s:%(lineno)d - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        ))
        library_logger.addHandler(file_handler)
        _progress_logger().addHandler(file_handler)

    _logger_initialized = True

    library_logger.info(f"Logger initialized with level {log_level}, file: {log_file}")


def log_progress(message: str) -> None:
    """
    Write one request progress line to stderr.

    Args:
        message: Progress line (input value, dots, API status) or request URL
    """
    _progress_logger().info(message)


def log_info(message: str) -> None:
    """
    Log an info message.

    Args:
        message: Message to log
    """
    get_logger().info(message)


def log_warning(message: str) -> None:
    """
    Log a warning message.

    Args:
        message: Message to log
    """
    get_logger().warning(message)


def log_error(message: str) -> None:
    """Log an error message."""
    get_logger().error(message)


def log_debug(message: str) -> None:
    get_logger().debug(message)
