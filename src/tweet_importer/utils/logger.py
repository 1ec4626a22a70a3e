"""Centralized logging configuration."""

import logging
import sys
import time
from pathlib import Path
from typing import Optional

DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(
    level: str = "INFO",
    log_file: Optional[str] = None,
    format_string: Optional[str] = None
) -> logging.Logger:
    """
    Set up logging configuration.

    Replaces any handlers installed by an earlier call so repeated setup
    doesn't duplicate output.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional log file path
        format_string: Optional custom format string

    Returns:
        Configured root logger
    """
    formatter = logging.Formatter(format_string or DEFAULT_FORMAT)

    logger = logging.getLogger()
    logger.setLevel(getattr(logging, level.upper()))
    for handler in list(logger.handlers):
        logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_path)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger


def format_duration(seconds: float) -> str:
    """Milliseconds below one second, tenths of a second above."""
    if seconds < 1:
        return f"{seconds * 1000:.0f}ms"
    return f"{seconds:.1f}s"


def format_progress(current: int, total: int) -> str:
    percent = (current / total * 100) if total > 0 else 0.0
    return f"[{current}/{total}] {percent:.1f}%"


class ProgressLogger:
    """Logger for tracking import progress with rate and ETA."""

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger(__name__)
        self.start_time = time.monotonic()
        self.current = 0
        self.total = 0

    def update(self, current: int, total: int, stage: Optional[str] = None) -> None:
        """Record absolute progress and log it."""
        self.current = current
        self.total = total

        elapsed = time.monotonic() - self.start_time
        rate = current / elapsed if elapsed > 0 else 0
        eta = (total - current) / rate if rate > 0 else 0

        message = f"Progress: {format_progress(current, total)}"
        if stage:
            message += f" - {stage}"
        message += f" - Rate: {rate:.1f}/s - ETA: {eta:.0f}s"
        self.logger.info(message)

    def complete(self) -> None:
        """Log the elapsed time for the whole run."""
        elapsed = time.monotonic() - self.start_time
        self.logger.info(f"Completed {self.total} items in {format_duration(elapsed)}")
