"""Logging setup for the screen recognizer.

Colored console output for interactive runs and an optional plain log file.
"""

import logging
import os
import sys
from pathlib import Path
from typing import Optional

LOG_FORMAT = "[%(asctime)s] %(levelname)s [%(name)s] %(message)s"
DATE_FORMAT = "%H:%M:%S"

RESET = "\033[0m"
LEVEL_COLORS = {
    logging.DEBUG: "\033[36m",
    logging.INFO: "\033[32m",
    logging.WARNING: "\033[33m",
    logging.ERROR: "\033[31m",
    logging.CRITICAL: "\033[35m",
}


def _supports_color(stream) -> bool:
    """Whether ``stream`` is a terminal that accepts ANSI colors."""
    if not hasattr(stream, "isatty") or not stream.isatty():
        return False
    if os.environ.get("NO_COLOR"):
        return False
    return os.environ.get("TERM", "") != "dumb"


class ColoredFormatter(logging.Formatter):
    """Formatter that colors the level name by severity."""

    def __init__(
        self,
        fmt: Optional[str] = None,
        datefmt: Optional[str] = None,
        use_colors: bool = True,
    ):
        super().__init__(fmt, datefmt)
        self.use_colors = use_colors

    def format(self, record: logging.LogRecord) -> str:
        if not self.use_colors:
            return super().format(record)

        color = LEVEL_COLORS.get(record.levelno, RESET)
        original_levelname = record.levelname
        record.levelname = f"{color}{record.levelname}{RESET}"
        try:
            return super().format(record)
        finally:
            record.levelname = original_levelname


_logging_configured = False


def setup_logging(
    level: str = "INFO",
    log_file: Optional[str] = None,
) -> logging.Logger:
    """Configure the root logger with console and optional file handlers.

    Calling it again replaces the handlers installed by the previous call.

    Args:
        level: Logging level name. Unknown names fall back to INFO.
        log_file: Optional log file path; parent directories are created.

    Returns:
        logging.Logger: The configured root logger.
    """
    global _logging_configured

    root_logger = logging.getLogger()

    if _logging_configured:
        root_logger.handlers.clear()

    numeric_level = getattr(logging, level.upper(), logging.INFO)
    root_logger.setLevel(numeric_level)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(numeric_level)
    console_handler.setFormatter(ColoredFormatter(
        fmt=LOG_FORMAT,
        datefmt=DATE_FORMAT,
        use_colors=_supports_color(sys.stdout),
    ))
    root_logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_path, encoding="utf-8")
        file_handler.setLevel(numeric_level)
        file_handler.setFormatter(logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT))
        root_logger.addHandler(file_handler)

    _logging_configured = True
    return root_logger


def get_logger(name: str) -> logging.Logger:
    """Get a named logger, typically ``get_logger(__name__)``."""
    return logging.getLogger(name)
