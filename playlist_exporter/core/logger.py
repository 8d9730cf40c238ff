"""
Logging configuration for playlist-exporter.

This module sets up the logging system with two outputs:
    - Console: Real-time progress narration with tqdm-compatible formatting
    - Log file: Complete log of all events (DEBUG and above), rotated by size

The log file is rotated when it exceeds the configured size (e.g. "10MB"),
keeping a configured number of older files next to it.

Usage:
    from playlist_exporter.core.logger import setup_logging, get_logger

    setup_logging(config.logging)  # Call once at startup
    logger = get_logger(__name__)  # Get logger for each module

    logger.info("Fetching playlists")
"""

import logging
import logging.handlers
import re
import sys
from pathlib import Path
from typing import TYPE_CHECKING, TextIO

import colorama
from tqdm import tqdm

if TYPE_CHECKING:
    from playlist_exporter.core.config import LoggingConfig


# Log format for file output (detailed with timestamp)
FILE_LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
FILE_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Third-party loggers that are too chatty at INFO
QUIET_LOGGERS = ("spotipy", "urllib3", "requests")

SIZE_MULTIPLIERS = {
    "B": 1,
    "KB": 1024,
    "MB": 1024 ** 2,
    "GB": 1024 ** 3,
}


class Colors:
    """ANSI color codes for terminal output."""
    RESET = "\033[0m"
    RED = "\033[31m"
    GREEN = "\033[32m"
    YELLOW = "\033[33m"
    BLUE = "\033[34m"
    WHITE = "\033[37m"
    BOLD = "\033[1m"


class ColoredConsoleFormatter(logging.Formatter):
    """
    Custom formatter that adds colors to console output.

    Colors:
        - DEBUG: Blue
        - INFO: Green
        - WARNING: Yellow
        - ERROR: Red
        - CRITICAL: Bold Red
    """

    LEVEL_COLORS = {
        logging.DEBUG: Colors.BLUE,
        logging.INFO: Colors.GREEN,
        logging.WARNING: Colors.YELLOW,
        logging.ERROR: Colors.RED,
        logging.CRITICAL: Colors.BOLD + Colors.RED,
    }

    def format(self, record: logging.LogRecord) -> str:
        color = self.LEVEL_COLORS.get(record.levelno, Colors.WHITE)
        colored_levelname = f"{color}{record.levelname}{Colors.RESET}"
        return f"{colored_levelname}: {record.getMessage()}"


class TqdmLoggingHandler(logging.Handler):
    """
    Logging handler that writes to console without breaking tqdm progress bars.

    tqdm progress bars write to stderr and use carriage returns to update
    in-place. This handler uses tqdm.write() so messages appear above any
    active progress bar instead of corrupting it.

    Attributes:
        stream: The output stream (defaults to sys.stderr).
    """

    def __init__(self, stream: TextIO | None = None) -> None:
        super().__init__()
        self.stream = stream

    def emit(self, record: logging.LogRecord) -> None:
        try:
            msg = self.format(record)
            tqdm.write(msg, file=self.stream or sys.stderr)
        except Exception:
            self.handleError(record)


def parse_size(size_str: str) -> int:
    """
    Parse a size string to bytes.

    Args:
        size_str: Size string like "10MB", "1GB", "500KB" or "2048B".
                  Case-insensitive, whitespace between number and unit allowed.

    Returns:
        Size in bytes.

    Raises:
        ValueError: If the string has no recognised unit or number.
    """
    match = re.match(r"^(\d+)\s*([KMG]?B)$", size_str.strip().upper())
    if not match:
        raise ValueError(f"Invalid size format: {size_str}")

    number, unit = match.groups()
    return int(number) * SIZE_MULTIPLIERS[unit]


def setup_logging(
    config: "LoggingConfig",
    console_level: int = logging.INFO,
    stream: TextIO | None = None
) -> Path:
    """
    Configure the logging system for the application.

    This function should be called ONCE at application startup, after
    the configuration is loaded but before any other operations.

    Args:
        config: Log file path, rotate size and number of kept files.
        console_level: Minimum level shown on the console.
        stream: Console stream override (defaults to stderr).

    Returns:
        Path of the active log file.

    Behavior:
        1. Create the log file's parent directory if it doesn't exist
        2. Configure root logger level to DEBUG
        3. Add a colored, tqdm-compatible console handler at console_level
        4. Add a RotatingFileHandler at DEBUG with the detailed format
        5. Raise chatty third-party loggers to WARNING
    """
    colorama.just_fix_windows_console()

    log_path = Path(config.log_file)
    log_path.parent.mkdir(parents=True, exist_ok=True)

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)

    # Remove any existing handlers
    for handler in root_logger.handlers[:]:
        handler.close()
        root_logger.removeHandler(handler)

    console_handler = TqdmLoggingHandler(stream)
    console_handler.setLevel(console_level)
    console_handler.setFormatter(ColoredConsoleFormatter())
    root_logger.addHandler(console_handler)

    file_handler = logging.handlers.RotatingFileHandler(
        log_path,
        maxBytes=parse_size(config.rotate_size),
        backupCount=config.keep_files,
        encoding="utf-8"
    )
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(logging.Formatter(FILE_LOG_FORMAT, FILE_DATE_FORMAT))
    root_logger.addHandler(file_handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    get_logger("playlist_exporter").debug(
        f"Logging initialized - file: {log_path}, rotate at {config.rotate_size}, "
        f"keep {config.keep_files}"
    )
    return log_path


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance for a module.

    Args:
        name: The logger name, typically __name__ of the calling module.

    Returns:
        logging.Logger: A logger instance configured by setup_logging().

    Note:
        Loggers obtained before setup_logging() is called propagate to an
        unconfigured root logger and only WARNING and above reach stderr.
    """
    return logging.getLogger(name)


def shutdown_logging() -> None:
    """
    Flush and close every handler on the root logger.

    Called from the CLI's finally block. After this call, log records
    are no longer written to the log file.
    """
    root_logger = logging.getLogger()

    for handler in root_logger.handlers[:]:
        try:
            handler.flush()
            handler.close()
        except Exception:
            pass
        root_logger.removeHandler(handler)
