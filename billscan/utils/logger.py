"""
BillScan logging.

Every module logs through a child of the ``billscan`` logger, so the API
process, the pipeline worker threads and the CLI share one set of handlers:
a console stream (colored by level through colorama) and an optional
size-rotated file.

    from billscan.utils.logger import get_logger
    logger = get_logger(__name__)
"""

import logging
import logging.handlers
import sys
from pathlib import Path
from typing import Optional

import colorama
from colorama import Fore, Style

colorama.init()

ROOT_LOGGER_NAME = "billscan"

DEFAULT_FORMAT = "%(asctime)s | %(levelname)-8s | %(threadName)s | %(name)s | %(message)s"
DEFAULT_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
DEFAULT_MAX_BYTES = 10 * 1024 * 1024


class ColoredFormatter(logging.Formatter):
    """Wraps each formatted line in the colorama color for its level."""

    LEVEL_COLORS = {
        logging.DEBUG: Fore.CYAN,
        logging.INFO: Fore.GREEN,
        logging.WARNING: Fore.YELLOW,
        logging.ERROR: Fore.RED,
        logging.CRITICAL: Fore.RED + Style.BRIGHT,
    }

    def format(self, record: logging.LogRecord) -> str:
        text = super().format(record)
        prefix = self.LEVEL_COLORS.get(record.levelno)
        if not prefix:
            return text
        return prefix + text + Style.RESET_ALL


def _console_handler(formatter: logging.Formatter) -> logging.Handler:
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)
    return handler


def _rotating_file_handler(
    path: Path,
    formatter: logging.Formatter,
    max_bytes: int,
    backup_count: int,
) -> logging.Handler:
    path.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.handlers.RotatingFileHandler(
        path, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8"
    )
    handler.setFormatter(formatter)
    return handler


def setup_logger(
    level: str = "INFO",
    log_format: Optional[str] = None,
    date_format: Optional[str] = None,
    log_file: Optional[str] = None,
    max_bytes: int = DEFAULT_MAX_BYTES,
    backup_count: int = 5,
    colorize: bool = True
) -> logging.Logger:
    """
    Attach console and (optionally) file handlers to the ``billscan`` logger.

    Safe to call more than once: existing handlers are dropped first, so the
    CLI can reconfigure after ``--debug`` without duplicating output.

    Args:
        level: Level name such as ``"DEBUG"``; unknown names fall back to INFO.
        log_format: ``logging`` format string for both handlers.
        date_format: ``strftime`` pattern for ``%(asctime)s``.
        log_file: File to append to. No file handler when omitted.
        max_bytes: Size at which the file rolls over.
        backup_count: Rolled-over files to retain.
        colorize: Color the console handler.

    Returns:
        The ``billscan`` logger.
    """
    fmt = log_format or DEFAULT_FORMAT
    datefmt = date_format or DEFAULT_DATE_FORMAT
    numeric_level = logging.getLevelName(level.upper())
    if not isinstance(numeric_level, int):
        numeric_level = logging.INFO

    app_logger = logging.getLogger(ROOT_LOGGER_NAME)
    app_logger.setLevel(numeric_level)
    app_logger.propagate = False
    for handler in list(app_logger.handlers):
        app_logger.removeHandler(handler)
        handler.close()

    plain = logging.Formatter(fmt, datefmt=datefmt)
    console_formatter = ColoredFormatter(fmt, datefmt=datefmt) if colorize else plain
    app_logger.addHandler(_console_handler(console_formatter))

    if log_file:
        app_logger.addHandler(
            _rotating_file_handler(Path(log_file), plain, max_bytes, backup_count)
        )

    app_logger.debug("Logging ready at %s (file: %s)", logging.getLevelName(numeric_level), log_file or "off")
    return app_logger


def get_logger(name: str) -> logging.Logger:
    """Return ``name`` as a child of the ``billscan`` logger."""
    if name == ROOT_LOGGER_NAME or name.startswith(ROOT_LOGGER_NAME + "."):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")


def setup_logger_from_config() -> logging.Logger:
    """Configure logging from the ``logging`` and ``paths`` settings."""
    from config import get_config

    log_file = None
    if get_config("logging.file.enabled", False):
        log_dir = Path(get_config("paths.log_dir", "logs"))
        log_file = str(log_dir / get_config("logging.file.name", "billscan.log"))

    return setup_logger(
        level=get_config("logging.level", "INFO"),
        log_format=get_config("logging.format"),
        date_format=get_config("logging.date_format"),
        log_file=log_file,
        max_bytes=get_config("logging.file.max_bytes", DEFAULT_MAX_BYTES),
        backup_count=get_config("logging.file.backup_count", 5),
        colorize=get_config("logging.console.colorize", True),
    )
