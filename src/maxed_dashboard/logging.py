# Maxed Dashboard - Marketing analytics dashboard core
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Logging configuration for Maxed Dashboard.

Every module logs through ``get_logger(__name__)`` so that all records end
up under the ``maxed_dashboard`` namespace. Applications embedding the
package call ``setup_logging()`` once (or ``config.configure_logging()``
with a loaded ClientConfig); libraries using it can leave logging alone.

Levels used across the package:
- DEBUG: cache lifecycle and submitted patches,
- INFO: rollbacks of optimistic writes,
- WARNING: expressions that could not be evaluated,
- ERROR: failed fetches and updates.
"""

import logging
import sys
from typing import Optional

ROOT_LOGGER_NAME = "maxed_dashboard"

CONSOLE_FORMAT = "[%(levelname)s] %(message)s"
DEBUG_CONSOLE_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
FILE_FORMAT = "%(asctime)s [%(levelname)s] %(name)s:%(lineno)d - %(message)s"


class Colors:
    """ANSI codes used to highlight level names on a terminal."""

    RESET = "\033[0m"
    BOLD = "\033[1m"
    RED = "\033[31m"
    GREEN = "\033[32m"
    YELLOW = "\033[33m"
    CYAN = "\033[36m"


class ColoredFormatter(logging.Formatter):
    """Formatter that colors the level name of each record."""

    LEVEL_COLORS = {
        logging.DEBUG: Colors.CYAN,
        logging.INFO: Colors.GREEN,
        logging.WARNING: Colors.YELLOW,
        logging.ERROR: Colors.RED,
        logging.CRITICAL: Colors.BOLD + Colors.RED,
    }

    def __init__(
        self,
        fmt: Optional[str] = None,
        datefmt: Optional[str] = None,
        use_colors: bool = True,
    ):
        super().__init__(fmt, datefmt)
        self.use_colors = use_colors

    def format(self, record: logging.LogRecord) -> str:
        color = self.LEVEL_COLORS.get(record.levelno) if self.use_colors else None
        if color is None:
            return super().format(record)

        # Other handlers share the record and must see the plain level name.
        colored = logging.makeLogRecord(record.__dict__)
        colored.levelname = f"{color}{record.levelname}{Colors.RESET}"
        return super().format(colored)


def setup_logging(level: str = "INFO", log_file: Optional[str] = None) -> None:
    """
    Configure the package logger.

    Replaces any handler previously installed on the ``maxed_dashboard``
    logger, so calling it twice does not duplicate output.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        log_file: Optional file path; records are also written there
            without colors.
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    package_logger = logging.getLogger(ROOT_LOGGER_NAME)
    package_logger.setLevel(numeric_level)
    package_logger.handlers.clear()

    handlers: list[logging.Handler] = []

    console = logging.StreamHandler(sys.stdout)
    if numeric_level <= logging.DEBUG:
        console.setFormatter(ColoredFormatter(DEBUG_CONSOLE_FORMAT, "%H:%M:%S"))
    else:
        console.setFormatter(ColoredFormatter(CONSOLE_FORMAT))
    handlers.append(console)

    if log_file:
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(logging.Formatter(FILE_FORMAT))
        handlers.append(file_handler)

    for handler in handlers:
        handler.setLevel(numeric_level)
        package_logger.addHandler(handler)

    # requests logs every connection at DEBUG through urllib3.
    logging.getLogger("urllib3").setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Return a logger placed under the package namespace."""
    if not name.startswith(ROOT_LOGGER_NAME):
        name = f"{ROOT_LOGGER_NAME}.{name}"
    return logging.getLogger(name)


def format_exception_summary(error: BaseException, *, max_length: int = 180) -> str:
    """
    Build a one-line exception summary, as stored in ``SettingsCache.error``.

    Whitespace in the message (HTTP error bodies often span lines) is
    collapsed, and the result is cut to ``max_length`` characters.
    """
    detail = " ".join(str(error).split())
    summary = type(error).__name__
    if detail:
        summary = f"{summary}: {detail}"
    if max_length > 3 and len(summary) > max_length:
        summary = summary[: max_length - 3].rstrip() + "..."
    return summary
