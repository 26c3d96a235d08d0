"""
Logging utilities for memeforge.

This module provides the logging setup shared by every component:
- Custom TRACE log level for per-frame detail
- Colored console output when attached to a terminal
- Optional rotating log file
"""

import logging
import os
import sys
from typing import Optional
from logging.handlers import RotatingFileHandler

# Define custom log levels
TRACE = logging.DEBUG - 5
logging.addLevelName(TRACE, "TRACE")

LOG_FORMAT = '%(asctime)s - %(name)-28s - %(levelname)-8s - %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'

# Handlers installed by setup_logging, so repeated calls replace them.
_installed_handlers = []


def _trace(self, message: str, *args, **kwargs) -> None:
    """Log 'message % args' with severity 'TRACE'.

    Args:
        message: The message to log
        *args: Format arguments for the message
        **kwargs: Additional arguments for the logger
    """
    if self.isEnabledFor(TRACE):
        self._log(TRACE, message, args, **kwargs)


logging.Logger.trace = _trace


class ColoredFormatter(logging.Formatter):
    """Formatter that adds ANSI colors to the level name."""

    COLORS = {
        'TRACE': '\033[0;36m',    # Cyan
        'DEBUG': '\033[0;32m',    # Green
        'INFO': '\033[0;37m',     # White
        'WARNING': '\033[1;33m',  # Yellow
        'ERROR': '\033[1;31m',    # Red
        'CRITICAL': '\033[1;41m', # Red background
        'RESET': '\033[0m'
    }

    def format(self, record):
        """Format the specified record as text with colors."""
        levelname = record.levelname
        if levelname in self.COLORS:
            record = logging.makeLogRecord(record.__dict__)
            record.levelname = f"{self.COLORS[levelname]}{levelname:8}{self.COLORS['RESET']}"
        return super().format(record)


def setup_logging(level='INFO', log_file=None):
    """Configure the root logger for memeforge.

    Calling this more than once replaces the handlers installed by the
    previous call instead of stacking new ones.

    Args:
        level (str): Logging level name, e.g. 'INFO' or 'TRACE'
        log_file (str): Optional path to a rotating log file

    Raises:
        ValueError: If the level name is unknown
    """
    numeric_level = logging.getLevelName(level.upper())
    if not isinstance(numeric_level, int):
        raise ValueError(f'Invalid log level: {level}')

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)

    for handler in _installed_handlers:
        root_logger.removeHandler(handler)
        handler.close()
    _installed_handlers.clear()

    console_handler = logging.StreamHandler(sys.stderr)
    if sys.stderr.isatty():
        console_handler.setFormatter(ColoredFormatter(LOG_FORMAT, DATE_FORMAT))
    else:
        console_handler.setFormatter(logging.Formatter(LOG_FORMAT, DATE_FORMAT))
    root_logger.addHandler(console_handler)
    _installed_handlers.append(console_handler)

    if log_file:
        log_dir = os.path.dirname(log_file)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)

        file_handler = RotatingFileHandler(
            log_file,
            maxBytes=10*1024*1024,  # 10MB
            backupCount=5,
            encoding='utf-8'
        )
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT, DATE_FORMAT))
        root_logger.addHandler(file_handler)
        _installed_handlers.append(file_handler)

        root_logger.info(f"Logging initialized at level {level} (console and {log_file})")
    else:
        root_logger.info(f"Logging initialized at level {level} (console only)")


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Get a logger with the given name.

    Args:
        name: Logger name (usually __name__)

    Returns:
        Logger instance
    """
    return logging.getLogger(name)
