"""
Logging configuration for the finance gateway
Provides structured logging with color support and credential redaction
"""

import functools
import logging
import re
import sys
import time
from pathlib import Path
from datetime import datetime
from typing import Optional
import colorama
from colorama import Fore, Style

# Initialize colorama for Windows support
colorama.init()

# Custom log colors
LOG_COLORS = {
    'DEBUG': Fore.CYAN,
    'INFO': Fore.GREEN,
    'WARNING': Fore.YELLOW,
    'ERROR': Fore.RED,
    'CRITICAL': Fore.MAGENTA
}

# Upstream URLs carry API keys in the query string or the path
_CREDENTIAL_PATTERNS = [
    (re.compile(r'(apikey=)[^&\s]+', re.IGNORECASE), r'\1***'),
    (re.compile(r'(/v6/)[^/\s]+'), r'\1***'),
]

def redact(text: str) -> str:
    """Mask API credentials embedded in URLs"""
    for pattern, replacement in _CREDENTIAL_PATTERNS:
        text = pattern.sub(replacement, text)
    return text

class CredentialFilter(logging.Filter):
    """Strips API keys from log messages before they reach any handler"""

    def filter(self, record):
        message = record.getMessage()
        cleaned = redact(message)
        if cleaned != message:
            record.msg = cleaned
            record.args = ()
        return True

class ColoredFormatter(logging.Formatter):
    """Custom formatter with color support"""

    def __init__(self, fmt=None, datefmt=None, use_colors=True):
        super().__init__(fmt, datefmt)
        self.use_colors = use_colors and sys.stderr.isatty()

    def format(self, record):
        record.timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S.%f")[:-3]

        if not self.use_colors:
            return super().format(record)

        # Colour a copy so file handlers sharing the record stay plain
        levelname, name = record.levelname, record.name
        if levelname in LOG_COLORS:
            record.levelname = f"{LOG_COLORS[levelname]}{levelname}{Style.RESET_ALL}"
            record.name = f"{Fore.BLUE}{name}{Style.RESET_ALL}"
        try:
            return super().format(record)
        finally:
            record.levelname, record.name = levelname, name

class StructuredLogger:
    """Thin wrapper so every module logs through one configured logger"""

    def __init__(self, logger: logging.Logger):
        self.logger = logger

    def _log(self, level, msg, *args, **kwargs):
        getattr(self.logger, level)(msg, *args, **kwargs)

    def debug(self, msg, *args, **kwargs):
        self._log('debug', msg, *args, **kwargs)

    def info(self, msg, *args, **kwargs):
        self._log('info', msg, *args, **kwargs)

    def warning(self, msg, *args, **kwargs):
        self._log('warning', msg, *args, **kwargs)

    def error(self, msg, *args, **kwargs):
        self._log('error', msg, *args, **kwargs)

    def critical(self, msg, *args, **kwargs):
        self._log('critical', msg, *args, **kwargs)

def setup_logger(
    name: str,
    level: Optional[str] = None,
    log_file: Optional[Path] = None,
    use_colors: bool = True
) -> StructuredLogger:
    """
    Set up a logger with console and optional file output

    Args:
        name: Logger name (usually __name__)
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional file path for logging
        use_colors: Whether to use colored output

    Returns:
        StructuredLogger instance
    """
    from ..config.settings import get_config
    config = get_config()

    # Use provided values or fall back to config
    if level is None:
        level = config.system.log_level
    if log_file is None:
        log_file = config.system.log_file

    logger = logging.getLogger(name)
    logger.setLevel(getattr(logging, level.upper()))

    # Remove existing handlers and filters
    logger.handlers = []
    logger.filters = []
    logger.addFilter(CredentialFilter())

    # Console handler with colors
    console_handler = logging.StreamHandler(sys.stderr)
    console_format = "%(timestamp)s [%(levelname)s] %(name)s: %(message)s"
    console_handler.setFormatter(ColoredFormatter(console_format, use_colors=use_colors))
    logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file, mode='a', encoding='utf-8')
        file_format = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
        file_handler.setFormatter(logging.Formatter(file_format))
        logger.addHandler(file_handler)

    # Prevent propagation to root logger
    logger.propagate = False

    return StructuredLogger(logger)

def get_logger(name: str) -> StructuredLogger:
    """
    Get or create a logger instance

    Args:
        name: Logger name (usually __name__)

    Returns:
        StructuredLogger instance
    """
    return setup_logger(name)

def log_async_performance(logger: Optional[StructuredLogger] = None):
    """Decorator to log async function duration at debug level"""

    def decorator(func):
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            nonlocal logger
            if logger is None:
                logger = get_logger(func.__module__)

            start_time = time.perf_counter()
            try:
                return await func(*args, **kwargs)
            finally:
                elapsed = time.perf_counter() - start_time
                logger.debug(
                    f"Completed async {func.__name__} in {elapsed * 1000:.0f}ms",
                    extra={'duration_ms': int(elapsed * 1000)}
                )

        return wrapper
    return decorator
