#!/usr/bin/env python3
"""
FCP client logging configuration

Centralized logging setup for consistent formatting across the project.
Console output goes to stderr so it never mixes with command output; a log
file is added when FCP_LOG_FILE is set.

Usage:
    from fcp.log import get_logger

    logger = get_logger(__name__)
    logger.debug("Connecting...")
    logger.debug("Received message", extra={"msg_name": "NodeHello", "peer": "localhost:9481"})
"""

from __future__ import annotations
import logging
import sys
from pathlib import Path
from typing import TYPE_CHECKING, Any, Optional
import os

if TYPE_CHECKING:
    from fcp.message import Message


# ========================================
#           LOGGING FORMATTERS
# ========================================

class ColoredFormatter(logging.Formatter):
    """Colored formatter for console output"""

    # ANSI Color codes
    COLORS = {
        'DEBUG': '\033[36m',     # Cyan
        'INFO': '\033[32m',      # Green
        'WARNING': '\033[33m',   # Yellow
        'ERROR': '\033[31m',     # Red
        'CRITICAL': '\033[35m',  # Magenta
        'RESET': '\033[0m'       # Reset
    }

    def format(self, record: logging.LogRecord) -> str:
        levelname = record.levelname
        if levelname in self.COLORS:
            record.levelname = f"{self.COLORS[levelname]}{levelname}{self.COLORS['RESET']}"
        try:
            return super().format(record)
        finally:
            record.levelname = levelname


class GenericFormatter(logging.Formatter):
    """Prefixes the message with FCP context passed through ``extra``"""

    CONTEXT_FIELDS = (
        ('peer', 'peer'),
        ('client', 'client'),
        ('node', 'node'),
        ('msg_name', 'msg'),
        ('identifier', 'id'),
    )

    def format(self, record: logging.LogRecord) -> str:
        context = []
        for attr, label in self.CONTEXT_FIELDS:
            value = getattr(record, attr, None)
            if value is not None:
                context.append(f"{label}={value}")

        formatted = super().format(record)
        if not context:
            return formatted
        # Insert context right before the message text
        text = record.getMessage()
        prefix = f"[{' '.join(context)}] "
        if formatted.endswith(text):
            return formatted[: len(formatted) - len(text)] + prefix + text
        return prefix + formatted


class ColoredContextFormatter(GenericFormatter, ColoredFormatter):
    pass


# ========================================
#           LOGGING CONFIGURATION
# ========================================

_loggers_configured = set()

DEFAULT_LEVEL = "WARNING"
HANDLER_PREFIX = "fcp-"


def get_logger(name: str, level: Optional[str] = None) -> logging.Logger:
    """
    Get a configured logger for the given module.

    Args:
        name: Usually __name__ from the calling module
        level: Override log level ("DEBUG", "INFO", "WARNING", "ERROR")

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)

    # Only configure each logger once
    if name not in _loggers_configured:
        _configure_logger(logger, level)
        _loggers_configured.add(name)

    return logger


def _configure_logger(logger: logging.Logger, level: Optional[str] = None) -> None:
    """Configure a logger with appropriate handlers and formatters"""

    logger.setLevel(_get_log_level(level))

    # Drop handlers from an earlier configuration to avoid duplicates;
    # handlers installed by others (test capture, applications) stay
    for handler in list(logger.handlers):
        if (handler.get_name() or "").startswith(HANDLER_PREFIX):
            logger.removeHandler(handler)
            handler.close()

    _add_console_handler(logger, colored=True)
    log_file = os.getenv('FCP_LOG_FILE')
    if log_file:
        _add_file_handler(logger, Path(log_file))

    # Prevent duplicate messages from parent loggers
    logger.propagate = False


def _get_log_level(level: Optional[str] = None) -> int:
    """Determine appropriate log level"""
    level = level or os.getenv('FCP_LOG_LEVEL') or DEFAULT_LEVEL
    return getattr(logging, level.upper(), logging.WARNING)


def set_level(level: str) -> None:
    """Apply a level to every logger configured through get_logger"""
    numeric = _get_log_level(level)
    for name in _loggers_configured:
        logging.getLogger(name).setLevel(numeric)


def _add_console_handler(logger: logging.Logger, colored: bool = True) -> None:
    """Add console handler with appropriate formatter"""

    fmt = '[%(levelname)-8s][%(asctime)s][%(name)-5s]: %(message)s'
    handler = logging.StreamHandler(sys.stderr)
    handler.set_name(HANDLER_PREFIX + "console")

    if colored and _supports_color():
        formatter: logging.Formatter = ColoredContextFormatter(fmt=fmt, datefmt='%H:%M:%S')
    else:
        formatter = GenericFormatter(fmt=fmt, datefmt='%Y-%m-%d %H:%M:%S')

    handler.setFormatter(formatter)
    logger.addHandler(handler)


def _add_file_handler(logger: logging.Logger, log_file: Path) -> None:
    """Add file handler writing to the given path"""

    log_file.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(log_file)
    handler.set_name(HANDLER_PREFIX + "file")

    formatter = GenericFormatter(
        fmt='%(asctime)s | %(name)-20s | %(levelname)-8s | %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    handler.setFormatter(formatter)
    logger.addHandler(handler)


def _supports_color() -> bool:
    """Check if terminal supports color output"""

    # stderr must be a terminal
    if not (hasattr(sys.stderr, "isatty") and sys.stderr.isatty()):
        return False

    if os.getenv("NO_COLOR") is not None:
        return False

    # TERM should not be dumb
    if os.getenv("TERM", "") == "dumb":
        return False

    if sys.platform == "win32":
        # On modern Windows terminals, ANSI colors are supported
        return os.getenv("ANSICON") is not None or os.getenv("WT_SESSION") is not None or os.getenv("TERM_PROGRAM") == "vscode"

    return True


# ========================================
#           CONVENIENCE FUNCTIONS
# ========================================

def configure_root_logging(level: str = DEFAULT_LEVEL) -> None:
    """
    Configure root logging for the entire application.
    Call this once at application startup.

    Args:
        level: Root log level ("DEBUG", "INFO", "WARNING", "ERROR")
    """
    root_logger = logging.getLogger()
    _configure_logger(root_logger, level)
    set_level(level)


def log_fcp_message(logger: logging.Logger, level: str, text: str,
                    message: Optional["Message"] = None,
                    **context: Any) -> None:
    """
    Log an FCP protocol message with structured context.

    Args:
        logger: Logger instance
        level: Log level ("debug", "info", "warning", "error")
        text: Log message
        message: FCP message for automatic context extraction
        **context: Additional context fields (peer, client, node)

    Example:
        log_fcp_message(logger, "debug", "Sent message", message=hello, peer="localhost:9481")
    """
    extra_context = {}

    if message is not None:
        extra_context['msg_name'] = message.name
        if 'Identifier' in message.fields:
            extra_context['identifier'] = message.fields['Identifier']

    extra_context.update(context)

    log_func = getattr(logger, level.lower())
    log_func(text, extra=extra_context)
