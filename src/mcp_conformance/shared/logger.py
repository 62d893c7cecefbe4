"""Console logging setup for the conformance CLI.

Environment Variables:
    LOG_LEVEL: Logging level (TRACE, DEBUG, INFO, WARNING, ERROR, CRITICAL)
    MCP_CONFORMANCE_LOG_FORMAT: Log message format (default: see below)
"""

import logging
import os
import sys
from typing import Optional

from .log_levels import resolve_level

DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Third-party loggers that are far too chatty at DEBUG
QUIET_LOGGERS = ("httpx", "httpcore", "hypercorn.access", "multipart")


class ColoredFormatter(logging.Formatter):
    """Colored formatter for console output."""

    COLORS = {
        "TRACE": "\033[90m",     # Dark gray
        "DEBUG": "\033[36m",     # Cyan
        "INFO": "\033[32m",      # Green
        "WARNING": "\033[33m",   # Yellow
        "ERROR": "\033[31m",     # Red
        "CRITICAL": "\033[35m",  # Magenta
    }
    RESET = "\033[0m"

    def format(self, record):
        msg = super().format(record)
        color = self.COLORS.get(record.levelname, "")
        if color:
            msg = f"{color}{msg}{self.RESET}"
        return msg


def setup_logging(
    log_level: Optional[str] = None,
    use_colors: bool = True,
    log_format: Optional[str] = None,
) -> logging.Logger:
    """Configure root logging with a single stderr handler.

    Logs go to stderr so that ``--verbose`` JSON on stdout stays pipeable.

    Args:
        log_level: Logging level name (if None, reads LOG_LEVEL)
        use_colors: Whether to color output when stderr is a TTY
        log_format: Custom log format (if None, uses default)

    Returns:
        Configured root logger
    """
    if log_level is None:
        log_level = os.getenv("LOG_LEVEL", "INFO")
    if log_format is None:
        log_format = os.getenv("MCP_CONFORMANCE_LOG_FORMAT", DEFAULT_FORMAT)

    level = resolve_level(log_level)

    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    if use_colors and sys.stderr.isatty():
        handler.setFormatter(ColoredFormatter(log_format))
    else:
        handler.setFormatter(logging.Formatter(log_format))

    root_logger.setLevel(level)
    root_logger.addHandler(handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    root_logger.debug(f"Logging configured: level={log_level.upper()}")
    return root_logger
