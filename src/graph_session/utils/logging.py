"""Logging configuration for Graph Session."""

import logging
import re
import sys
from pathlib import Path
from typing import Optional

# Reconfigure stdout to handle Unicode on Windows consoles
if sys.stdout and hasattr(sys.stdout, "reconfigure"):
    try:
        sys.stdout.reconfigure(encoding="utf-8", errors="replace")
    except (OSError, ValueError):
        pass

# Libraries that log request and cache details at DEBUG
NOISY_LOGGERS = ("msal", "msal_extensions", "urllib3")

_BEARER = re.compile(r"(Bearer\s+)[A-Za-z0-9\-._~+/]+=*", re.IGNORECASE)
_JWT = re.compile(r"eyJ[A-Za-z0-9_-]+\.[A-Za-z0-9_-]+\.[A-Za-z0-9_-]*")
REDACTED = "***"


class TokenRedactingFilter(logging.Filter):
    """Masks bearer tokens and JWTs in formatted log messages."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        redacted = _JWT.sub(REDACTED, _BEARER.sub(rf"\g<1>{REDACTED}", message))
        if redacted != message:
            record.msg = redacted
            record.args = None
        return True


def setup_logging(
    level: str = "INFO",
    log_file: Optional[Path] = None,
) -> logging.Logger:
    """
    Configure application logging.

    Library loggers (MSAL, urllib3) share the handlers but stay at WARNING
    unless ``level`` is DEBUG. Every handler redacts tokens.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional log file path

    Returns:
        Configured logger instance
    """
    debug = level.upper() == "DEBUG"
    logger = logging.getLogger("graph_session")
    logger.setLevel(getattr(logging, level.upper()))

    # Remove existing handlers
    logger.handlers.clear()
    redactor = TokenRedactingFilter()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(logging.DEBUG if debug else logging.INFO)
    console_handler.setFormatter(
        logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    )
    console_handler.addFilter(redactor)
    handlers: list[logging.Handler] = [console_handler]

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(
            logging.Formatter(
                "%(asctime)s - %(name)s - %(levelname)s - %(filename)s:%(lineno)d - %(message)s"
            )
        )
        file_handler.addFilter(redactor)
        handlers.append(file_handler)

    for handler in handlers:
        logger.addHandler(handler)

    for name in NOISY_LOGGERS:
        library_logger = logging.getLogger(name)
        library_logger.setLevel(logging.DEBUG if debug else logging.WARNING)
        library_logger.handlers.clear()
        for handler in handlers:
            library_logger.addHandler(handler)
        library_logger.propagate = False

    return logger
