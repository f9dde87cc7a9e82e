"""
Rester Logging Configuration

Log records go to stderr (and optionally a rotating file) so that reporters
own stdout. Records logged through `log_structured` carry a
``structured_data`` mapping that the formatter renders as ``key=value``
pairs after the message.
"""

import logging
import logging.config
import sys
import time
from pathlib import Path
from typing import Any, Dict, Optional

from .config import get_config

CONSOLE_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
FILE_FORMAT = "%(asctime)sZ [%(levelname)s] %(name)s:%(lineno)d: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Third-party loggers kept at WARNING regardless of the rester level
QUIET_LOGGERS = ("aiohttp", "asyncio")


class StructuredFormatter(logging.Formatter):
    """Formatter that appends a record's structured data as key=value pairs."""

    def format(self, record: logging.LogRecord) -> str:
        text = super().format(record)
        data = getattr(record, "structured_data", None)
        if not data:
            return text
        pairs = " ".join(f"{key}={value}" for key, value in data.items())
        return f"{text} | {pairs}"


class UTCStructuredFormatter(StructuredFormatter):
    """Structured formatter with UTC timestamps, used for log files."""

    converter = time.gmtime


def verbosity_level(verbose: int) -> Optional[str]:
    """
    Map a ``-v`` count to a log level.

    Returns:
        "DEBUG" for -vv and above, "INFO" for -v, None to keep the configured level
    """
    if verbose > 1:
        return "DEBUG"
    if verbose == 1:
        return "INFO"
    return None


def build_logging_config(
    level: str,
    log_file: Optional[Path] = None,
    max_file_size: int = 10 * 1024 * 1024,
    backup_count: int = 5,
    enable_structured: bool = True,
) -> Dict[str, Any]:
    """Build the dictConfig mapping for the given level and optional log file."""
    formatter_class = StructuredFormatter if enable_structured else logging.Formatter
    handlers = ["console"]

    logging_config: Dict[str, Any] = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "console": {
                "()": formatter_class,
                "format": CONSOLE_FORMAT,
                "datefmt": DATE_FORMAT,
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "level": level,
                "formatter": "console",
                "stream": sys.stderr,
            }
        },
        "loggers": {},
        "root": {"level": "WARNING", "handlers": handlers},
    }

    if log_file is not None:
        logging_config["formatters"]["file"] = {
            "()": UTCStructuredFormatter if enable_structured else logging.Formatter,
            "format": FILE_FORMAT,
            "datefmt": DATE_FORMAT,
        }
        logging_config["handlers"]["file"] = {
            "class": "logging.handlers.RotatingFileHandler",
            "level": level,
            "formatter": "file",
            "filename": str(log_file),
            "maxBytes": max_file_size,
            "backupCount": backup_count,
            "encoding": "utf-8",
        }
        handlers = handlers + ["file"]
        logging_config["root"]["handlers"] = handlers

    logging_config["loggers"]["rester"] = {
        "level": level,
        "handlers": handlers,
        "propagate": False,
    }
    for name in QUIET_LOGGERS:
        logging_config["loggers"][name] = {
            "level": "WARNING",
            "handlers": handlers,
            "propagate": False,
        }
    return logging_config


def setup_logging(
    log_level: Optional[str] = None,
    log_file: Optional[Path] = None,
    enable_structured: bool = True,
) -> None:
    """
    Configure logging for Rester.

    Args:
        log_level: Level override; the configured level is used when None
        log_file: Log file path; falls back to ``logging.file_path`` from config
        enable_structured: Render structured data attached to records
    """
    config = get_config()
    level = (log_level or config.logging.level).upper()

    if log_file is None and config.logging.file_path:
        log_file = Path(config.logging.file_path)
    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)

    logging.config.dictConfig(
        build_logging_config(
            level,
            log_file,
            max_file_size=config.logging.max_file_size,
            backup_count=config.logging.backup_count,
            enable_structured=enable_structured,
        )
    )


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance for the given module name."""
    return logging.getLogger(name)


def log_structured(
    logger: logging.Logger, level: int, message: str, **structured_data: Any
) -> None:
    """
    Log a message with structured data.

    Args:
        logger: Logger instance
        level: Logging level
        message: Log message
        **structured_data: Fields rendered after the message
    """
    if logger.isEnabledFor(level):
        logger.log(level, message, extra={"structured_data": structured_data})
