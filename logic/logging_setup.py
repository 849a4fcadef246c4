"""
Logging configuration.

Centralised logging setup for the placement service: plain text on the
console during development, JSON lines in production, and an optional
rotating log file.
"""

import json
import logging
import logging.handlers
import os
import sys
from pathlib import Path
from typing import Optional

# LogRecord attributes that are not user-supplied ``extra`` fields
_RESERVED_ATTRS = {
    "name", "msg", "args", "levelname", "levelno", "pathname", "filename",
    "module", "exc_info", "exc_text", "stack_info", "lineno", "funcName",
    "created", "msecs", "relativeCreated", "thread", "threadName",
    "processName", "process", "taskName", "message",
}

TEXT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class JSONFormatter(logging.Formatter):
    """Format log records as single-line JSON objects."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS:
                log_entry[key] = value

        return json.dumps(log_entry, default=str)


def _make_formatter(environment: str) -> logging.Formatter:
    if environment == "production":
        return JSONFormatter(datefmt="%Y-%m-%d %H:%M:%S")
    return logging.Formatter(TEXT_FORMAT)


def setup_logging(
    environment: str = "development",
    log_level: str = "INFO",
    log_dir: Optional[str] = None,
) -> None:
    """Set up root logging for the service.

    Args:
        environment: Environment name (development/production).
        log_level: Logging level name (DEBUG/INFO/WARNING/ERROR).
        log_dir: Directory for a rotating log file (optional).
    """
    logger = logging.getLogger()
    logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    # Remove existing handlers to avoid duplicates on reload
    logger.handlers = []

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(_make_formatter(environment))
    logger.addHandler(console_handler)

    if log_dir:
        Path(log_dir).mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            filename=os.path.join(log_dir, f"club_placement_{environment}.log"),
            maxBytes=10 * 1024 * 1024,  # 10MB
            backupCount=5,
        )
        file_handler.setFormatter(_make_formatter(environment))
        logger.addHandler(file_handler)

    logging.getLogger("aiohttp").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
