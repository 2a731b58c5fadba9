"""
Structured logging for production.

JSON-formatted records for ELK / DataDog / CloudWatch ingestion, or a
human-readable format for local development.
"""

import logging
import json
import sys
import os
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from pathlib import Path

# LogRecord attributes that are not user-supplied `extra` fields
_RESERVED_ATTRS = frozenset([
    'name', 'msg', 'args', 'created', 'filename', 'funcName',
    'levelname', 'levelno', 'lineno', 'module', 'msecs',
    'message', 'pathname', 'process', 'processName', 'relativeCreated',
    'thread', 'threadName', 'exc_info', 'exc_text', 'stack_info',
    'taskName',
])


class StructuredFormatter(logging.Formatter):
    """
    JSON formatter.

    Output format:
    {
        "timestamp": "2026-10-17T12:34:56.789Z",
        "level": "INFO",
        "logger": "supplier_engine.jobs.worker",
        "message": "Job 12 completed",
        "extra": {...}
    }
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat().replace('+00:00', 'Z'),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        if record.stack_info:
            log_data["stack_info"] = self.formatStack(record.stack_info)

        extra_fields = {
            key: value for key, value in record.__dict__.items()
            if key not in _RESERVED_ATTRS
        }
        if extra_fields:
            log_data["extra"] = extra_fields

        log_data["source"] = {
            "file": record.pathname,
            "line": record.lineno,
            "function": record.funcName
        }

        return json.dumps(log_data, ensure_ascii=False, default=str)


class HumanReadableFormatter(logging.Formatter):
    """
    Human-readable formatter for local development.

    Output format:
    2026-10-17 12:34:56 INFO     supplier_engine.service: Engine started
    """

    def __init__(self):
        super().__init__(
            fmt='%(asctime)s %(levelname)-8s %(name)s: %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )


def setup_logging(
    level: str = "INFO",
    use_json: bool = True,
    log_file: Optional[Path] = None
) -> None:
    """
    Configure logging for the whole process.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR)
        use_json: JSON output (production) instead of human-readable
        log_file: Optional log file path

    Example:
        setup_logging(level="DEBUG", use_json=False, log_file=Path("engine.log"))
    """
    formatter = StructuredFormatter() if use_json else HumanReadableFormatter()

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper()))
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    # Third-party verbosity
    logging.getLogger("sqlalchemy").setLevel(logging.WARNING)
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)
    logging.getLogger("redis").setLevel(logging.WARNING)
    logging.getLogger("alembic").setLevel(logging.INFO)


def setup_logging_from_env() -> None:
    """
    Configure logging from environment variables.

    Environment variables:
        LOG_LEVEL: DEBUG, INFO, WARNING, ERROR (default: INFO)
        LOG_FORMAT: json or human (default: json)
        LOG_FILE: Optional log file path
    """
    log_level = os.getenv("LOG_LEVEL", "INFO")
    log_format = os.getenv("LOG_FORMAT", "json")
    log_file_path = os.getenv("LOG_FILE")

    setup_logging(
        level=log_level,
        use_json=log_format.lower() == "json",
        log_file=Path(log_file_path) if log_file_path else None
    )


class LoggerAdapter(logging.LoggerAdapter):
    """
    Adds fixed context to every record's extra fields.

    Example:
        log = LoggerAdapter(logger, {"project_id": "p-1"})
        log.info("Distribution started")
    """

    def process(self, msg: str, kwargs: Dict[str, Any]) -> tuple:
        extra = dict(kwargs.get("extra") or {})
        extra.update(self.extra)
        kwargs["extra"] = extra
        return msg, kwargs


__all__ = [
    'setup_logging',
    'setup_logging_from_env',
    'LoggerAdapter',
    'StructuredFormatter',
    'HumanReadableFormatter',
]
