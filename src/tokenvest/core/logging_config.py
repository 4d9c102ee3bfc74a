"""
tokenvest - Structured Logging Configuration

JSON log records for the vesting service. Every record carries the
environment, the service name and its source location; identity fields
passed through ``extra`` (``org_id``, ``stakeholder``, ``caller`` ...) are
shortened to ``0x1234...abcd`` form before they are written.

Usage:
    from tokenvest.core.logging_config import setup_logging

    setup_logging(name="tokenvest", log_file="/var/log/tokenvest/vesting.json")
    logging.getLogger(__name__).info(
        "Tokens claimed", extra={"event": "vesting.tokens_claimed", "amount": 500}
    )
"""

import logging
import logging.handlers
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

from pythonjsonlogger.json import JsonFormatter

DEFAULT_FORMAT = "%(level)s %(name)s %(message)s"

# extra= keys holding identities
IDENTITY_FIELDS = ("org_id", "stakeholder", "caller", "admin", "custody_address")


def truncate_identity(identity: str) -> str:
    """Truncate an address-like identity for log fields."""
    if not identity:
        return "UNKNOWN"
    if len(identity) <= 12:
        return identity
    return f"{identity[:6]}...{identity[-4:]}"


class CustomJsonFormatter(JsonFormatter):
    """JSON formatter adding service context and shortening identities."""

    def __init__(
        self,
        fmt: str = DEFAULT_FORMAT,
        environment: Optional[str] = None,
        service_name: str = "tokenvest",
    ):
        super().__init__(fmt=fmt)
        self.environment = environment or "production"
        self.service_name = service_name

    def add_fields(
        self,
        log_record: Dict[str, Any],
        record: logging.LogRecord,
        message_dict: Dict[str, Any],
    ) -> None:
        super().add_fields(log_record, record, message_dict)

        log_record["timestamp"] = datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat()
        log_record["level"] = record.levelname.lower()
        log_record["environment"] = self.environment
        log_record["service"] = self.service_name
        log_record["source"] = {
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        for field in IDENTITY_FIELDS:
            value = log_record.get(field)
            if isinstance(value, str):
                log_record[field] = truncate_identity(value)


def _resolve_level(level: str) -> int:
    resolved = logging.getLevelName(level.upper())
    if not isinstance(resolved, int):
        raise ValueError(f"Unknown log level {level!r}")
    return resolved


def _rotating_file_handler(log_file: str, max_bytes: int, backup_count: int) -> logging.Handler:
    Path(log_file).parent.mkdir(parents=True, exist_ok=True)
    return logging.handlers.RotatingFileHandler(
        filename=log_file,
        maxBytes=max_bytes,
        backupCount=backup_count,
        encoding="utf-8",
    )


def setup_logging(
    name: str = "tokenvest",
    log_file: Optional[str] = None,
    level: str = "INFO",
    environment: str = "production",
    enable_console: bool = True,
    enable_file: bool = True,
    max_bytes: int = 50 * 1024 * 1024,
    backup_count: int = 10,
) -> logging.Logger:
    """
    Configure JSON logging for ``name`` and everything below it.

    Replaces any handlers already attached to the logger. A log file that
    cannot be opened is reported and skipped; console logging continues.

    Args:
        name: Logger name, usually the package name
        log_file: Rotating JSON log file (optional)
        level: DEBUG, INFO, WARNING, ERROR or CRITICAL
        environment: Value of the ``environment`` field
        enable_console: Log to stdout
        enable_file: Log to ``log_file`` when one is given
        max_bytes: Rotation threshold of the log file
        backup_count: Rotated files to keep
    """
    numeric_level = _resolve_level(level)
    logger = logging.getLogger(name)
    logger.setLevel(numeric_level)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)

    formatter = CustomJsonFormatter(environment=environment, service_name=name.split(".")[0])
    handlers: list[logging.Handler] = []
    if enable_console:
        handlers.append(logging.StreamHandler(sys.stdout))
    if enable_file and log_file:
        try:
            handlers.append(_rotating_file_handler(log_file, max_bytes, backup_count))
        except OSError as e:
            logger.warning(
                "Could not open log file %s: %s",
                log_file,
                e,
                extra={"event": "logging.file_handler_failed"},
            )

    for handler in handlers:
        handler.setLevel(numeric_level)
        handler.setFormatter(formatter)
        logger.addHandler(handler)
    return logger


def get_logger(name: str, log_file: Optional[str] = None, level: str = "INFO") -> logging.Logger:
    """Return ``name``'s logger, configuring it on first use only."""
    logger = logging.getLogger(name)
    if logger.handlers:
        return logger
    return setup_logging(name=name, log_file=log_file, level=level)
