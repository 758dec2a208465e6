"""
Structured Logging Configuration Module

Ledger managers log through ``log_action``, which attaches who, what and
which record to the log record. ``setup_logging`` installs one handler on
the package logger that renders those records as JSON lines or as plain
text, to stderr or to a file.
"""

import logging
import json
from datetime import datetime, timezone
from typing import Optional, Union


# Attributes log_action attaches to a record, in output order
ACTION_FIELDS = ("user_id", "action", "resource", "extra")

TEXT_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def _level_number(level: Union[str, int]) -> int:
    if isinstance(level, int):
        return level
    number = logging.getLevelName(str(level).upper())
    if not isinstance(number, int):
        raise ValueError(f"Unknown log level: {level!r}")
    return number


def _action_fields(record: logging.LogRecord) -> dict:
    fields = {}
    for name in ACTION_FIELDS:
        value = getattr(record, name, None)
        if value:
            fields[name] = value
    return fields


class JSONFormatter(logging.Formatter):
    """One JSON object per record; empty action fields are left out"""

    def format(self, record):
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        entry.update(_action_fields(record))

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        if record.stack_info:
            entry["stack"] = self.formatStack(record.stack_info)

        return json.dumps(entry, default=str)


class TextFormatter(logging.Formatter):
    """Plain text line with the action fields appended as key=value pairs"""

    def __init__(self):
        super().__init__(TEXT_FORMAT)

    def format(self, record):
        line = super().format(record)
        fields = _action_fields(record)
        if not fields:
            return line
        pairs = " ".join(f"{name}={value}" for name, value in fields.items())
        return f"{line} [{pairs}]"


def setup_logging(level: str = "INFO", logger_name: str = "trading_ledger",
                  log_format: str = "json", log_file: Optional[str] = None) -> logging.Logger:
    """
    Configure the package logger with a single handler.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        logger_name: Name of the application logger
        log_format: "json" for structured output, anything else for plain text
        log_file: Optional file path; stderr when None

    Returns:
        The configured logger
    """
    logger = logging.getLogger(logger_name)

    # Calling this again replaces the handler instead of stacking another one
    for old in list(logger.handlers):
        logger.removeHandler(old)
        old.close()

    handler = logging.FileHandler(log_file, encoding="utf-8") if log_file else logging.StreamHandler()
    handler.setFormatter(JSONFormatter() if log_format == "json" else TextFormatter())

    logger.addHandler(handler)
    logger.setLevel(_level_number(level))
    logger.propagate = False

    return logger


def get_logger(name: str = "trading_ledger") -> logging.Logger:
    return logging.getLogger(name)


def log_action(logger: logging.Logger, level: Union[str, int], message: str,
               user_id: Optional[str] = None, action: Optional[str] = None,
               resource: Optional[str] = None, extra: Optional[dict] = None):
    """
    Log ``message`` with the structured action fields attached.

    Args:
        logger: Logger to emit on
        level: Level name ("info", "warning", ...) or number
        message: Human-readable message
        user_id: Username the action concerns
        action: Short action name such as "settle_trade"
        resource: Record reference such as "trades:12"
        extra: Additional structured data
    """
    levelno = _level_number(level)
    if not logger.isEnabledFor(levelno):
        return

    fields = {"user_id": user_id, "action": action, "resource": resource, "extra": extra}
    logger.log(
        levelno, message,
        extra={name: value for name, value in fields.items() if value},
        stacklevel=2,
    )
