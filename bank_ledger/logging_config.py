"""
Structured Logging Configuration Module

Every ledger log line can carry who acted, what was done and on which
account. The JSON formatter emits those fields when present; the text
formatter is meant for local runs.
"""

import logging
import json
from datetime import datetime, timezone
from typing import Optional


TEXT_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

# Record attributes copied into JSON output when set
STRUCTURED_FIELDS = ("correlation_id", "user_id", "action", "account_number", "extra")


class JSONFormatter(logging.Formatter):
    """One JSON object per record"""

    def format(self, record):
        log_entry = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for field_name in STRUCTURED_FIELDS:
            value = getattr(record, field_name, None)
            if value is not None:
                log_entry[field_name] = value

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_entry, default=str)


def setup_logging(level: str = "INFO", logger_name: str = "bank_ledger",
                  log_format: str = "json") -> logging.Logger:
    """
    Attach a single stream handler to the ledger logger.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        logger_name: Root of the logger hierarchy to configure
        log_format: "json" for structured output, anything else for plain text

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(logger_name)

    # Calling twice must not duplicate output
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)

    handler = logging.StreamHandler()
    formatter = JSONFormatter() if log_format == "json" else logging.Formatter(TEXT_FORMAT)
    handler.setFormatter(formatter)

    logger.addHandler(handler)
    logger.setLevel(getattr(logging, level.upper()))
    logger.propagate = False

    return logger


def configure_from_settings(settings) -> logging.Logger:
    """Apply log_level and log_format from a LedgerConfig"""
    return setup_logging(settings.log_level, log_format=settings.log_format)


def get_logger(name: str = "bank_ledger") -> logging.Logger:
    return logging.getLogger(name)


def log_action(logger: logging.Logger, level: str, message: str,
               user_id: Optional[str] = None, action: Optional[str] = None,
               account_number: Optional[str] = None, correlation_id: Optional[str] = None,
               extra: Optional[dict] = None):
    """
    Log a ledger action with its structured fields.

    Args:
        logger: Logger instance
        level: Level name (info, warning, error, ...)
        message: Human readable message
        user_id: Holder the action was performed for
        action: Operation name, e.g. "deposit"
        account_number: Account the action touched
        correlation_id: Caller supplied request id
        extra: Additional structured data
    """
    fields = {
        "user_id": user_id,
        "action": action,
        "account_number": account_number,
        "correlation_id": correlation_id,
        "extra": extra,
    }
    logger.log(getattr(logging, level.upper()), message,
               extra={k: v for k, v in fields.items() if v})
