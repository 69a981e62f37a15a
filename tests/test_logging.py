"""
Tests for structured logging
"""

import json
import logging

from bank_ledger.logging_config import (
    JSONFormatter, configure_from_settings, get_logger, log_action, setup_logging
)


class CaptureHandler(logging.Handler):

    def __init__(self):
        super().__init__()
        self.records = []

    def emit(self, record):
        self.records.append(record)


class TestJSONFormatter:

    def test_formats_structured_fields(self):
        record = logging.LogRecord("bank_ledger.ledger", logging.INFO, __file__, 1,
                                   "Opened account %s", ("USD1",), None)
        record.action = "create_account"
        record.user_id = "USER001"

        entry = json.loads(JSONFormatter().format(record))
        assert entry["message"] == "Opened account USD1"
        assert entry["level"] == "INFO"
        assert entry["logger"] == "bank_ledger.ledger"
        assert entry["action"] == "create_account"
        assert entry["user_id"] == "USER001"
        assert "correlation_id" not in entry

    def test_includes_exception(self):
        try:
            raise ValueError("boom")
        except ValueError:
            import sys
            record = logging.LogRecord("bank_ledger", logging.ERROR, __file__, 1,
                                       "failed", (), sys.exc_info())
        entry = json.loads(JSONFormatter().format(record))
        assert "ValueError: boom" in entry["exception"]


class TestSetupLogging:

    def test_setup_replaces_handlers(self):
        logger = setup_logging("DEBUG", logger_name="bank_ledger.test_setup")
        setup_logging("WARNING", logger_name="bank_ledger.test_setup", log_format="text")

        assert len(logger.handlers) == 1
        assert not isinstance(logger.handlers[0].formatter, JSONFormatter)
        assert logger.level == logging.WARNING
        assert not logger.propagate
        assert get_logger("bank_ledger.test_setup") is logger


class TestLogAction:

    def test_attaches_fields(self):
        logger = logging.getLogger("bank_ledger.test_log_action")
        logger.setLevel(logging.INFO)
        handler = CaptureHandler()
        logger.addHandler(handler)
        try:
            log_action(logger, "info", "Deposited", user_id="U1", action="deposit",
                       account_number="USD1", correlation_id="c-1", extra={"amount": "5"})
            log_action(logger, "debug", "suppressed")
        finally:
            logger.removeHandler(handler)

        assert len(handler.records) == 1
        record = handler.records[0]
        assert record.getMessage() == "Deposited"
        assert record.action == "deposit"
        assert record.account_number == "USD1"
        assert record.correlation_id == "c-1"
        assert record.extra == {"amount": "5"}

    def test_configure_from_settings(self):
        from bank_ledger.config import LedgerConfig

        logger = configure_from_settings(LedgerConfig(_env_file=None, log_level="ERROR", log_format="text"))
        assert logger.name == "bank_ledger"
        assert logger.level == logging.ERROR
        assert not isinstance(logger.handlers[0].formatter, JSONFormatter)
        setup_logging()
