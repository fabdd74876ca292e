"""
Tests for logging helpers.
"""

import json
import logging
import logging.handlers

import pytest
import structlog

from subscription_engine.config.settings import Settings
from subscription_engine.core.logging import (
    CustomJsonFormatter,
    LoggingConfig,
    SensitiveDataProcessor,
    SubscriptionContextProcessor,
    get_logger,
    log_execution_time,
    setup_logging,
    subscription_id,
)


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield root
    root.handlers[:] = handlers
    root.setLevel(level)


class TestProcessors:
    """Test structlog processors."""

    def test_context_processor_adds_subscription(self):
        token = subscription_id.set("sub-42")
        try:
            event = SubscriptionContextProcessor()(None, "info", {"event": "x"})
        finally:
            subscription_id.reset(token)

        assert event["subscription_id"] == "sub-42"
        assert event["service"] == "subscription-engine"
        assert "timestamp" in event

    def test_context_processor_without_context(self):
        event = SubscriptionContextProcessor()(None, "info", {"event": "x"})
        assert "subscription_id" not in event

    def test_sensitive_values_are_redacted(self):
        event = SensitiveDataProcessor()(None, "info", {
            "event": "charged",
            "gateway_customer_id": "cus_123",
            "nested": {"payment_method_token": "tok_abc", "amount": "29.99"},
        })

        assert event["gateway_customer_id"] == "[REDACTED]"
        assert event["nested"]["payment_method_token"] == "[REDACTED]"
        assert event["nested"]["amount"] == "29.99"
        assert event["event"] == "charged"


class TestLoggerAdapter:
    """Test the context-carrying adapter."""

    def test_context_is_merged_into_extra(self, caplog):
        logger = get_logger("tests.adapter").add_context(tier="pro")

        with caplog.at_level(logging.INFO):
            logger.info("hello", extra={"feature": "alerts"})
            logger.remove_context("tier").info("bye")

        first, second = caplog.records[-2:]
        assert first.tier == "pro"
        assert first.feature == "alerts"
        assert not hasattr(second, "tier")

    def test_default_name_is_caller_module(self):
        assert get_logger().name == __name__

    def test_execution_time_decorator(self, caplog):
        @log_execution_time("tests.timing")
        def double(x):
            return x * 2

        with caplog.at_level(logging.DEBUG, logger="tests.timing"):
            assert double(4) == 8

        record = caplog.records[-1]
        assert record.function == "double"
        assert record.execution_time >= 0


class TestConfiguration:
    """Test handler and formatter setup."""

    def test_json_formatter_output(self):
        formatter = CustomJsonFormatter('%(asctime)s %(name)s %(levelname)s %(message)s')
        record = logging.LogRecord("engine", logging.WARNING, __file__, 10, "limit hit", None, None)

        payload = json.loads(formatter.format(record))

        assert payload["message"] == "limit hit"
        assert payload["level"] == "WARNING"
        assert payload["logger"] == "engine"

    def test_standard_logging_installs_console_handler(self, restore_root_logger):
        LoggingConfig.configure_standard_logging()

        assert len(restore_root_logger.handlers) == 1
        assert isinstance(restore_root_logger.handlers[0], logging.StreamHandler)

    def test_structured_logging(self):
        try:
            LoggingConfig.configure_structured_logging()
            assert structlog.is_configured()
        finally:
            structlog.reset_defaults()

    def test_json_logging_to_rotating_file(self, restore_root_logger, tmp_path):
        config = Settings(_env_file=None, LOG_FORMAT="json", LOG_FILE=str(tmp_path / "logs" / "engine.log"))

        LoggingConfig.configure_standard_logging(config)

        console, rotating = restore_root_logger.handlers
        assert isinstance(rotating, logging.handlers.RotatingFileHandler)
        assert isinstance(console.formatter, CustomJsonFormatter)
        assert (tmp_path / "logs").is_dir()
        rotating.close()

    def test_setup_logging_returns_module_logger(self, restore_root_logger):
        logger = setup_logging(Settings(_env_file=None))
        assert logger.name == "subscription_engine.core.logging"
