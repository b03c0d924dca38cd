"""Tests for logging configuration and formatters."""

import json
import logging

import pytest

from notify_worker.logging import get_logger
from notify_worker.logging.config import (
    ContextualFilter,
    JSONFormatter,
    KeyValueFormatter,
    configure_logging,
)
from notify_worker.logging.context import clear_log_context, log_context


@pytest.fixture(autouse=True)
def clean_context():
    """Clear logging context before and after each test."""
    clear_log_context()
    yield
    clear_log_context()


@pytest.fixture
def logger():
    test_logger = logging.getLogger("test_logger")
    test_logger.setLevel(logging.DEBUG)
    test_logger.handlers.clear()

    yield test_logger

    test_logger.handlers.clear()


@pytest.fixture
def key_value_formatter():
    return KeyValueFormatter(
        "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def make_record(logger, message="Test message", extra=None):
    return logger.makeRecord("test", logging.INFO, "test.py", 1, message, (), None, extra=extra)


def test_json_formatter_basic(logger):
    """Test JSONFormatter produces valid JSON with mandatory fields."""
    log_obj = json.loads(JSONFormatter().format(make_record(logger)))

    assert log_obj["level"] == "INFO"
    assert log_obj["message"] == "Test message"
    assert log_obj["timestamp"].endswith("Z")
    # YYYY-MM-DDTHH:MM:SS.sssZ
    assert len(log_obj["timestamp"]) == 24
    assert "name" not in log_obj


def test_json_formatter_with_extra_fields(logger):
    record = make_record(
        logger, extra={"event": "consumer.cycle.completed", "processed": 3, "archived": False}
    )

    log_obj = json.loads(JSONFormatter().format(record))

    assert log_obj["event"] == "consumer.cycle.completed"
    assert log_obj["processed"] == 3
    assert log_obj["archived"] is False


def test_json_formatter_redacts_credentials(logger):
    record = make_record(logger, extra={"authkey": "secret-key", "cron_secret": "s3cret"})

    log_obj = json.loads(JSONFormatter().format(record))

    assert log_obj["authkey"] == "***"
    assert log_obj["cron_secret"] == "***"


def test_contextual_filter_adds_static_fields(logger):
    record = make_record(logger)

    ContextualFilter(service="test-service", environment="test").filter(record)

    assert record.service == "test-service"
    assert record.environment == "test"


def test_contextual_filter_adds_context_fields(logger):
    with log_context(run_id="abc123", lease_id=7, job_id="jtd-1"):
        record = make_record(logger)
        ContextualFilter().filter(record)

    assert record.run_id == "abc123"
    assert record.lease_id == 7
    assert record.job_id == "jtd-1"


def test_explicit_extra_wins_over_context(logger):
    with log_context(channel="email"):
        record = make_record(logger, extra={"channel": "sms"})
        ContextualFilter().filter(record)

    assert record.channel == "sms"


def test_json_formatter_with_context(logger):
    """Test full chain: context + filter + JSON formatter."""
    with log_context(run_id="abc123", job_id="jtd-1"):
        record = make_record(logger, "Dispatching", extra={"event": "channel.send.started"})
        ContextualFilter(service="notification-dispatch-worker", environment="test").filter(record)
        log_obj = json.loads(JSONFormatter().format(record))

    assert log_obj["message"] == "Dispatching"
    assert log_obj["event"] == "channel.send.started"
    assert log_obj["service"] == "notification-dispatch-worker"
    assert log_obj["environment"] == "test"
    assert log_obj["run_id"] == "abc123"
    assert log_obj["job_id"] == "jtd-1"


def test_key_value_formatter_basic(logger, key_value_formatter):
    output = key_value_formatter.format(make_record(logger))

    assert "[INFO]" in output
    assert "Test message" in output


def test_key_value_formatter_with_extras(logger, key_value_formatter):
    record = make_record(
        logger,
        extra={"event": "test.event", "count": 42, "error": "provider down", "sent": True, "id": None},
    )

    output = key_value_formatter.format(record)

    assert "event=test.event" in output
    assert "count=42" in output
    assert 'error="provider down"' in output
    assert "sent=true" in output
    assert "id=null" in output


def test_key_value_formatter_skips_static_fields(logger, key_value_formatter):
    record = make_record(logger)
    ContextualFilter(service="svc", environment="test").filter(record)

    output = key_value_formatter.format(record)

    assert "service=" not in output
    assert "environment=" not in output


def test_component_adapter_merges_extra(logger, key_value_formatter):
    handler = logging.StreamHandler()
    records = []
    handler.emit = records.append
    logger.addHandler(handler)

    adapter = get_logger("test_logger", component="consumer")
    adapter.info("Cycle started", extra={"event": "consumer.cycle.started"})

    assert records[0].component == "consumer"
    assert records[0].event == "consumer.cycle.started"


def test_configure_logging_invalid_level():
    with pytest.raises(ValueError, match="Invalid log level"):
        configure_logging(level="INVALID")


def test_configure_logging_invalid_format():
    with pytest.raises(ValueError, match="Invalid log format"):
        configure_logging(format_type="invalid")


@pytest.mark.parametrize(
    "format_type,formatter_class",
    [("json", JSONFormatter), ("key-value", KeyValueFormatter)],
)
def test_configure_logging_installs_formatter(format_type, formatter_class):
    configure_logging(level="INFO", format_type=format_type, environment="test")

    root_logger = logging.getLogger()
    assert len(root_logger.handlers) == 1
    assert isinstance(root_logger.handlers[0].formatter, formatter_class)
    assert root_logger.level == logging.INFO
