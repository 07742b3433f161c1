"""
Unit tests for structured logging configuration.
"""
import json
import logging
from typing import Any, Callable, Dict, Iterator, List

import pytest
import structlog

from honey_store.config import Settings
from honey_store.monitoring.logging import setup_logging


@pytest.fixture
def configured_logging(test_settings: Settings, capsys: Any) -> Iterator[Callable[[], None]]:
    """Route JSON logs to the captured stdout of the test.

    pytest gives each phase its own capture stream, so the handler must be
    bound to stdout from inside the test body, not during fixture setup.
    """
    yield lambda: setup_logging(test_settings, service_name="payment-service")
    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
    structlog.reset_defaults()


def log_lines(output: str) -> List[Dict[str, Any]]:
    return [json.loads(line) for line in output.splitlines() if line.strip()]


class TestStructuredLogging:
    """Test suite for the JSON log output."""

    @pytest.mark.unit
    def test_structlog_event_encoded_once(self, configured_logging: Callable[[], None], capsys: Any) -> None:
        configured_logging()
        structlog.get_logger("honey_store.orders").info("order_created", order_id="order-1")

        entry = log_lines(capsys.readouterr().out)[-1]

        assert entry["message"] == "order_created"
        assert entry["order_id"] == "order-1"
        assert entry["level"] == "INFO"
        assert entry["logger"] == "honey_store.orders"
        assert entry["service"] == "payment-service"
        assert entry["app_env"] == "test"
        assert entry["@timestamp"]

    @pytest.mark.unit
    def test_context_bound_fields_included(self, configured_logging: Callable[[], None], capsys: Any) -> None:
        configured_logging()
        structlog.contextvars.bind_contextvars(request_id="req-1")
        try:
            structlog.get_logger("honey_store.api").warning("webhook_validation_error")
        finally:
            structlog.contextvars.clear_contextvars()

        entry = log_lines(capsys.readouterr().out)[-1]

        assert entry["request_id"] == "req-1"
        assert entry["level"] == "WARNING"

    @pytest.mark.unit
    def test_stdlib_records_share_format(self, configured_logging: Callable[[], None], capsys: Any) -> None:
        configured_logging()
        logging.getLogger("uvicorn.error").error("server stopped")

        entry = log_lines(capsys.readouterr().out)[-1]

        assert entry["message"] == "server stopped"
        assert entry["level"] == "ERROR"
        assert entry["logger"] == "uvicorn.error"
