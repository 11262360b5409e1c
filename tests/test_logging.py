"""
Tests for the logging module.

Tests verify:
- JSON output carries ECS-style field names and the service name
- DEBUG logs are suppressed at INFO level
- Console output is written to the configured stream
"""

import io
import json

from dbproxy.logging import configure_logging, get_logger


def _lines(stream: io.StringIO) -> list[str]:
    return [line for line in stream.getvalue().splitlines() if line]


class TestConfigureLogging:
    def test_json_fields(self):
        stream = io.StringIO()
        configure_logging(level="INFO", json_format=True, service="orders", stream=stream)
        get_logger("test.json").info("database_connected", driver="sqlite")

        record = json.loads(_lines(stream)[0])
        assert record["event"] == "database_connected"
        assert record["driver"] == "sqlite"
        assert record["log.level"] == "info"
        assert record["service.name"] == "orders"
        assert "@timestamp" in record

    def test_without_timestamp(self):
        stream = io.StringIO()
        configure_logging(level="INFO", json_format=True, add_timestamp=False, stream=stream)
        get_logger("test.no_ts").info("proxy_created")
        assert "@timestamp" not in json.loads(_lines(stream)[0])

    def test_debug_suppressed_at_info(self):
        stream = io.StringIO()
        configure_logging(level="INFO", json_format=True, stream=stream)
        log = get_logger("test.levels")
        log.debug("statement_executed")
        log.warning("transaction_retry", attempt=1)

        events = [json.loads(line)["event"] for line in _lines(stream)]
        assert events == ["transaction_retry"]

    def test_console_renderer(self):
        stream = io.StringIO()
        configure_logging(level="DEBUG", json_format=False, stream=stream)
        get_logger("test.console").debug("statement_executed", rowcount=3)
        assert "statement_executed" in stream.getvalue()
        assert "rowcount" in stream.getvalue()

    def test_get_logger_returns_bound_logger(self):
        log = get_logger("test.module")
        assert hasattr(log, "info")
        assert hasattr(log, "warning")
        assert hasattr(log, "error")
