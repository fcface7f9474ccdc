"""Tests for logging setup and operator-facing error formatting"""

import json
import logging

from vorio_agent.core.errors import ConnectionError, ControllerError, VorioApiError
from vorio_agent.utils.logger import JsonFormatter, format_error_for_user, log_error, setup_logging


def test_json_formatter_includes_context():
    record = logging.LogRecord("vorio_agent.test", logging.INFO, __file__, 1, "Synced %d vouchers", (3,), None)
    record.context = {"site": "default"}

    entry = json.loads(JsonFormatter().format(record))

    assert entry["level"] == "info"
    assert entry["module"] == "vorio_agent.test"
    assert entry["message"] == "Synced 3 vouchers"
    assert entry["context"] == {"site": "default"}


def test_setup_logging_writes_file(tmp_path):
    root = logging.getLogger()
    saved_handlers, saved_level = list(root.handlers), root.level
    log_file = tmp_path / "logs" / "agent.log"

    try:
        setup_logging(level="INFO", log_format="text", log_file=str(log_file))
        logging.getLogger("vorio_agent.test").info("hello from test")
        for handler in root.handlers:
            handler.flush()

        assert "hello from test" in log_file.read_text()
        assert logging.getLogger("httpx").level == logging.WARNING
    finally:
        for handler in list(root.handlers):
            root.removeHandler(handler)
            handler.close()
        for handler in saved_handlers:
            root.addHandler(handler)
        root.setLevel(saved_level)


def test_network_error_gets_hint():
    error = ConnectionError("refused", "unifi", host="10.0.0.1", port=443, error_code="ECONNREFUSED")
    formatted = format_error_for_user(error)

    assert formatted.message == "Connection refused - Controller is not reachable"
    assert formatted.details["host"] == "10.0.0.1"
    assert "host/port" in formatted.suggestion


def test_status_error_gets_hint():
    formatted = format_error_for_user(ControllerError("Unauthorized", "unifi", status_code=401))
    assert formatted.message == "Authentication failed: Unauthorized"
    assert formatted.suggestion == "Check your API key or credentials."


def test_api_error_keeps_endpoint():
    formatted = format_error_for_user(VorioApiError("Rate limit exceeded", status_code=429, endpoint="/api/agent/sync"))
    assert formatted.details == {"status": 429, "endpoint": "/api/agent/sync"}


def test_plain_exception():
    formatted = format_error_for_user(RuntimeError("something broke"))
    assert formatted.message == "something broke"
    assert formatted.suggestion is None


def test_log_error_emits_suggestion(caplog):
    logger = logging.getLogger("vorio_agent.test")
    error = ConnectionError("timed out", "unifi", error_code="ETIMEDOUT")

    with caplog.at_level(logging.INFO, logger="vorio_agent.test"):
        log_error(logger, error)

    messages = [record.getMessage() for record in caplog.records]
    assert "Connection timed out" in messages
    assert "Suggestion: Check network connectivity and firewall settings." in messages
