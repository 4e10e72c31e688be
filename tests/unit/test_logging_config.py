
import json
import logging

from analytics_api.logging_config import JSONFormatter, setup_logging


def _record(**extra):
    record = logging.LogRecord("analytics_api.test", logging.INFO, __file__, 10, "hello %s", ("world",), None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_json_formatter_includes_known_extras():
    line = JSONFormatter().format(_record(request_id="req-1", app_id="app-1", secret="nope"))
    data = json.loads(line)

    assert data["message"] == "hello world"
    assert data["level"] == "INFO"
    assert data["request_id"] == "req-1"
    assert data["app_id"] == "app-1"
    assert "secret" not in data


def test_setup_logging_replaces_handlers():
    root = logging.getLogger()
    original = root.handlers[:]
    try:
        setup_logging(level="debug", log_format="json")
        assert root.level == logging.DEBUG
        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0].formatter, JSONFormatter)

        setup_logging(level="warning", log_format="text")
        assert root.level == logging.WARNING
        assert not isinstance(root.handlers[0].formatter, JSONFormatter)
    finally:
        root.handlers = original
