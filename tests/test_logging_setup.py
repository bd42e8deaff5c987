"""
Tests for logging configuration.
"""

import json
import logging

import pytest

from hlspresso.config import LoggingConfig
from hlspresso.logging_setup import JSONFormatter, configure_logging, parse_level


@pytest.fixture(autouse=True)
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)


def make_record(msg="hello", **extra):
    record = logging.LogRecord(
        "hlspresso.transcoding.hls", logging.INFO, __file__, 10, msg, None, None
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestJSONFormatter:
    def test_fields(self):
        data = json.loads(JSONFormatter().format(make_record()))
        assert data["level"] == "INFO"
        assert data["component"] == "hlspresso.transcoding.hls"
        assert data["message"] == "hello"
        assert "timestamp" in data
        assert "context" not in data

    def test_extra_values_become_context(self):
        record = make_record(tiers=["1280x720@2800k"], output="out")
        data = json.loads(JSONFormatter().format(record))
        assert data["context"] == {"tiers": ["1280x720@2800k"], "output": "out"}

    def test_exception(self):
        try:
            raise RuntimeError("kaboom")
        except RuntimeError:
            import sys
            record = make_record()
            record.exc_info = sys.exc_info()
        data = json.loads(JSONFormatter().format(record))
        assert "RuntimeError: kaboom" in data["exception"]


def test_parse_level():
    assert parse_level("DEBUG") == logging.DEBUG
    assert parse_level("warn") == logging.WARNING
    assert parse_level("bogus") == logging.INFO


def test_configure_logging_with_file(tmp_path):
    log_file = tmp_path / "logs" / "hlspresso.log"
    configure_logging(LoggingConfig(level="DEBUG", format="json", file=str(log_file)))

    logging.getLogger("hlspresso.test").debug("written to file")
    for handler in logging.getLogger().handlers:
        handler.flush()

    entry = json.loads(log_file.read_text().strip().splitlines()[-1])
    assert entry["message"] == "written to file"
    assert logging.getLogger().level == logging.DEBUG


def test_configure_logging_text_format():
    configure_logging(LoggingConfig(level="WARNING", format="text"))
    root = logging.getLogger()
    assert len(root.handlers) == 1
    assert not isinstance(root.handlers[0].formatter, JSONFormatter)
