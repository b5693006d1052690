"""
Tests for console / JSON logger setup.
"""

from __future__ import annotations

import io
import json
import logging

import pytest

from backend.app.core.logging_config import (
    JSONFormatter,
    PrettyFormatter,
    get_logger,
    init_default_logger,
    init_json_logger,
    set_request_context,
)


@pytest.fixture(autouse=True)
def _restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)
    set_request_context()


class TestDefaultLogger:
    def test_console_output(self):
        stream = io.StringIO()
        init_default_logger("DEBUG", stream=stream)
        get_logger("layout.test").debug("name=%s from=%s", "layout", "opensource")
        line = stream.getvalue()
        assert "DEBUG" in line
        assert "layout.test: name=layout from=opensource" in line
        assert "\033[" not in line

    def test_level_filtering(self):
        stream = io.StringIO()
        init_default_logger("WARNING", stream=stream)
        get_logger("layout.test").info("hidden")
        assert stream.getvalue() == ""

    def test_request_id_prefix(self):
        stream = io.StringIO()
        init_default_logger(stream=stream)
        set_request_context(request_id="abcdef0123456789")
        get_logger("layout.test").info("hello")
        assert "[abcdef01]" in stream.getvalue()

    def test_single_handler(self):
        init_default_logger(stream=io.StringIO())
        root = init_default_logger(stream=io.StringIO())
        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0].formatter, PrettyFormatter)


class TestJSONLogger:
    def test_entry_fields(self):
        stream = io.StringIO()
        init_json_logger("INFO", stream=stream)
        get_logger("layout.test").info("test json logger", extra={"store": "redis"})
        entry = json.loads(stream.getvalue().strip())
        assert entry["level"] == "info"
        assert entry["msg"] == "test json logger"
        assert entry["logger"] == "layout.test"
        assert entry["store"] == "redis"
        assert "t" in entry
        assert entry["caller"].rsplit(":", 1)[1].isdigit()

    def test_exception(self):
        stream = io.StringIO()
        init_json_logger(stream=stream)
        try:
            raise RuntimeError("boom")
        except RuntimeError:
            get_logger("layout.test").exception("failed")
        entry = json.loads(stream.getvalue().strip())
        assert entry["exception"] == {"type": "RuntimeError", "message": "boom"}
        assert "Traceback" in entry["stack"]

    def test_formatter_installed(self):
        root = init_json_logger(stream=io.StringIO())
        assert isinstance(root.handlers[0].formatter, JSONFormatter)
