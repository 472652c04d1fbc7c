# tests/unit/logging/test_logger.py — v2
"""Tests for logging/logger.py: logger factory and formatters."""

from __future__ import annotations

import json
import logging

from cacheplan.logging.context import set_cache_class_context, set_job_context, set_step_context
from cacheplan.logging.logger import JsonFormatter, TextFormatter, get_logger, setup_logging


def _record(msg: str, level: int = logging.INFO) -> logging.LogRecord:
    return logging.LogRecord(
        name="test", level=level, pathname="", lineno=0,
        msg=msg, args=(), exc_info=None,
    )


class TestJsonFormatter:
    def test_format_basic(self):
        parsed = json.loads(JsonFormatter().format(_record("Hello")))
        assert parsed["level"] == "INFO"
        assert parsed["message"] == "Hello"
        assert "timestamp" in parsed
        assert "context" not in parsed

    def test_format_with_context(self):
        set_job_context("run1", "ubuntu-latest")
        set_cache_class_context("cargo-registry")
        parsed = json.loads(JsonFormatter().format(_record("restored")))
        assert parsed["context"] == {
            "run_id": "run1",
            "platform": "ubuntu-latest",
            "cache_class": "cargo-registry",
        }

    def test_format_extra_data(self):
        record = _record("saved")
        record.data = {"size_bytes": 42}
        parsed = json.loads(JsonFormatter().format(record))
        assert parsed["data"] == {"size_bytes": 42}


class TestTextFormatter:
    def test_format_basic(self):
        output = TextFormatter().format(_record("Hello text"))
        assert "Hello text" in output
        assert "INFO" in output

    def test_format_with_context(self):
        set_job_context("run1", "macos-latest")
        set_cache_class_context("cargo-index")
        set_step_context("restore")
        output = TextFormatter().format(_record("miss"))
        assert "[macos-latest]" in output
        assert "<cargo-index>" in output
        assert "(restore)" in output


class TestGetLogger:
    def test_returns_logger(self):
        logger = get_logger("test_module")
        assert logger.name == "cacheplan.test_module"


class TestSetupLogging:
    def teardown_method(self):
        root = logging.getLogger("cacheplan")
        for handler in root.handlers:
            handler.close()
        root.handlers.clear()

    def test_setup_json(self):
        setup_logging(level="DEBUG", log_format="json")
        root = logging.getLogger("cacheplan")
        assert root.level == logging.DEBUG
        assert isinstance(root.handlers[0].formatter, JsonFormatter)

    def test_setup_text(self):
        setup_logging(level="INFO", log_format="text")
        root = logging.getLogger("cacheplan")
        assert root.level == logging.INFO
        assert isinstance(root.handlers[0].formatter, TextFormatter)

    def test_reinit_does_not_duplicate(self):
        setup_logging()
        setup_logging()
        assert len(logging.getLogger("cacheplan").handlers) == 1

    def test_log_file(self, tmp_path):
        log_file = tmp_path / "logs" / "cacheplan.log"
        setup_logging(log_file=str(log_file))
        get_logger("test").info("written to file")
        for handler in logging.getLogger("cacheplan").handlers:
            handler.flush()
        assert "written to file" in log_file.read_text(encoding="utf-8")
