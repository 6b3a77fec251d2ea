# tests/unit/logging/test_logger.py - v2
"""Tests for logging/logger.py."""

from __future__ import annotations

import json
import logging
from logging.handlers import RotatingFileHandler

from codexplain.logging.context import clear_context, set_request_context, set_stage_context
from codexplain.logging.logger import (
    ROOT_LOGGER_NAME,
    ContextFilter,
    JsonFormatter,
    TextFormatter,
    setup_logging,
)


def _record(msg: str = "hello", **extra) -> logging.LogRecord:
    record = logging.LogRecord(
        name="codexplain.test", level=logging.INFO, pathname=__file__,
        lineno=1, msg=msg, args=(), exc_info=None,
    )
    for k, v in extra.items():
        setattr(record, k, v)
    ContextFilter().filter(record)
    return record


class TestFormatters:
    def teardown_method(self):
        clear_context()

    def test_json_includes_context_and_data(self):
        set_request_context("f" * 64, "req42")
        payload = json.loads(JsonFormatter().format(_record(data={"operation": "get"})))
        assert payload["message"] == "hello"
        assert payload["level"] == "INFO"
        assert payload["context"]["request_id"] == "req42"
        assert payload["data"] == {"operation": "get"}

    def test_json_without_context(self):
        payload = json.loads(JsonFormatter().format(_record()))
        assert "context" not in payload

    def test_context_captured_at_emit_time(self):
        set_stage_context("scripting")
        record = _record()
        set_stage_context("flowcharting")
        assert json.loads(JsonFormatter().format(record))["context"]["stage"] == "scripting"

    def test_text_shows_short_fingerprint_and_stage(self):
        set_request_context("0123456789abcdef" * 4, "req")
        set_stage_context("scripting")
        line = TextFormatter().format(_record("stage started"))
        assert "<0123456789ab>" in line
        assert "[scripting]" in line
        assert line.endswith("- stage started")

    def test_text_without_filter(self):
        record = logging.LogRecord(
            name="codexplain.test", level=logging.INFO, pathname=__file__,
            lineno=1, msg="plain", args=(), exc_info=None,
        )
        assert TextFormatter().format(record).endswith("codexplain.test - plain")


class TestSetupLogging:
    def teardown_method(self):
        root = logging.getLogger(ROOT_LOGGER_NAME)
        for handler in list(root.handlers):
            root.removeHandler(handler)
            handler.close()

    def test_console_only(self):
        setup_logging(level="DEBUG")
        root = logging.getLogger(ROOT_LOGGER_NAME)
        assert root.level == logging.DEBUG
        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0].formatter, TextFormatter)

    def test_file_handler_rotates_in_its_own_format(self, tmp_path):
        log_file = tmp_path / "logs" / "codexplain.log"
        setup_logging(log_file=log_file, file_format="json", max_bytes=1024, backup_count=2)
        root = logging.getLogger(ROOT_LOGGER_NAME)
        (file_handler,) = [h for h in root.handlers if isinstance(h, RotatingFileHandler)]
        assert file_handler.maxBytes == 1024
        assert file_handler.backupCount == 2
        assert isinstance(file_handler.formatter, JsonFormatter)

        logging.getLogger("codexplain.cache").warning("disk slow")
        file_handler.flush()
        line = log_file.read_text().strip().splitlines()[-1]
        assert json.loads(line)["message"] == "disk slow"

    def test_reinit_does_not_duplicate(self):
        setup_logging()
        setup_logging()
        assert len(logging.getLogger(ROOT_LOGGER_NAME).handlers) == 1
