"""Tests for structured logging setup."""

import io
import json
import logging
import sys

import pytest

from mcp_server_clitools.logging_config import (
    SafeStreamHandler,
    StructuredLogFormatter,
    configure_logging,
)


def _record(message="hello", **extra):
    record = logging.LogRecord("mcp_server_clitools.test", logging.INFO, __file__, 1, message, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestStructuredLogFormatter:
    def test_basic_fields(self):
        payload = json.loads(StructuredLogFormatter().format(_record()))

        assert payload["level"] == "INFO"
        assert payload["logger"] == "mcp_server_clitools.test"
        assert payload["message"] == "hello"
        assert "timestamp" in payload

    def test_context_fields_are_included_when_present(self):
        record = _record(operation="git status", exit_code=0, duration_ms=12.5, timed_out=False)
        payload = json.loads(StructuredLogFormatter().format(record))

        assert payload["operation"] == "git status"
        assert payload["exit_code"] == 0
        assert payload["duration_ms"] == 12.5
        assert payload["timed_out"] is False
        assert "command" not in payload

    def test_exception_is_formatted(self):
        try:
            raise RuntimeError("kaboom")
        except RuntimeError:
            record = logging.LogRecord("x", logging.ERROR, __file__, 1, "failed", None, sys.exc_info())
        payload = json.loads(StructuredLogFormatter().format(record))
        assert "kaboom" in payload["exception"]


class TestSafeStreamHandler:
    def test_closed_stream_is_ignored(self, capsys):
        stream = io.StringIO()
        handler = SafeStreamHandler(stream)
        stream.close()

        handler.emit(_record())
        assert "Logging error" not in capsys.readouterr().err

    def test_other_errors_are_reported(self, capsys):
        class Broken(io.StringIO):
            def write(self, s):
                raise OSError("disk on fire")

        handler = SafeStreamHandler(Broken())
        handler.emit(_record())
        assert "disk on fire" in capsys.readouterr().err


class TestConfigureLogging:
    @pytest.fixture(autouse=True)
    def _restore_root_logger(self):
        root = logging.getLogger()
        handlers, level = list(root.handlers), root.level
        yield
        for handler in root.handlers:
            if handler not in handlers:
                handler.close()
        root.handlers[:] = handlers
        root.setLevel(level)

    def test_json_handler_on_stderr(self):
        configure_logging("debug")
        root = logging.getLogger()

        assert root.level == logging.DEBUG
        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0], SafeStreamHandler)
        assert isinstance(root.handlers[0].formatter, StructuredLogFormatter)

    def test_plain_format(self):
        configure_logging("INFO", json_format=False)
        formatter = logging.getLogger().handlers[0].formatter
        assert not isinstance(formatter, StructuredLogFormatter)

    def test_log_file(self, tmp_path):
        log_file = tmp_path / "debug.log"
        configure_logging("INFO", log_file=str(log_file))
        logging.getLogger("mcp_server_clitools.test").info("to file", extra={"operation": "go test"})
        for handler in logging.getLogger().handlers:
            handler.flush()

        line = log_file.read_text().strip().splitlines()[-1]
        assert json.loads(line)["operation"] == "go test"
