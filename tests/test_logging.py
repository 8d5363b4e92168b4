# tests/test_logging.py
"""
Test structured logging.

Verifies bound fields, JSON formatting and the LOG_FILE output.
"""

import json
import logging

import allocgov.logging as log_config
from allocgov.logging import StructuredLogFormatter, StructuredLogger, configure_logging
from allocgov.settings import settings


def _flush():
    for handler in logging.getLogger().handlers:
        handler.flush()


class TestStructuredLogger:
    """Tests for keyword fields and bound context."""

    def test_bound_fields(self, caplog):
        log = StructuredLogger("allocgov.tests").bind(application_id="42", ref="Application/42")
        with caplog.at_level(logging.INFO, logger="allocgov.tests"):
            log.info("application_transitioned", to_state="Granted")

        assert caplog.records[-1].structured_data == {
            "application_id": "42",
            "ref": "Application/42",
            "to_state": "Granted",
        }

    def test_call_fields_override_bound(self, caplog):
        log = StructuredLogger("allocgov.tests").bind(ref="main")
        with caplog.at_level(logging.INFO, logger="allocgov.tests"):
            log.info("document_written", ref="Application/7")

        assert caplog.records[-1].structured_data == {"ref": "Application/7"}

    def test_bind_leaves_parent_unchanged(self, caplog):
        parent = StructuredLogger("allocgov.tests")
        parent.bind(application_id="42")
        with caplog.at_level(logging.INFO, logger="allocgov.tests"):
            parent.info("service_starting")

        assert caplog.records[-1].structured_data == {}


class TestFormatter:
    """Tests for the JSON line format."""

    def test_json_line(self):
        record = logging.LogRecord("allocgov.engine", logging.WARNING, __file__, 1, "version_conflict", None, None)
        record.structured_data = {"application_id": "42"}

        line = json.loads(StructuredLogFormatter().format(record))

        assert line["level"] == "WARNING"
        assert line["message"] == "version_conflict"
        assert line["application_id"] == "42"
        assert "source" not in line

    def test_errors_carry_source(self):
        record = logging.LogRecord("allocgov.engine", logging.ERROR, __file__, 12, "request_failed", None, None)

        line = json.loads(StructuredLogFormatter().format(record))

        assert line["source"]["line"] == 12


class TestLogFile:
    """Tests for the LOG_FILE destination."""

    def test_configure_with_file(self, tmp_path):
        path = tmp_path / "allocgov.log"
        try:
            configure_logging(level="INFO", json_output=False, log_file=str(path), force=True)
            StructuredLogger("allocgov.tests").info("application_created", application_id="42")
            _flush()

            line = json.loads(path.read_text(encoding="utf-8").splitlines()[-1])
            assert line["message"] == "application_created"
            assert line["application_id"] == "42"
        finally:
            configure_logging(force=True)

    def test_get_logger_uses_setting(self, tmp_path, monkeypatch):
        path = tmp_path / "from-settings.log"
        monkeypatch.setattr(settings, "log_file", str(path))
        monkeypatch.setattr(log_config, "_configured", False)
        try:
            log_config.get_logger("allocgov.tests").warning("total_reached_check_failed", application_id="8")
            _flush()

            assert "total_reached_check_failed" in path.read_text(encoding="utf-8")
        finally:
            configure_logging(force=True)
