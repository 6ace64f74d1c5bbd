"""
Tests for JSON logging and the run_triangulation command-line entry point.
"""
from __future__ import annotations

import json
import logging

import pytest

from rule_of_thirds.core.logging import JsonFormatter, configure_logging, silent_logger
from scripts import run_triangulation


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield root
    for handler in list(root.handlers):
        root.removeHandler(handler)
    for handler in handlers:
        root.addHandler(handler)
    root.setLevel(level)


def test_json_formatter_includes_extra_fields():
    record = logging.LogRecord("rule_of_thirds.test", logging.WARNING, __file__, 1, "feed %s failed", ("x",), None)
    record.collector = "external"

    payload = json.loads(JsonFormatter().format(record))

    assert payload["level"] == "WARNING"
    assert payload["message"] == "feed x failed"
    assert payload["collector"] == "external"
    assert payload["timestamp"].endswith("Z")


def test_silent_logger_drops_records(caplog):
    logger = silent_logger()
    logger.error("should not appear")

    assert logger.disabled is True
    assert "should not appear" not in caplog.text


def test_configure_logging_installs_one_handler(restore_root_logger):
    configure_logging("debug")

    assert len(restore_root_logger.handlers) == 1
    assert isinstance(restore_root_logger.handlers[0].formatter, JsonFormatter)
    assert restore_root_logger.level == logging.DEBUG


def test_configure_logging_silent(restore_root_logger):
    configure_logging(silent=True)

    assert restore_root_logger.level > logging.CRITICAL


class TestRunTriangulation:
    def test_empty_topic_exits_with_validation_code(self, capsys, restore_root_logger):
        exit_code = run_triangulation.main(["  ", "--silent"])

        outcome = json.loads(capsys.readouterr().out)
        assert exit_code == run_triangulation.EXIT_VALIDATION_ERROR
        assert outcome["success"] is False
        assert outcome["error_type"] == "validation"

    def test_zero_credential_run_prints_report(self, capsys, restore_root_logger):
        exit_code = run_triangulation.main(["checkout flow", "--focus", "mobile", "--silent"])

        outcome = json.loads(capsys.readouterr().out)
        assert exit_code == 0
        assert outcome["success"] is True
        report = outcome["report"]
        assert report["topic"] == "checkout flow"
        assert report["focus"] == "mobile"
        assert report["external"]["status"] == "success"
        assert report["product"]["status"] == "success"
        assert outcome["outputs"] is None
