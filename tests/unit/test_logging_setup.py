"""
Unit tests for the JSON log formatter and root logger setup
"""

import json
import logging
import os
import sys

import pytest

# Add project root to path
project_root = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
sys.path.append(project_root)

from common.logging_setup import JsonFormatter, get_logger, setup_logging


def _record(msg="Invalid tile length", extra=None, exc_info=None):
    record = logging.LogRecord("bundle.compact_v1", logging.WARNING, __file__, 1, msg, None, exc_info)
    if extra is not None:
        record.extra = extra
    return record


class TestJsonFormatter:
    """Test cases for JsonFormatter"""

    def test_one_json_object_per_record(self):
        line = JsonFormatter().format(_record(extra={"tile": "4/2/2", "length": 1000001}))
        payload = json.loads(line)
        assert payload["lvl"] == "WARNING"
        assert payload["name"] == "bundle.compact_v1"
        assert payload["msg"] == "Invalid tile length"
        assert payload["extra"] == {"tile": "4/2/2", "length": 1000001}
        assert isinstance(payload["t"], int)

    def test_non_json_context_is_stringified(self, tmp_path):
        payload = json.loads(JsonFormatter().format(_record(extra={"path": tmp_path})))
        assert payload["extra"]["path"] == str(tmp_path)

    def test_exception_included(self):
        try:
            raise OSError("disk gone")
        except OSError:
            payload = json.loads(JsonFormatter().format(_record(exc_info=sys.exc_info())))
        assert "disk gone" in payload["exc_info"]

    def test_no_context_no_extra_key(self):
        assert "extra" not in json.loads(JsonFormatter().format(_record()))


class TestSetupLogging:
    """Test cases for setup_logging"""

    @pytest.fixture
    def root_level(self):
        root = logging.getLogger()
        saved = root.level
        yield root
        root.setLevel(saved)

    def test_explicit_level_applied_after_setup(self, root_level):
        get_logger("tests")
        setup_logging("DEBUG")
        assert root_level.level == logging.DEBUG
        setup_logging("warning")
        assert root_level.level == logging.WARNING

    def test_implicit_call_keeps_level(self, root_level):
        setup_logging("ERROR")
        setup_logging()
        assert root_level.level == logging.ERROR

    def test_unknown_level_falls_back_to_info(self, root_level):
        setup_logging("chatty")
        assert root_level.level == logging.INFO
