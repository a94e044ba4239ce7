"""
Logging Tests
-------------
Tests for request_id propagation and the JSON file format.
"""

import json
import logging
import pytest
from pathlib import Path
import sys

sys.path.insert(0, str(Path(__file__).parent.parent))

from elevenlabs_cli.infra.logging import (
    JSONFormatter, RequestContext, RequestIdFilter, configure_logging, get_logger, get_request_id,
)


def _record(message="hello"):
    return logging.LogRecord("elevenlabs.test", logging.INFO, __file__, 1, message, None, None)


class TestRequestContext:
    """request_id scoping."""

    def test_scoped_and_restored(self):
        assert get_request_id() is None
        with RequestContext() as request_id:
            assert request_id.startswith("req_")
            assert get_request_id() == request_id
            with RequestContext("req_inner"):
                assert get_request_id() == "req_inner"
            assert get_request_id() == request_id
        assert get_request_id() is None

    def test_filter_stamps_records(self):
        record = _record()
        with RequestContext("req_abc"):
            RequestIdFilter().filter(record)
        assert record.request_id == "req_abc"

    def test_filter_outside_context(self):
        record = _record()
        RequestIdFilter().filter(record)
        assert record.request_id == "-"


class TestFormat:
    """File output is one JSON object per line."""

    def test_json_fields(self):
        record = _record("Dispatched list_voices")
        record.request_id = "req_1"
        record.operation = "list_voices"

        entry = json.loads(JSONFormatter().format(record))

        assert entry["message"] == "Dispatched list_voices"
        assert entry["request_id"] == "req_1"
        assert entry["operation"] == "list_voices"
        assert entry["level"] == "INFO"

    def test_log_file_written(self, tmp_path):
        log_file = tmp_path / "logs" / "elevenlabs.jsonl"
        configure_logging("ERROR", log_file=str(log_file), console=False)

        with RequestContext("req_file"):
            get_logger("test").debug("kept in file")

        for handler in logging.getLogger("elevenlabs").handlers:
            handler.flush()
        entry = json.loads(log_file.read_text().splitlines()[-1])
        assert entry["message"] == "kept in file"
        assert entry["request_id"] == "req_file"

    def test_unknown_level(self):
        with pytest.raises(ValueError):
            configure_logging("LOUD")

    def test_get_logger_namespace(self):
        assert get_logger("server").name == "elevenlabs.server"
        assert get_logger("elevenlabs.api").name == "elevenlabs.api"

    def test_server_logger_uses_namespace(self, make_dispatcher):
        from elevenlabs_cli.infra.server import ToolServer
        assert ToolServer(make_dispatcher())._logger.name == "elevenlabs.server"
