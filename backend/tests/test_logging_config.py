"""Tests for log formatting and bound context."""

import json
import logging

from etiquetador.logging_config import (
    ContextFilter,
    HumanFormatter,
    JSONFormatter,
    bind_context,
    current_context,
)


def _record(message: str = "[BATCH] Export pdf", **extra) -> logging.LogRecord:
    record = logging.LogRecord("etiquetador.api", logging.INFO, __file__, 1, message, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    ContextFilter().filter(record)
    return record


class TestBindContext:
    def test_empty_outside_block(self):
        assert current_context() == {}

    def test_nested_blocks_extend_and_restore(self):
        with bind_context(request_id="r1"):
            with bind_context(export="pdf"):
                assert current_context() == {"request_id": "r1", "export": "pdf"}
            assert current_context() == {"request_id": "r1"}
        assert current_context() == {}

    def test_restored_after_exception(self):
        try:
            with bind_context(request_id="r2"):
                raise RuntimeError("boom")
        except RuntimeError:
            pass

        assert current_context() == {}


class TestJSONFormatter:
    def test_context_and_extra(self):
        with bind_context(request_id="r1", batch_rows=3):
            record = _record(kind="pdf")

        data = json.loads(JSONFormatter().format(record))

        assert data["message"] == "[BATCH] Export pdf"
        assert data["logger"] == "etiquetador.api"
        assert data["context"] == {"request_id": "r1", "batch_rows": 3}
        assert data["extra"] == {"kind": "pdf"}

    def test_no_context_key_when_unbound(self):
        data = json.loads(JSONFormatter().format(_record()))

        assert "context" not in data
        assert "extra" not in data


class TestHumanFormatter:
    def test_context_suffix(self):
        with bind_context(request_id="r1"):
            record = _record()

        assert HumanFormatter().format(record).endswith("[BATCH] Export pdf | request_id=r1")
