"""Tests for structured logging and correlation context."""

import json
import logging

from reelindex.observability.logging import (
    ConsoleFormatter,
    JsonFormatter,
    LogContext,
    current_context,
)


def make_record(message: str = "Indexed entity") -> logging.LogRecord:
    return logging.LogRecord(
        name="reelindex.indexing.processor",
        level=logging.INFO,
        pathname=__file__,
        lineno=10,
        msg=message,
        args=(),
        exc_info=None,
    )


class TestLogContext:
    def test_binds_and_restores(self) -> None:
        """Values are visible inside the block and gone after it."""
        with LogContext(job_id="job-1", entity_id="abc"):
            assert current_context() == {"job_id": "job-1", "entity_id": "abc"}

        assert current_context() == {}

    def test_nested_contexts(self) -> None:
        with LogContext(event_id="evt-1"):
            with LogContext(job_id="job-1"):
                assert current_context() == {"event_id": "evt-1", "job_id": "job-1"}
            assert current_context() == {"event_id": "evt-1"}


class TestJsonFormatter:
    def test_includes_correlation_fields(self) -> None:
        with LogContext(job_id="job-1"):
            payload = json.loads(JsonFormatter().format(make_record()))

        assert payload["level"] == "INFO"
        assert payload["logger"] == "reelindex.indexing.processor"
        assert payload["message"] == "Indexed entity"
        assert payload["job_id"] == "job-1"
        assert "event_id" not in payload

    def test_extra_fields(self) -> None:
        record = make_record()
        record.outcome = "indexed"

        payload = json.loads(JsonFormatter().format(record))

        assert payload["outcome"] == "indexed"


class TestConsoleFormatter:
    def test_short_context_suffix(self) -> None:
        with LogContext(entity_id="5f0c1234-aaaa"):
            line = ConsoleFormatter(use_colors=False).format(make_record())

        assert line.endswith("| Indexed entity | entity=5f0c1234")
