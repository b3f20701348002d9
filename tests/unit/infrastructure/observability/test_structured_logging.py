"""Tests for logging configuration and log message templates."""

import json
import logging
import sys
from collections.abc import Iterator

import pytest

from chartpulse.infrastructure.observability.log_messages import LogMessages, LogTemplate
from chartpulse.infrastructure.observability.logging import (
    CompactExceptionFormatter,
    CorrelationIdFilter,
    CustomJsonFormatter,
    configure_logging,
    get_correlation_id,
    set_correlation_id,
)


def _record(message: str = "hello", exc_info=None) -> logging.LogRecord:  # type: ignore[no-untyped-def]
    return logging.LogRecord(
        name="chartpulse.test",
        level=logging.INFO,
        pathname=__file__,
        lineno=10,
        msg=message,
        args=(),
        exc_info=exc_info,
    )


class TestCorrelationId:
    """Test job-run correlation ids."""

    def test_set_and_get(self) -> None:
        assert set_correlation_id("import-new-artists-1a2b") == "import-new-artists-1a2b"
        assert get_correlation_id() == "import-new-artists-1a2b"

    def test_none_generates_uuid(self) -> None:
        result = set_correlation_id(None)
        assert len(result) == 36
        assert get_correlation_id() == result

    def test_empty_string_clears(self) -> None:
        set_correlation_id("run-1")
        set_correlation_id("")
        assert get_correlation_id() == ""

    def test_filter_attaches_id(self) -> None:
        set_correlation_id("run-42")
        record = _record()

        assert CorrelationIdFilter().filter(record) is True
        assert record.correlation_id == "run-42"  # type: ignore[attr-defined]
        set_correlation_id("")


class TestFormatters:
    def test_compact_formatter_appends_run_id(self) -> None:
        formatter = CompactExceptionFormatter(fmt="%(message)s")
        record = _record("job done")
        record.correlation_id = "run-7"  # type: ignore[attr-defined]

        assert formatter.format(record) == "job done │ run=run-7"

    def test_compact_formatter_shows_exception_chain(self) -> None:
        formatter = CompactExceptionFormatter(fmt="%(message)s")
        try:
            try:
                raise KeyError("artist")
            except KeyError as inner:
                raise RuntimeError("import failed") from inner
        except RuntimeError:
            record = _record("boom", exc_info=sys.exc_info())

        output = formatter.format(record)

        assert "╰─► KeyError" in output
        assert "╰─► RuntimeError: import failed" in output
        assert output.index("KeyError") < output.index("RuntimeError")

    def test_json_formatter_fields(self) -> None:
        formatter = CustomJsonFormatter("%(timestamp)s %(level)s %(name)s %(message)s")
        record = _record("metrics refreshed")
        record.correlation_id = "run-9"  # type: ignore[attr-defined]

        data = json.loads(formatter.format(record))

        assert data["message"] == "metrics refreshed"
        assert data["level"] == "INFO"
        assert data["logger"] == "chartpulse.test"
        assert data["correlation_id"] == "run-9"


class TestConfigureLogging:
    @pytest.fixture(autouse=True)
    def restore_root_logger(self) -> Iterator[None]:
        root = logging.getLogger()
        handlers, level = root.handlers[:], root.level
        yield
        root.handlers[:] = handlers
        root.setLevel(level)

    def test_replaces_root_handlers(self) -> None:
        configure_logging(log_level="DEBUG")
        configure_logging(log_level="WARNING")

        root = logging.getLogger()
        assert len(root.handlers) == 1
        assert root.level == logging.WARNING
        assert logging.getLogger("httpx").level == logging.WARNING

    def test_json_format_uses_json_formatter(self) -> None:
        configure_logging(log_level="INFO", json_format=True)
        assert isinstance(logging.getLogger().handlers[0].formatter, CustomJsonFormatter)


class TestLogMessages:
    def test_template_tree_layout(self) -> None:
        rendered = LogTemplate(
            icon="✅", title="Done", fields={"A": "1", "B": "2"}
        ).render()

        assert rendered.splitlines() == ["✅ Done", "├─ A: 1", "└─ B: 2"]

    def test_braces_in_values_are_kept(self) -> None:
        message = LogMessages.provider_failed(
            provider="Last.fm",
            operation="artist.getInfo",
            entity="Beach House",
            error="{'error': 6}",
        )

        assert "{'error': 6}" in message
        assert message.splitlines()[-1].startswith("└─ 💡")

    def test_job_failed_mentions_job_and_reason(self) -> None:
        message = LogMessages.job_failed("import-new-artists", "ConnectError: down")

        assert "import-new-artists Failed" in message
        assert "ConnectError: down" in message

    def test_import_summary_icon_depends_on_errors(self) -> None:
        clean = LogMessages.import_completed("tag:indie", processed=3, created=2)
        failing = LogMessages.import_completed("tag:indie", processed=3, errors=1)

        assert clean.startswith("✅")
        assert failing.startswith("⚠️")
        assert "Errors: 1" in failing

    def test_scheduler_started_lists_jobs(self) -> None:
        message = LogMessages.scheduler_started({"score-recalculation": "daily 03:00"})
        assert "score-recalculation: daily 03:00" in message
