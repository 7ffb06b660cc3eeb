"""
Tests for Trace (scopes, timing, handlers) and the structured logging layer.
"""

from __future__ import annotations

import json
import logging

import pytest

from converge.config import EngineConfig
from converge.observability import (
    Trace,
    TraceEvent,
    configure_logging,
    default_trace,
    get_trace_context,
    log_trace_event,
    set_trace_context,
)
from converge.observability.logging import (
    HumanReadableFormatter,
    StructuredFormatter,
    strip_ansi_codes,
)

# ---------------------------------------------------------------------------
# Trace
# ---------------------------------------------------------------------------


class TestTrace:
    @pytest.mark.asyncio
    async def test_push_nests_scopes_and_returns_result(self, trace, events):
        async def inner(t: Trace):
            t.log("inside")
            return 42

        async def outer(t: Trace):
            return await t.push("inner", inner)

        result = await trace.push("outer", outer)

        assert result == 42
        assert events[0].scopes == ["outer", "inner"]
        assert trace.scopes == ()

    @pytest.mark.asyncio
    async def test_child_traces_share_id_and_handlers(self, trace):
        async def capture(t: Trace):
            return t

        child = await trace.push("scope", capture)

        assert child.id == trace.id
        assert child.handlers == trace.handlers

    @pytest.mark.asyncio
    async def test_measure_brackets_the_action(self, trace, events):
        async def work(t: Trace):
            t.log("working")
            return "done"

        result = await trace.measure(work)

        assert result == "done"
        assert [e.message for e in events][:2] == ["start", "working"]
        assert events[-1].message.startswith("stop - ")
        elapsed = float(events[-1].message.removeprefix("stop - ").removesuffix("secs"))
        assert elapsed >= 0

    def test_log_reaches_every_handler(self):
        first: list[TraceEvent] = []
        second: list[TraceEvent] = []
        trace = Trace(handlers=[first.append, second.append])

        trace.log("hello")

        assert [e.message for e in first] == ["hello"]
        assert [e.message for e in second] == ["hello"]
        assert first[0].trace_id == trace.id
        assert first[0].timestamp.tzinfo is not None

    def test_log_state(self, trace, events):
        trace.log_state(False)

        assert events[0].message == "In desired state: False"

    def test_without_handlers_log_is_silent(self):
        Trace().log("nobody listens")

    def test_explicit_id_is_kept(self):
        assert Trace(id="abc").id == "abc"


class TestTraceHandlers:
    def test_log_trace_event_forwards_to_logger(self, caplog):
        event = TraceEvent(trace_id="t-1", scopes=["a", "b"], message="hello")

        with caplog.at_level(logging.INFO, logger="converge.trace"):
            log_trace_event(event)

        record = caplog.records[-1]
        assert record.getMessage() == "hello"
        assert record.scopes == ["a", "b"]
        assert record.trace_id == "t-1"
        assert record.event == "trace"

    def test_default_trace_logs_by_default(self):
        trace = default_trace(EngineConfig(log_trace_events=True))

        assert trace.handlers == (log_trace_event,)

    def test_default_trace_can_disable_logging(self):
        trace = default_trace(EngineConfig(log_trace_events=False))

        assert trace.handlers == ()

    def test_default_traces_are_distinct_runs(self):
        config = EngineConfig(log_trace_events=False)

        assert default_trace(config).id != default_trace(config).id


# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------


def make_record(message: str = "hello", **extra) -> logging.LogRecord:
    record = logging.LogRecord("converge.test", logging.INFO, __file__, 1, message, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield root
    root.handlers[:] = handlers
    root.setLevel(level)


class TestStructuredFormatter:
    def test_includes_trace_context_and_extras(self):
        set_trace_context(trace_id="abc123", run="nightly")
        record = make_record(scopes=["Config", "test"], node="Config", event="trace")

        entry = json.loads(StructuredFormatter().format(record))

        assert entry["message"] == "hello"
        assert entry["level"] == "info"
        assert entry["trace_id"] == "abc123"
        assert entry["run"] == "nightly"
        assert entry["scopes"] == ["Config", "test"]
        assert entry["node"] == "Config"
        assert entry["event"] == "trace"

    def test_record_trace_id_wins_over_context(self):
        set_trace_context(trace_id="ambient")

        entry = json.loads(StructuredFormatter().format(make_record(trace_id="explicit")))

        assert entry["trace_id"] == "explicit"

    def test_strips_ansi_codes(self):
        entry = json.loads(StructuredFormatter().format(make_record("\033[31mred\033[0m")))

        assert entry["message"] == "red"
        assert strip_ansi_codes("\x1b[1;32mok\x1b[0m") == "ok"


class TestHumanReadableFormatter:
    def test_renders_trace_prefix_and_scope_path(self):
        set_trace_context(trace_id="0123456789abcdef")
        record = make_record("start", scopes=["Config dir exists", "test"])

        line = HumanReadableFormatter().format(record)

        assert "[trace:01234567]" in line
        assert "Config dir exists > test: start" in line
        assert "INFO" in line

    def test_plain_message_without_context(self):
        line = HumanReadableFormatter().format(make_record("plain"))

        assert line.endswith(" plain")


class TestConfigureLogging:
    def test_json_format(self, restore_root_logger):
        configure_logging(level="DEBUG", format="json")

        assert restore_root_logger.level == logging.DEBUG
        assert isinstance(restore_root_logger.handlers[0].formatter, StructuredFormatter)

    def test_auto_uses_json_in_production(self, restore_root_logger, monkeypatch):
        monkeypatch.delenv("LOG_FORMAT", raising=False)
        monkeypatch.setenv("ENV", "production")

        configure_logging(format="auto")

        assert isinstance(restore_root_logger.handlers[0].formatter, StructuredFormatter)

    def test_auto_defaults_to_human(self, restore_root_logger, monkeypatch):
        monkeypatch.delenv("LOG_FORMAT", raising=False)
        monkeypatch.delenv("ENV", raising=False)

        configure_logging(format="auto")

        assert isinstance(restore_root_logger.handlers[0].formatter, HumanReadableFormatter)


class TestTraceContext:
    def test_set_merges_and_get_returns_copy(self):
        set_trace_context(trace_id="a")
        set_trace_context(run="b")

        context = get_trace_context()
        context["mutated"] = True

        assert get_trace_context() == {"trace_id": "a", "run": "b"}
