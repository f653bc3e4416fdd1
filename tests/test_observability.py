import json
import logging

import pytest

from observability.logger import (
    JsonFormatter,
    bind_trace_id,
    clear_trace_id,
    current_trace_id,
    log_job_transition,
)
from observability.metrics import MetricsRegistry


def _record(message="job_transition", **extra):
    record = logging.LogRecord("agent_lab.test", logging.INFO, __file__, 1, message, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_formatter_emits_extra_fields_and_trace_id():
    bind_trace_id("abc123")
    try:
        line = JsonFormatter().format(_record(job_id="job_1", job_status="completed"))
    finally:
        clear_trace_id()

    payload = json.loads(line)
    assert payload["logger"] == "agent_lab.test"
    assert payload["level"] == "INFO"
    assert payload["message"] == "job_transition"
    assert payload["trace_id"] == "abc123"
    assert payload["job_id"] == "job_1"
    assert payload["job_status"] == "completed"
    assert "lineno" not in payload
    assert current_trace_id() is None


def test_formatter_stringifies_unknown_values():
    line = JsonFormatter().format(_record(when=object()))

    assert json.loads(line)["when"].startswith("<object object")


def test_log_job_transition_uses_structured_extra(caplog):
    logger = logging.getLogger("agent_lab.test.transitions")

    with caplog.at_level(logging.INFO, logger="agent_lab.test.transitions"):
        log_job_transition(logger, job_id="job_9", task_type="summarize", status="failed", error="boom")

    record = caplog.records[-1]
    assert record.getMessage() == "job_transition"
    assert record.job_id == "job_9"
    assert record.job_status == "failed"
    assert record.details == {"error": "boom"}


def test_registry_counters_and_gauges():
    registry = MetricsRegistry()

    registry.counter("jobs.done").inc()
    registry.counter("jobs.done").inc(2)
    registry.gauge("jobs.pending").set(4)
    registry.gauge("jobs.pending").add(-1)

    assert registry.snapshot() == {"jobs.done": 3.0, "jobs.pending": 3.0}

    registry.reset()
    assert registry.snapshot() == {"jobs.done": 0.0, "jobs.pending": 0.0}


def test_registry_rejects_kind_mismatch_and_negative_increments():
    registry = MetricsRegistry()
    registry.counter("requests")

    with pytest.raises(TypeError):
        registry.gauge("requests")
    with pytest.raises(ValueError):
        registry.counter("requests").inc(-1)
