from __future__ import annotations

from agents.background import BackgroundAgent
from jobs import JobScheduler, JobStatus


def test_perform_dispatches_known_task_types(fake_client):
    agent = BackgroundAgent(fake_client, model="test-model")

    result = agent.perform("summarize", {"text": "Long article body"})

    assert result.ok is True
    assert result.value.startswith("reply to: Provide a concise summary of:")
    assert fake_client.calls[0]["model"] == "test-model"
    assert fake_client.calls[0]["max_tokens"] == 500


def test_generate_content_includes_context_only_when_present(fake_client):
    agent = BackgroundAgent(fake_client)

    agent.perform("generate_content", {"prompt": "Write a tagline", "context": ""})
    agent.perform("generate_content", {"prompt": "Write a tagline", "context": "coffee shop"})

    assert fake_client.calls[0]["prompt"] == "Write a tagline"
    assert fake_client.calls[1]["prompt"] == "Context: coffee shop\n\nTask: Write a tagline"


def test_batch_process_analyzes_each_item(fake_client):
    agent = BackgroundAgent(fake_client)

    result = agent.perform("batch_process", {"items": ["one", "two", "three"]})

    assert result.ok is True
    assert len(result.value) == 3
    assert all(call["prompt"].startswith("Analyze the following text") for call in fake_client.calls)


def test_unknown_task_type_is_a_failure_result(fake_client):
    result = BackgroundAgent(fake_client).perform("translate", {})

    assert result.ok is False
    assert result.error == "Unknown task type: translate"
    assert fake_client.calls == []


def test_missing_payload_field_is_a_failure_result(fake_client):
    result = BackgroundAgent(fake_client).perform("analyze_text", {})

    assert result.ok is False
    assert "'text'" in result.error


def test_model_error_is_a_failure_result(fake_client):
    result = BackgroundAgent(fake_client).perform("analyze_text", {"text": "please FAIL"})

    assert result.ok is False
    assert "HTTP 500" in result.error


def test_agent_drives_scheduler_end_to_end(fake_client, clock):
    scheduler = JobScheduler(BackgroundAgent(fake_client), clock=clock)
    ok = scheduler.schedule_job("summarize", {"text": "abc"})
    bad = scheduler.schedule_job("bad", {})
    later = scheduler.schedule_job("analyze_text", {"text": "xyz"}, delay_seconds=5)

    scheduler.execute_pending_jobs()

    assert scheduler.job_status(ok).status == JobStatus.COMPLETED
    assert scheduler.job_status(bad).status == JobStatus.FAILED
    assert scheduler.job_status(bad).error == "Unknown task type: bad"
    assert scheduler.job_status(later).status == JobStatus.PENDING

    clock.advance(5)
    scheduler.execute_pending_jobs()
    assert scheduler.job_status(later).status == JobStatus.COMPLETED
