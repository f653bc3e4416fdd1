from __future__ import annotations

import pytest

from jobs import WorkResult
from server import create_app


class FlakyWorker:
    def perform(self, task_type, payload):
        if task_type == "bad":
            raise RuntimeError("cannot do that")
        return WorkResult.success({"echo": payload})


@pytest.fixture()
def app(tmp_path, fake_client):
    app = create_app(client=fake_client, log_dir=tmp_path / "logs", worker=FlakyWorker(), autostart_scheduler=False)
    app.config.update(TESTING=True)
    yield app
    app.extensions["agent_lab"].shutdown()


@pytest.fixture()
def client(app):
    return app.test_client()


def test_index_serves_chat_page(client):
    response = client.get("/")
    assert response.status_code == 200
    assert b"Agent Lab" in response.data


@pytest.mark.parametrize("agent_type", ["concurrent", "background", "actor"])
def test_send_message_logs_conversation(client, fake_client, agent_type):
    response = client.post("/api/send_message", json={"message": "Hi there", "agent_type": agent_type})

    assert response.status_code == 200
    payload = response.get_json()
    assert payload["success"] is True
    assert payload["response"].startswith("reply to:")
    assert "Hi there" in fake_client.calls[0]["prompt"]

    messages = client.get("/api/messages").get_json()
    assert [entry["type"] for entry in messages] == ["user_message", "ai_response"]
    assert messages[0]["metadata"] == {"agent": agent_type}
    assert messages[1]["sender"] == f"{agent_type} Agent"


def test_send_message_model_failure_is_logged(client):
    response = client.post("/api/send_message", json={"message": "FAIL hard", "agent_type": "concurrent"})

    assert response.status_code == 502
    payload = response.get_json()
    assert payload["success"] is False
    assert "HTTP 500" in payload["error"]["message"]
    assert payload["error"]["code"] == 502
    assert payload["error"]["trace_id"] == response.headers["X-Trace-Id"]
    messages = client.get("/api/messages").get_json()
    assert messages[-1]["type"] == "error"
    assert messages[-1]["metadata"] == {"error_class": "LLMClientError"}


def test_send_message_validation_errors(client):
    missing = client.post("/api/send_message", json={"agent_type": "concurrent"})
    unknown = client.post("/api/send_message", json={"message": "x", "agent_type": "quantum"})
    malformed = client.post("/api/send_message", data="{not json", content_type="application/json")

    assert missing.status_code == 400
    assert unknown.status_code == 400
    assert "quantum" in unknown.get_json()["error"]["message"]
    assert malformed.status_code == 400


def test_messages_limit_and_clear(client):
    for index in range(3):
        client.post("/api/send_message", json={"message": f"m{index}"})

    limited = client.get("/api/messages?limit=2").get_json()
    assert len(limited) == 2

    cleared = client.post("/api/clear_messages")
    assert cleared.get_json()["success"] is True
    assert client.get("/api/messages").get_json() == []
    assert client.get("/api/logs").get_json() == []


def test_log_file_endpoints(client):
    client.post("/api/send_message", json={"message": "hello"})

    logs = client.get("/api/logs").get_json()
    assert len(logs) == 1
    assert logs[0]["lines"] == 2

    entries = client.get(f"/api/log/{logs[0]['filename']}").get_json()
    assert [entry["message"] for entry in entries][0] == "hello"

    missing = client.get("/api/log/does-not-exist.log")
    assert missing.status_code == 404
    assert missing.get_json()["error"]["message"] == "File not found"


def test_job_lifecycle_over_http(client):
    good = client.post("/api/jobs", json={"task_type": "summarize", "payload": {"text": "abc"}})
    bad = client.post("/api/jobs", json={"task_type": "bad"})
    later = client.post("/api/jobs", json={"task_type": "summarize", "delay_seconds": 3600})

    assert good.status_code == 202
    good_id = good.get_json()["job_id"]
    assert good.get_json()["job"]["status"] == "pending"

    processed = client.post("/api/jobs/run").get_json()["processed"]
    assert {job["id"] for job in processed} == {good_id, bad.get_json()["job_id"]}

    good_job = client.get(f"/api/jobs/{good_id}").get_json()
    assert good_job["status"] == "completed"
    assert good_job["result"] == {"echo": {"text": "abc"}}

    bad_job = client.get(f"/api/jobs/{bad.get_json()['job_id']}").get_json()
    assert bad_job["status"] == "failed"
    assert bad_job["error"] == "cannot do that"

    listing = client.get("/api/jobs").get_json()
    assert [job["id"] for job in listing] == [good_id, bad.get_json()["job_id"], later.get_json()["job_id"]]
    assert listing[2]["status"] == "pending"


def test_job_request_is_validated(client):
    missing_type = client.post("/api/jobs", json={"payload": {}})
    negative_delay = client.post("/api/jobs", json={"task_type": "x", "delay_seconds": -1})

    assert missing_type.status_code == 400
    assert "task_type" in missing_type.get_json()["error"]["message"]
    assert negative_delay.status_code == 400


def test_unknown_job_is_404(client):
    response = client.get("/api/jobs/job_missing")
    assert response.status_code == 404
    assert response.get_json()["error"]["message"] == "Job not found"


def test_clear_jobs(client):
    client.post("/api/jobs", json={"task_type": "summarize"})

    assert client.delete("/api/jobs").get_json() == {"success": True}
    assert client.get("/api/jobs").get_json() == []


def test_health_reports_metrics(client):
    response = client.get("/health", headers={"X-Trace-Id": "trace-123"})

    assert response.status_code == 200
    payload = response.get_json()
    assert payload["status"] == "ok"
    assert payload["scheduler_running"] is False
    assert "jobs.scheduled_total" in payload["metrics"]
    assert response.headers["X-Trace-Id"] == "trace-123"


def test_health_counts_pending_jobs_per_app(client, tmp_path, fake_client):
    other = create_app(client=fake_client, log_dir=tmp_path / "other", worker=FlakyWorker(), autostart_scheduler=False)
    try:
        other_client = other.test_client()
        for _ in range(3):
            other_client.post("/api/jobs", json={"task_type": "summarize", "delay_seconds": 3600})
        client.post("/api/jobs", json={"task_type": "summarize", "delay_seconds": 3600})

        assert client.get("/health").get_json()["pending_jobs"] == 1
        assert other_client.get("/health").get_json()["pending_jobs"] == 3
    finally:
        other.extensions["agent_lab"].shutdown()
