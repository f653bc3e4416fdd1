from __future__ import annotations

import threading
import time

import pytest

from agents.concurrent import ConcurrentAgent
from services.llm_client import LLMClientError


def test_parallel_tasks_keep_submission_order(client_factory):
    def _slow_first(prompt):
        if prompt == "first":
            time.sleep(0.05)
        return prompt.upper()

    with ConcurrentAgent(client_factory(_slow_first), pool_size=3) as agent:
        results = agent.execute_parallel_tasks(
            [
                {"name": "A", "prompt": "first"},
                {"name": "B", "prompt": "second"},
                {"prompt": "third"},
            ]
        )

    assert [result["response"] for result in results] == ["FIRST", "SECOND", "THIRD"]
    assert [result["task"] for result in results] == ["A", "B", "Task 3"]
    assert results[0]["prompt"] == "first"


def test_parallel_tasks_run_concurrently(client_factory):
    barrier = threading.Barrier(3, timeout=2)

    def _wait_for_peers(prompt):
        barrier.wait()
        return prompt

    with ConcurrentAgent(client_factory(_wait_for_peers), pool_size=3) as agent:
        results = agent.execute_parallel_tasks([{"name": str(n), "prompt": str(n)} for n in range(3)])

    assert len(results) == 3


def test_execute_with_promise_returns_text(fake_client):
    with ConcurrentAgent(fake_client) as agent:
        assert agent.execute_with_promise("ping") == "reply to: ping"


def test_execute_with_tracking_labels_every_task(fake_client):
    with ConcurrentAgent(fake_client, pool_size=2) as agent:
        results = agent.execute_with_tracking(["a", "b", "c", "d"])

    assert [result["prompt"] for result in results] == ["a", "b", "c", "d"]
    assert sorted(result["task"] for result in results) == ["Task 1/4", "Task 2/4", "Task 3/4", "Task 4/4"]


def test_model_errors_propagate_from_futures(fake_client):
    with ConcurrentAgent(fake_client) as agent:
        with pytest.raises(LLMClientError):
            agent.execute_with_promise("FAIL now")
