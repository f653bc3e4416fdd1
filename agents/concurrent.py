"""Thread-pool agent running model calls as futures."""
from __future__ import annotations

import itertools
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Dict, Iterable, List, Mapping, Optional

from config import CONCURRENT_POOL_SIZE, LLM_MODEL
from observability.logger import get_logger

from .background import TextClient

LOGGER = get_logger("agent_lab.agents.concurrent")


class _AtomicCounter:
    def __init__(self) -> None:
        self._values = itertools.count(1)
        self._lock = threading.Lock()

    def increment(self) -> int:
        with self._lock:
            return next(self._values)


class ConcurrentAgent:
    """Fans prompts out over a fixed thread pool and gathers the replies."""

    def __init__(self, client: TextClient, *, pool_size: int = CONCURRENT_POOL_SIZE, model: str = LLM_MODEL) -> None:
        self._client = client
        self._model = model
        self._executor = ThreadPoolExecutor(max_workers=max(1, int(pool_size)), thread_name_prefix="concurrent-agent")

    def execute_parallel_tasks(self, tasks: Iterable[Mapping[str, Any]]) -> List[Dict[str, str]]:
        """Run every ``{name, prompt}`` task; results keep submission order."""

        task_list = list(tasks)
        LOGGER.info("parallel_tasks_started", extra={"count": len(task_list)})
        futures = [
            self._executor.submit(self._ask, str(task["prompt"]), str(task.get("name") or f"Task {index}"))
            for index, task in enumerate(task_list, start=1)
        ]
        results = [future.result() for future in futures]
        LOGGER.info("parallel_tasks_completed", extra={"count": len(results)})
        return results

    def execute_with_promise(self, prompt: str, *, timeout: Optional[float] = None) -> str:
        future: "Future[Dict[str, str]]" = self._executor.submit(self._ask, prompt, "Promise Task")
        result = future.result(timeout=timeout)["response"]
        LOGGER.info("promise_fulfilled", extra={"response_chars": len(result)})
        return result

    def execute_with_tracking(self, prompts: Iterable[str]) -> List[Dict[str, str]]:
        prompt_list = list(prompts)
        counter = _AtomicCounter()
        total = len(prompt_list)

        def _tracked(prompt: str) -> Dict[str, str]:
            return self._ask(prompt, f"Task {counter.increment()}/{total}")

        futures = [self._executor.submit(_tracked, prompt) for prompt in prompt_list]
        return [future.result() for future in futures]

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)

    def __enter__(self) -> "ConcurrentAgent":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.shutdown()

    def _ask(self, prompt: str, task_name: str) -> Dict[str, str]:
        LOGGER.info("task_sending", extra={"task": task_name, "prompt_preview": prompt[:50]})
        response = self._client.ask(prompt, model=self._model, max_tokens=500)
        LOGGER.info("task_received", extra={"task": task_name, "response_chars": len(response)})
        return {"task": task_name, "prompt": prompt, "response": response}


__all__ = ["ConcurrentAgent"]
