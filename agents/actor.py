"""Actor-style agents: one mailbox queue shared by a fixed pool of actors."""
from __future__ import annotations

import queue
import threading
from concurrent.futures import Future
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from config import ACTOR_POOL_SIZE, LLM_MODEL
from jobs.models import utcnow
from observability.logger import get_logger

from .background import TextClient

LOGGER = get_logger("agent_lab.agents.actor")


class ActorAgent:
    """Model-backed actor that remembers every exchange it handled."""

    def __init__(self, client: TextClient, *, model: str = LLM_MODEL) -> None:
        self._client = client
        self._model = model
        self._history: List[Dict[str, Any]] = []
        self._lock = threading.Lock()

    def process_message(self, message: str, context: Optional[Dict[str, Any]] = None) -> str:
        LOGGER.info("actor_processing", extra={"message_preview": message[:50]})
        response = self._client.ask(message, model=self._model, max_tokens=500)
        with self._lock:
            self._history.append(
                {
                    "timestamp": utcnow().isoformat(),
                    "message": message,
                    "response": response,
                    "context": dict(context or {}),
                }
            )
        return response

    def process_batch(self, messages: Iterable[str]) -> List[str]:
        return [self.process_message(message) for message in messages]

    def history(self) -> List[Dict[str, Any]]:
        with self._lock:
            return list(self._history)

    def clear_history(self) -> None:
        with self._lock:
            self._history.clear()
        LOGGER.info("actor_history_cleared")


@dataclass
class _Envelope:
    message: str
    context: Dict[str, Any] = field(default_factory=dict)
    future: "Future[str]" = field(default_factory=Future)


_SHUTDOWN = object()


class AgentSupervisor:
    """Fixed pool of actors pulling messages from one shared queue.

    Each worker thread owns exactly one :class:`ActorAgent`, so an actor's
    history is only ever touched by its own thread and by readers.
    """

    def __init__(self, client: TextClient, *, pool_size: int = ACTOR_POOL_SIZE, model: str = LLM_MODEL) -> None:
        size = max(1, int(pool_size))
        self._agents = [ActorAgent(client, model=model) for _ in range(size)]
        self._mailbox: "queue.Queue[Any]" = queue.Queue()
        self._threads = [
            threading.Thread(target=self._worker, args=(index,), name=f"actor-{index}", daemon=True)
            for index in range(size)
        ]
        self._shutdown = False
        for thread in self._threads:
            thread.start()
        LOGGER.info("supervisor_started", extra={"pool_size": size})

    @property
    def agents(self) -> List[ActorAgent]:
        return list(self._agents)

    def submit(self, message: str, context: Optional[Dict[str, Any]] = None) -> "Future[str]":
        if self._shutdown:
            raise RuntimeError("Supervisor is shut down")
        envelope = _Envelope(message=message, context=dict(context or {}))
        self._mailbox.put(envelope)
        return envelope.future

    def distribute_work(self, tasks: Iterable[str]) -> List[str]:
        """Send every message to the pool and return replies in submission order."""

        futures = [self.submit(task, {"task_index": index}) for index, task in enumerate(tasks)]
        LOGGER.info("supervisor_distributing", extra={"count": len(futures)})
        return [future.result() for future in futures]

    def status(self) -> Dict[str, Any]:
        return {
            "pool_size": len(self._agents),
            "agents": [{"id": index, "history_count": len(agent.history())} for index, agent in enumerate(self._agents)],
        }

    def shutdown(self, timeout: float = 1.0) -> None:
        if self._shutdown:
            return
        self._shutdown = True
        for _ in self._threads:
            self._mailbox.put(_SHUTDOWN)
        for thread in self._threads:
            thread.join(timeout=timeout)
        LOGGER.info("supervisor_stopped")

    def __enter__(self) -> "AgentSupervisor":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.shutdown()

    def _worker(self, index: int) -> None:
        agent = self._agents[index]
        while True:
            envelope = self._mailbox.get()
            if envelope is _SHUTDOWN:
                break
            if not envelope.future.set_running_or_notify_cancel():
                continue
            context = dict(envelope.context, worker=index)
            try:
                envelope.future.set_result(agent.process_message(envelope.message, context))
            except Exception as exc:  # noqa: BLE001
                LOGGER.warning("actor_failed", extra={"worker": index, "error": str(exc)})
                envelope.future.set_exception(exc)


__all__ = ["ActorAgent", "AgentSupervisor"]
