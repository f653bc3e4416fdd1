"""Background worker dispatching named tasks to the model."""
from __future__ import annotations

from typing import Any, Callable, Dict, List, Mapping, Optional, Protocol

from config import LLM_MODEL
from jobs.models import WorkResult
from observability.logger import get_logger
from services.llm_client import LLMClientError

LOGGER = get_logger("agent_lab.agents.background")


class TextClient(Protocol):
    def ask(self, prompt: str, *, model: Optional[str] = None, max_tokens: int = ...) -> str:
        ...


class TaskPayloadError(ValueError):
    """A task payload is missing a required field."""


def _require_text(payload: Mapping[str, Any], key: str) -> str:
    value = payload.get(key)
    if not isinstance(value, str) or not value.strip():
        raise TaskPayloadError(f"Payload field '{key}' must be a non-empty string")
    return value


class BackgroundAgent:
    """Worker capability for :class:`jobs.JobScheduler`.

    ``perform`` never raises for expected failures: unknown task types, bad
    payloads and model errors come back as ``WorkResult.failure``.
    """

    def __init__(self, client: TextClient, *, model: str = LLM_MODEL) -> None:
        self._client = client
        self._model = model
        self._handlers: Dict[str, Callable[[Mapping[str, Any]], Any]] = {
            "analyze_text": lambda payload: self.analyze_text(_require_text(payload, "text")),
            "generate_content": lambda payload: self.generate_content(
                _require_text(payload, "prompt"), payload.get("context")
            ),
            "summarize": lambda payload: self.summarize(_require_text(payload, "text")),
            "batch_process": lambda payload: self.batch_process(payload.get("items")),
        }

    @property
    def task_types(self) -> List[str]:
        return sorted(self._handlers)

    def perform(self, task_type: str, payload: Mapping[str, Any]) -> WorkResult:
        handler = self._handlers.get(task_type)
        if handler is None:
            LOGGER.warning("unknown_task_type", extra={"task_type": task_type})
            return WorkResult.failure(f"Unknown task type: {task_type}")
        try:
            result = handler(payload or {})
        except (TaskPayloadError, LLMClientError) as exc:
            LOGGER.warning("task_failed", extra={"task_type": task_type, "error": str(exc)})
            return WorkResult.failure(str(exc))
        self._log_result(task_type, result)
        return WorkResult.success(result)

    def analyze_text(self, text: str) -> str:
        LOGGER.info("analyze_text", extra={"chars": len(text)})
        return self._client.ask(
            f"Analyze the following text and provide insights:\n\n{text}",
            model=self._model,
            max_tokens=800,
        )

    def generate_content(self, prompt: str, context: Any = None) -> str:
        LOGGER.info("generate_content", extra={"prompt_preview": prompt[:50]})
        full_prompt = prompt if not context else f"Context: {context}\n\nTask: {prompt}"
        return self._client.ask(full_prompt, model=self._model, max_tokens=1000)

    def summarize(self, text: str) -> str:
        LOGGER.info("summarize", extra={"chars": len(text)})
        return self._client.ask(
            f"Provide a concise summary of:\n\n{text}",
            model=self._model,
            max_tokens=500,
        )

    def batch_process(self, items: Any) -> List[str]:
        if not isinstance(items, list) or not all(isinstance(item, str) for item in items):
            raise TaskPayloadError("Payload field 'items' must be a list of strings")
        results = []
        for index, item in enumerate(items, start=1):
            LOGGER.info("batch_item", extra={"index": index, "total": len(items)})
            results.append(self.analyze_text(item))
        return results

    def _log_result(self, task_type: str, result: Any) -> None:
        size = sum(len(part) for part in result) if isinstance(result, list) else len(str(result))
        LOGGER.info("task_completed", extra={"task_type": task_type, "result_chars": size})


__all__ = ["BackgroundAgent", "TaskPayloadError", "TextClient"]
