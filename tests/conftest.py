from __future__ import annotations

import sys
import threading
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Callable, List, Optional

import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from services.llm_client import LLMClientError  # noqa: E402


class FakeLLMClient:
    """Stand-in for AnthropicClient answering from a callable."""

    def __init__(self, responder: Optional[Callable[[str], str]] = None) -> None:
        self._responder = responder or (lambda prompt: f"reply to: {prompt}")
        self.calls: List[dict] = []
        self._lock = threading.Lock()

    def ask(self, prompt: str, *, model: Optional[str] = None, max_tokens: int = 1024) -> str:
        with self._lock:
            self.calls.append({"prompt": prompt, "model": model, "max_tokens": max_tokens})
        if "FAIL" in prompt:
            raise LLMClientError("Model API error: HTTP 500", status_code=500)
        return self._responder(prompt)


class FakeClock:
    def __init__(self, start: Optional[datetime] = None) -> None:
        self.now = start or datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


@pytest.fixture
def fake_client() -> FakeLLMClient:
    return FakeLLMClient()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def client_factory() -> Callable[..., FakeLLMClient]:
    return FakeLLMClient
