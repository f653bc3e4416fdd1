"""Thin httpx client for the Anthropic Messages API."""
from __future__ import annotations

import os
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

import httpx

from config import (
    ANTHROPIC_API_KEY,
    ANTHROPIC_BASE_URL,
    ANTHROPIC_VERSION,
    LLM_DEFAULT_MAX_TOKENS,
    LLM_MODEL,
    LLM_TIMEOUT_S,
)
from observability.logger import get_logger

LOGGER = get_logger("agent_lab.services.llm_client")

MESSAGES_PATH = "/v1/messages"
_HTTP_CLIENT_LIMITS = httpx.Limits(max_connections=16, max_keepalive_connections=8)


class LLMClientError(RuntimeError):
    """Raised when the model API cannot produce a usable reply."""

    def __init__(self, message: str, *, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


@dataclass
class LLMResponse:
    text: str
    model: str
    stop_reason: Optional[str] = None
    usage: Dict[str, Any] = field(default_factory=dict)
    raw: Dict[str, Any] = field(default_factory=dict)


def _build_http_client(timeout_value: float) -> httpx.Client:
    timeout = httpx.Timeout(
        timeout=timeout_value,
        connect=min(20.0, timeout_value),
        read=timeout_value,
        write=timeout_value,
    )
    return httpx.Client(
        timeout=timeout,
        limits=_HTTP_CLIENT_LIMITS,
        headers={"Connection": "keep-alive"},
        http2=True,
    )


def _extract_error_message(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return response.text.strip()
    if isinstance(payload, dict):
        error = payload.get("error")
        if isinstance(error, dict):
            return str(error.get("message") or "").strip()
        return str(payload.get("message") or "").strip()
    return ""


def extract_text(data: Dict[str, Any]) -> str:
    """Join the text blocks of a Messages API reply."""

    content = data.get("content")
    if not isinstance(content, list):
        return ""
    parts: List[str] = []
    for block in content:
        if isinstance(block, dict) and block.get("type", "text") == "text":
            text = block.get("text")
            if isinstance(text, str):
                parts.append(text)
    return "".join(parts)


class AnthropicClient:
    """Synchronous Messages API client shared by all agents.

    The client is safe to share between threads: httpx connection pools are
    thread-safe and the client itself keeps no per-request state.
    """

    def __init__(
        self,
        *,
        api_key: Optional[str] = None,
        base_url: str = ANTHROPIC_BASE_URL,
        model: str = LLM_MODEL,
        timeout_s: float = LLM_TIMEOUT_S,
        http_client: Optional[httpx.Client] = None,
    ) -> None:
        self._api_key = (api_key or "").strip()
        self._base_url = base_url.rstrip("/")
        self._model = model
        self._timeout_s = float(timeout_s)
        self._http_client = http_client
        self._owns_http_client = http_client is None
        self._lock = threading.Lock()

    @property
    def model(self) -> str:
        return self._model

    def _resolve_api_key(self) -> str:
        key = self._api_key or str(os.getenv("ANTHROPIC_API_KEY", "")).strip() or ANTHROPIC_API_KEY
        if not key:
            raise LLMClientError("ANTHROPIC_API_KEY is not set")
        return key

    def _client(self) -> httpx.Client:
        with self._lock:
            if self._http_client is None:
                self._http_client = _build_http_client(self._timeout_s)
            return self._http_client

    def messages(
        self,
        messages: Sequence[Dict[str, Any]],
        *,
        model: Optional[str] = None,
        max_tokens: int = LLM_DEFAULT_MAX_TOKENS,
        system: Optional[str] = None,
    ) -> LLMResponse:
        model_name = model or self._model
        body: Dict[str, Any] = {
            "model": model_name,
            "max_tokens": max(1, int(max_tokens)),
            "messages": [dict(message) for message in messages],
        }
        if system:
            body["system"] = system
        headers = {
            "x-api-key": self._resolve_api_key(),
            "anthropic-version": ANTHROPIC_VERSION,
            "content-type": "application/json",
        }
        url = f"{self._base_url}{MESSAGES_PATH}"
        started_at = time.perf_counter()
        try:
            response = self._client().post(url, json=body, headers=headers)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            status_code = exc.response.status_code
            detail = _extract_error_message(exc.response)
            message = f"Model API error: HTTP {status_code}"
            if detail:
                message = f"{message} - {detail}"
            LOGGER.warning("llm_request_failed", extra={"model": model_name, "status_code": status_code, "error": detail})
            raise LLMClientError(message, status_code=status_code) from exc
        except httpx.TimeoutException as exc:
            LOGGER.warning("llm_request_timeout", extra={"model": model_name})
            raise LLMClientError("Timed out waiting for the model API") from exc
        except httpx.TransportError as exc:
            LOGGER.warning("llm_request_failed", extra={"model": model_name, "error": str(exc)})
            raise LLMClientError(f"Network failure talking to the model API: {exc}") from exc

        try:
            data = response.json()
        except ValueError as exc:
            raise LLMClientError("Model API returned invalid JSON") from exc
        if not isinstance(data, dict):
            raise LLMClientError("Model API returned an unexpected payload")

        text = extract_text(data)
        duration_ms = int((time.perf_counter() - started_at) * 1000)
        LOGGER.info(
            "llm_request_succeeded",
            extra={
                "model": model_name,
                "duration_ms": duration_ms,
                "max_tokens": body["max_tokens"],
                "response_chars": len(text),
            },
        )
        usage = data.get("usage")
        return LLMResponse(
            text=text,
            model=str(data.get("model") or model_name),
            stop_reason=data.get("stop_reason"),
            usage=usage if isinstance(usage, dict) else {},
            raw=data,
        )

    def ask(self, prompt: str, *, model: Optional[str] = None, max_tokens: int = LLM_DEFAULT_MAX_TOKENS) -> str:
        """Send a single user message and return the reply text."""

        response = self.messages([{"role": "user", "content": prompt}], model=model, max_tokens=max_tokens)
        return response.text

    def close(self) -> None:
        with self._lock:
            client = self._http_client
            if client is not None and self._owns_http_client:
                client.close()
                self._http_client = None

    def __enter__(self) -> "AnthropicClient":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


__all__ = ["AnthropicClient", "LLMClientError", "LLMResponse", "extract_text"]
