# -*- coding: utf-8 -*-

import os


def _env_int(name: str, default: int) -> int:
    value = str(os.getenv(name, "")).strip()
    if not value:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    value = str(os.getenv(name, "")).strip()
    if not value:
        return default
    try:
        return float(value)
    except ValueError:
        return default


def _env_bool(name: str, default: bool) -> bool:
    raw = str(os.getenv(name, "")).strip().lower()
    if not raw:
        return default
    return raw not in {"0", "false", "off", "no"}


def _env_str(name: str, default: str) -> str:
    return str(os.getenv(name, default)).strip() or default


ANTHROPIC_API_KEY = str(os.getenv("ANTHROPIC_API_KEY", "")).strip()
ANTHROPIC_BASE_URL = _env_str("ANTHROPIC_BASE_URL", "https://api.anthropic.com").rstrip("/")
ANTHROPIC_VERSION = _env_str("ANTHROPIC_VERSION", "2023-06-01")
LLM_TIMEOUT_S = max(1, _env_int("LLM_TIMEOUT_S", 60))

# Fast model for chat/analysis, stronger one for structured form data
LLM_MODEL = _env_str("LLM_MODEL", "claude-3-5-haiku-20241022")
LLM_FORM_MODEL = _env_str("LLM_FORM_MODEL", "claude-sonnet-4-20250514")
LLM_DEFAULT_MAX_TOKENS = max(1, _env_int("LLM_DEFAULT_MAX_TOKENS", 1024))

CONCURRENT_POOL_SIZE = max(1, _env_int("CONCURRENT_POOL_SIZE", 5))
ACTOR_POOL_SIZE = max(1, _env_int("ACTOR_POOL_SIZE", 3))

SCHEDULER_POLL_INTERVAL_S = max(0.05, _env_float("SCHEDULER_POLL_INTERVAL_S", 1.0))
SCHEDULER_AUTOSTART = _env_bool("SCHEDULER_AUTOSTART", False)

CHAT_LOG_DIR = _env_str("CHAT_LOG_DIR", "logs")
CHAT_HISTORY_LIMIT = max(1, _env_int("CHAT_HISTORY_LIMIT", 100))

SCRAPE_TIMEOUT_S = max(1, _env_int("SCRAPE_TIMEOUT_S", 30))
SCRAPE_MAX_CHARS = max(100, _env_int("SCRAPE_MAX_CHARS", 3000))
SCRAPE_USER_AGENT = _env_str(
    "SCRAPE_USER_AGENT",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/605.1.15 "
    "(KHTML, like Gecko) Version/17.0 Safari/605.1.15",
)
