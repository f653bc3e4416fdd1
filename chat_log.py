"""Conversation log persisted as daily JSON-lines files."""
from __future__ import annotations

import json
import logging
import threading
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from config import CHAT_HISTORY_LIMIT, CHAT_LOG_DIR

LOGGER = logging.getLogger("agent_lab.chat_log")

LOG_GLOB = "*.log"


def _local_now() -> datetime:
    return datetime.now().astimezone()


class MessageLogger:
    """Keeps chat messages in memory and appends each one to ``messages_YYYYMMDD.log``."""

    def __init__(self, log_dir: str | Path = CHAT_LOG_DIR, *, clock: Callable[[], datetime] = _local_now) -> None:
        self._log_dir = Path(log_dir).resolve()
        self._clock = clock
        self._messages: List[Dict[str, Any]] = []
        self._lock = threading.Lock()
        self._log_dir.mkdir(parents=True, exist_ok=True)
        self._load_messages()

    @property
    def log_dir(self) -> Path:
        return self._log_dir

    def log_message(
        self,
        type: str,
        sender: str,
        message: Any,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        now = self._clock()
        entry = {
            "timestamp": now.isoformat(timespec="seconds"),
            "type": type,
            "sender": sender,
            "message": message,
            "metadata": dict(metadata or {}),
        }
        log_file = self._log_dir / f"messages_{now.strftime('%Y%m%d')}.log"
        line = json.dumps(entry, ensure_ascii=False, default=str)
        with self._lock:
            self._messages.append(entry)
            with log_file.open("a", encoding="utf-8") as handle:
                handle.write(line + "\n")
        return entry

    def get_messages(self, limit: int = CHAT_HISTORY_LIMIT) -> List[Dict[str, Any]]:
        if limit <= 0:
            return []
        with self._lock:
            return list(self._messages[-limit:])

    def clear_messages(self) -> None:
        with self._lock:
            self._messages = []
            for path in self._log_dir.glob(LOG_GLOB):
                path.unlink(missing_ok=True)
        LOGGER.info("chat_log_cleared", extra={"log_dir": self._log_dir.as_posix()})

    def list_log_files(self) -> List[Dict[str, Any]]:
        entries = []
        for path in sorted(self._log_dir.glob(LOG_GLOB), reverse=True):
            stat = path.stat()
            with path.open(encoding="utf-8") as handle:
                line_count = sum(1 for _ in handle)
            entries.append(
                {
                    "filename": path.name,
                    "size": stat.st_size,
                    "lines": line_count,
                    "modified": datetime.fromtimestamp(stat.st_mtime).astimezone().isoformat(timespec="seconds"),
                }
            )
        return entries

    def resolve_log_path(self, filename: str) -> Optional[Path]:
        """Return the log file path, or None if it is missing or outside the log directory."""

        candidate = (self._log_dir / filename).resolve()
        try:
            candidate.relative_to(self._log_dir)
        except ValueError:
            return None
        if not candidate.is_file():
            return None
        return candidate

    def read_log_file(self, filename: str) -> Optional[List[Dict[str, Any]]]:
        path = self.resolve_log_path(filename)
        if path is None:
            return None
        return _read_entries(path)

    def _load_messages(self) -> None:
        loaded: List[Dict[str, Any]] = []
        for path in sorted(self._log_dir.glob(LOG_GLOB)):
            loaded.extend(_read_entries(path))
        self._messages = loaded
        if loaded:
            LOGGER.info("chat_log_loaded", extra={"messages": len(loaded)})


def _read_entries(path: Path) -> List[Dict[str, Any]]:
    entries: List[Dict[str, Any]] = []
    with path.open(encoding="utf-8") as handle:
        for line_number, line in enumerate(handle, start=1):
            line = line.strip()
            if not line:
                continue
            try:
                entry = json.loads(line)
            except json.JSONDecodeError as exc:
                LOGGER.warning("Skipping malformed line %s:%d: %s", path.name, line_number, exc)
                continue
            if isinstance(entry, dict):
                entries.append(entry)
    return entries


__all__ = ["MessageLogger"]
