"""Flask application exposing the chat page, conversation logs and the job scheduler."""
from __future__ import annotations

import threading
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import load_dotenv
from flask import Flask, current_app, g, jsonify, request, send_from_directory
from flask_cors import CORS
from jsonschema import Draft7Validator
from werkzeug.exceptions import HTTPException

from agents import AgentSupervisor, BackgroundAgent, ConcurrentAgent
from chat_log import MessageLogger
from config import CHAT_HISTORY_LIMIT, CHAT_LOG_DIR, SCHEDULER_AUTOSTART
from jobs import JobScheduler, JobStatus, Worker, WorkerExecutionError
from jobs.models import utcnow
from observability.logger import bind_trace_id, clear_trace_id, get_logger
from observability.metrics import get_registry
from services.llm_client import AnthropicClient, LLMClientError

load_dotenv()

LOGGER = get_logger("agent_lab.api")

STATIC_ROOT = Path(__file__).resolve().parent / "static"
AGENT_TYPES = ("concurrent", "background", "actor")

JOB_REQUEST_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "required": ["task_type"],
    "properties": {
        "task_type": {"type": "string", "minLength": 1},
        "payload": {"type": "object"},
        "delay_seconds": {"type": "number", "minimum": 0},
    },
}
_JOB_REQUEST_VALIDATOR = Draft7Validator(JOB_REQUEST_SCHEMA)


class ApiError(Exception):
    """Exception translated into an HTTP error response."""

    def __init__(self, message: str, status_code: int = 400) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.message = message


@dataclass
class AppState:
    client: Any
    message_logger: MessageLogger
    scheduler: JobScheduler
    background_agent: BackgroundAgent
    concurrent_agent: ConcurrentAgent
    _supervisor: Optional[AgentSupervisor] = None
    _supervisor_lock: threading.Lock = field(default_factory=threading.Lock)

    def supervisor(self) -> AgentSupervisor:
        with self._supervisor_lock:
            if self._supervisor is None:
                self._supervisor = AgentSupervisor(self.client)
            return self._supervisor

    def shutdown(self) -> None:
        self.scheduler.stop()
        self.concurrent_agent.shutdown(wait=False)
        with self._supervisor_lock:
            if self._supervisor is not None:
                self._supervisor.shutdown()
                self._supervisor = None


def _state() -> AppState:
    return current_app.extensions["agent_lab"]


def create_app(
    *,
    client: Any = None,
    log_dir: Optional[str | Path] = None,
    worker: Optional[Worker] = None,
    autostart_scheduler: bool = SCHEDULER_AUTOSTART,
) -> Flask:
    app = Flask(__name__, static_folder=None)
    if hasattr(app, "json"):
        app.json.ensure_ascii = False
    CORS(app, resources={r"/api/*": {"origins": "*"}})

    llm_client = client if client is not None else AnthropicClient()
    background_agent = BackgroundAgent(llm_client)
    scheduler = JobScheduler(worker if worker is not None else background_agent)
    state = AppState(
        client=llm_client,
        message_logger=MessageLogger(log_dir or CHAT_LOG_DIR),
        scheduler=scheduler,
        background_agent=background_agent,
        concurrent_agent=ConcurrentAgent(llm_client),
    )
    app.extensions["agent_lab"] = state
    if autostart_scheduler:
        scheduler.start()

    @app.before_request
    def _bind_request_trace() -> None:
        trace_id = request.headers.get("X-Trace-Id") or uuid.uuid4().hex
        g.trace_id = trace_id
        bind_trace_id(trace_id)

    @app.after_request
    def _append_trace(response):  # type: ignore[override]
        trace_id = getattr(g, "trace_id", None)
        if trace_id:
            response.headers.setdefault("X-Trace-Id", trace_id)
        return response

    @app.teardown_request
    def _teardown_trace(_exc):  # type: ignore[override]
        clear_trace_id()

    @app.errorhandler(ApiError)
    def _handle_api_error(exc: ApiError):  # type: ignore[override]
        LOGGER.warning("api_error", extra={"error": exc.message, "code": exc.status_code})
        return _error_response(exc.message, exc.status_code)

    @app.errorhandler(Exception)
    def _handle_generic_error(exc: Exception):  # type: ignore[override]
        if isinstance(exc, HTTPException):
            return _error_response(exc.description or exc.name, exc.code or 500)
        LOGGER.exception("unhandled_error")
        return _error_response("Internal server error", 500)

    @app.get("/")
    def index():
        return send_from_directory(STATIC_ROOT, "index.html")

    @app.post("/api/send_message")
    def send_message():
        payload = _require_json(request)
        user_message = str(payload.get("message") or "").strip()
        if not user_message:
            raise ApiError("Field 'message' is required")
        agent_type = str(payload.get("agent_type") or "concurrent").strip().lower()
        if agent_type not in AGENT_TYPES:
            raise ApiError(f"Unknown agent type: {agent_type}")

        message_logger = _state().message_logger
        message_logger.log_message("user_message", "User", user_message, {"agent": agent_type})
        try:
            response_text = _dispatch_message(agent_type, user_message)
        except (LLMClientError, WorkerExecutionError) as exc:
            message_logger.log_message("error", "System", str(exc), {"error_class": type(exc).__name__})
            return _error_response(str(exc), 502)

        message_logger.log_message(
            "ai_response",
            f"{agent_type} Agent",
            response_text,
            {"user_message": user_message},
        )
        return jsonify({"success": True, "response": response_text})

    @app.get("/api/messages")
    def list_messages():
        limit = _safe_int(request.args.get("limit"), CHAT_HISTORY_LIMIT)
        return jsonify(_state().message_logger.get_messages(limit))

    @app.route("/api/clear_messages", methods=["GET", "POST"])
    def clear_messages():
        _state().message_logger.clear_messages()
        return jsonify({"success": True, "message": "Messages cleared"})

    @app.get("/api/logs")
    def list_logs():
        return jsonify(_state().message_logger.list_log_files())

    @app.get("/api/log/<path:filename>")
    def read_log(filename: str):
        entries = _state().message_logger.read_log_file(filename)
        if entries is None:
            raise ApiError("File not found", status_code=404)
        return jsonify(entries)

    @app.post("/api/jobs")
    def schedule_job():
        payload = _require_json(request)
        errors = sorted(_JOB_REQUEST_VALIDATOR.iter_errors(payload), key=lambda error: list(error.path))
        if errors:
            raise ApiError(f"Invalid job request: {errors[0].message}")
        scheduler = _state().scheduler
        job_id = scheduler.schedule_job(
            payload["task_type"],
            payload.get("payload") or {},
            payload.get("delay_seconds") or 0,
        )
        job = scheduler.job_status(job_id)
        return jsonify({"job_id": job_id, "job": job.to_dict() if job else None}), 202

    @app.post("/api/jobs/run")
    def run_jobs():
        processed = _state().scheduler.execute_pending_jobs()
        return jsonify({"processed": [job.to_dict() for job in processed]})

    @app.get("/api/jobs")
    def list_jobs():
        return jsonify([job.to_dict() for job in _state().scheduler.list_jobs()])

    @app.get("/api/jobs/<job_id>")
    def job_status(job_id: str):
        job = _state().scheduler.job_status(job_id)
        if job is None:
            raise ApiError("Job not found", status_code=404)
        return jsonify(job.to_dict())

    @app.delete("/api/jobs")
    def clear_jobs():
        _state().scheduler.clear_jobs()
        return jsonify({"success": True})

    @app.get("/health")
    def health():
        scheduler = _state().scheduler
        return jsonify(
            {
                "status": "ok",
                "timestamp": utcnow().isoformat(),
                "jobs": len(scheduler.store),
                "pending_jobs": scheduler.store.count(JobStatus.PENDING),
                "scheduler_running": scheduler.running,
                "metrics": get_registry().snapshot(),
            }
        )

    return app


def _dispatch_message(agent_type: str, message: str) -> str:
    state = _state()
    if agent_type == "concurrent":
        return state.concurrent_agent.execute_with_promise(message)
    if agent_type == "actor":
        return state.supervisor().distribute_work([message])[0]
    outcome = state.background_agent.perform("generate_content", {"prompt": message, "context": ""})
    if not outcome.ok:
        raise WorkerExecutionError(outcome.error or "background agent failed", task_type="generate_content")
    return str(outcome.value)


def _error_response(message: str, status_code: int):
    trace_id = getattr(g, "trace_id", None)
    return (
        jsonify(
            {
                "success": False,
                "error": {
                    "message": message,
                    "code": status_code,
                    "trace_id": trace_id,
                },
            }
        ),
        status_code,
    )


def _require_json(req) -> Dict[str, Any]:
    try:
        data = req.get_json(force=True)  # type: ignore[no-any-return]
    except Exception as exc:  # noqa: BLE001
        raise ApiError("Malformed JSON body") from exc
    if not isinstance(data, dict):
        raise ApiError("Expected a JSON object")
    return data


def _safe_int(value: Any, default: int = 0) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


__all__ = ["ApiError", "AppState", "create_app"]
