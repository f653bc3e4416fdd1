"""Model-backed agents in several concurrency styles."""

from .actor import ActorAgent, AgentSupervisor  # noqa: F401
from .background import BackgroundAgent, TaskPayloadError  # noqa: F401
from .concurrent import ConcurrentAgent  # noqa: F401
from .web import ScrapeError, WebAutomationAgent  # noqa: F401

__all__ = [
    "ActorAgent",
    "AgentSupervisor",
    "BackgroundAgent",
    "ConcurrentAgent",
    "ScrapeError",
    "TaskPayloadError",
    "WebAutomationAgent",
]
