"""
Data models for the tasks feature.

Task and TaskStatus are the core domain objects: one Task is one bounded
run of the iteration loop against a single workspace.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum


class TaskStatus(str, Enum):
    RUNNING = "running"
    COMPLETE = "complete"
    MAX_ITERATIONS_REACHED = "max_iterations_reached"
    CANCELLED = "cancelled"
    ERROR = "error"

    @property
    def terminal(self) -> bool:
        return self is not TaskStatus.RUNNING


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class Task:
    """A single iterative task and its current lifecycle state."""
    id: str
    workspace: str
    prompt: str
    max_iterations: int
    completion_promise: str
    status: TaskStatus = TaskStatus.RUNNING
    iterations: int = 0
    output: str | None = None
    error: str | None = None
    started_at: str = ""
    finished_at: str | None = None

    # Internal bookkeeping, never part of the public snapshot
    cancel_requested: bool = False
    logs_written: int = 0

    def to_public(self) -> dict:
        """Public view of the task, without internal bookkeeping fields."""
        return {
            "task_id": self.id,
            "status": self.status.value,
            "workspace": self.workspace,
            "prompt": self.prompt,
            "iterations": self.iterations,
            "max_iterations": self.max_iterations,
            "completion_promise": self.completion_promise,
            "output": self.output,
            "error": self.error,
            "started_at": self.started_at,
            "finished_at": self.finished_at,
        }

    def summary(self) -> dict:
        return {
            "task_id": self.id,
            "status": self.status.value,
            "iterations": self.iterations,
            "started_at": self.started_at,
        }
