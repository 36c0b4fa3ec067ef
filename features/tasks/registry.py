"""
Task Registry — in-memory, thread-safe map of task id to Task.

The registry is the single source of truth for status queries. Callers
never get a live Task back: every read returns a copy taken under the
lock, so a poll can't observe a half-applied update.

Only the iteration loop that owns a task mutates it (via ``update``);
the API layer creates tasks and raises the cancellation flag.
"""

from __future__ import annotations

import copy
import logging
import threading

from features.tasks.models import Task, TaskStatus

log = logging.getLogger(__name__)


class TaskNotFoundError(KeyError):
    """No task is registered under the requested id."""

    def __init__(self, task_id: str):
        super().__init__(task_id)
        self.task_id = task_id

    def __str__(self) -> str:
        return f"Task not found: {self.task_id}"


class TaskConflictError(RuntimeError):
    """The requested operation conflicts with the task's current status."""

    def __init__(self, task_id: str, status: TaskStatus):
        super().__init__(f"Task {task_id} is already {status.value}")
        self.task_id = task_id
        self.status = status


class TaskStateError(RuntimeError):
    """An update was attempted on a task that already reached a terminal state."""


class TaskRegistry:
    """Ephemeral, single-instance task store."""

    def __init__(self) -> None:
        self._tasks: dict[str, Task] = {}
        self._lock = threading.Lock()

    def create(self, task: Task) -> Task:
        """Register a new task.

        An id whose task is still running is a conflict. An id whose task
        finished is replaced, so a re-submission can reuse its workspace.
        """
        with self._lock:
            existing = self._tasks.get(task.id)
            if existing is not None and not existing.status.terminal:
                raise TaskConflictError(task.id, existing.status)
            if existing is not None:
                log.info("Replacing finished task %s (%s)", task.id, existing.status.value)
            self._tasks[task.id] = copy.deepcopy(task)
            return copy.deepcopy(task)

    def get(self, task_id: str) -> Task:
        with self._lock:
            task = self._tasks.get(task_id)
            if task is None:
                raise TaskNotFoundError(task_id)
            return copy.deepcopy(task)

    def list(self) -> list[dict]:
        """Lightweight summaries of every known task, in submission order."""
        with self._lock:
            return [t.summary() for t in self._tasks.values()]

    def running_count(self) -> int:
        with self._lock:
            return sum(1 for t in self._tasks.values() if t.status is TaskStatus.RUNNING)

    def request_cancel(self, task_id: str) -> None:
        """Flag a running task for cancellation at its next iteration boundary."""
        with self._lock:
            task = self._tasks.get(task_id)
            if task is None:
                raise TaskNotFoundError(task_id)
            if task.status.terminal:
                raise TaskConflictError(task_id, task.status)
            task.cancel_requested = True
        log.info("Cancellation requested for task %s", task_id)

    def update(self, task_id: str, **changes) -> Task:
        """Apply field changes to a running task and return the new snapshot."""
        with self._lock:
            task = self._tasks.get(task_id)
            if task is None:
                raise TaskNotFoundError(task_id)
            if task.status.terminal:
                raise TaskStateError(
                    f"Task {task_id} is {task.status.value}; no further updates allowed"
                )
            for name, value in changes.items():
                if not hasattr(task, name):
                    raise AttributeError(f"Task has no field {name!r}")
                setattr(task, name, value)
            return copy.deepcopy(task)
