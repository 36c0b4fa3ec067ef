"""
Tasks feature — task model and the in-memory task registry.

Public API:
    from features.tasks import Task, TaskStatus, TaskRegistry
"""

from features.tasks.models import Task, TaskStatus
from features.tasks.registry import (
    TaskConflictError,
    TaskNotFoundError,
    TaskRegistry,
    TaskStateError,
)

__all__ = [
    "Task",
    "TaskStatus",
    "TaskRegistry",
    "TaskConflictError",
    "TaskNotFoundError",
    "TaskStateError",
]
