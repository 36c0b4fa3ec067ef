"""
Iteration Loop — drives one task from submission to a terminal state.

Each iteration:
  1. Stop as cancelled if cancellation was requested
  2. Count the iteration
  3. Run the agent CLI with the task's invariant prompt
  4. Stop with an error if the agent could not run
  5. Write iter_NNN.log and append to the rolling summary log
  6. Stop as complete if the output contains the completion promise

Running out of iterations ends the task as max_iterations_reached.

The prompt never grows: the agent gets the same text every time and
finds its own progress in the workspace files.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from pathlib import Path

from activities.agent_cli import AgentRunError, run_agent
from features.tasks.models import Task, TaskStatus, utc_now
from features.tasks.registry import TaskRegistry
from features.tracing.tracker import TraceSink
from utils.workspace import write_iteration_log

log = logging.getLogger(__name__)

AgentRunner = Callable[[Path, str], Awaitable[str]]


class IterationLoop:
    """Runs the bounded loop for tasks held in a registry.

    The loop is the only writer of its task's record; the registry only
    ever hands out snapshots.
    """

    def __init__(
        self,
        registry: TaskRegistry,
        runner: AgentRunner = run_agent,
        trace_sink: TraceSink | None = None,
    ):
        self.registry = registry
        self.runner = runner
        self.trace_sink = trace_sink or TraceSink()

    async def run(self, task_id: str) -> Task:
        """Run the task to a terminal state and return its final snapshot.

        Never raises for a task-level failure: those end as ``error``.
        """
        task = self.registry.get(task_id)
        if task.status.terminal:
            log.warning("Task %s is already %s; not running it again", task_id, task.status.value)
            return task

        log.info(
            "Task %s starting (max %d iterations, promise=%r)",
            task_id, task.max_iterations, task.completion_promise,
        )
        trace = self.trace_sink.start_task(task)

        try:
            final = await self._iterate(task, trace)
        except asyncio.CancelledError:
            self._finish(task_id, TaskStatus.ERROR, error="Task loop was interrupted")
            raise
        except Exception as e:
            log.error("Task %s failed: %s", task_id, e, exc_info=True)
            final = self._finish(task_id, TaskStatus.ERROR, error=str(e) or type(e).__name__)

        trace.finish(final.status.value, final.iterations)
        await asyncio.get_running_loop().run_in_executor(None, self.trace_sink.flush)
        log.info(
            "Task %s finished: %s after %d iteration(s)",
            task_id, final.status.value, final.iterations,
        )
        return final

    async def _iterate(self, task: Task, trace) -> Task:
        loop = asyncio.get_running_loop()
        workspace = Path(task.workspace)

        for i in range(task.max_iterations):
            if self.registry.get(task.id).cancel_requested:
                return self._finish(task.id, TaskStatus.CANCELLED)

            self.registry.update(task.id, iterations=i + 1)
            span = trace.start_iteration(i + 1)

            try:
                output = await self.runner(workspace, task.prompt)
            except AgentRunError as e:
                span.fail(str(e))
                return self._finish(task.id, TaskStatus.ERROR, error=str(e))

            span.end(output)

            # Logs must be on disk before the completion check and before the
            # next invocation, which may read them.
            await loop.run_in_executor(
                None, write_iteration_log, workspace, i, task.max_iterations, output,
            )
            self.registry.update(task.id, logs_written=i + 1)

            if task.completion_promise in output:
                return self._finish(task.id, TaskStatus.COMPLETE, output=output)

        return self._finish(task.id, TaskStatus.MAX_ITERATIONS_REACHED)

    def _finish(self, task_id: str, status: TaskStatus, **fields) -> Task:
        return self.registry.update(task_id, status=status, finished_at=utc_now(), **fields)
