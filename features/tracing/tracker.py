"""
Trace Tracker — records one trace per task and one span per iteration.

The base classes only log and time each step, so the iteration loop can
always call them. When LangFuse keys are configured the LangFuse variants
also ship every trace/span to LangFuse.

A tracing backend failure is logged and dropped; it never changes the
outcome of a task.
"""

from __future__ import annotations

import logging
import time
from typing import Any

import config
from features.tasks.models import Task

log = logging.getLogger(__name__)


class IterationSpan:
    """A single iteration of a task's loop."""

    def __init__(self, task_id: str, iteration: int):
        self.task_id = task_id
        self.iteration = iteration
        self.duration_sec: float | None = None
        self._start = time.monotonic()
        log.info("[TRACE] Started: %s iteration-%d", task_id, iteration)

    def _stop(self) -> float:
        self.duration_sec = round(time.monotonic() - self._start, 2)
        return self.duration_sec

    def end(self, output: str) -> None:
        """Close the span after the tool produced output."""
        self._stop()
        log.info(
            "[TRACE] Completed: %s iteration-%d (%.2fs, %d chars)",
            self.task_id, self.iteration, self.duration_sec, len(output),
        )

    def fail(self, error: str) -> None:
        """Close the span after the tool invocation failed."""
        self._stop()
        log.error(
            "[TRACE] Failed: %s iteration-%d (%.2fs): %s",
            self.task_id, self.iteration, self.duration_sec, error,
        )


class TaskTrace:
    """Trace for one task run."""

    def __init__(self, task: Task):
        self.task_id = task.id
        self.spans: list[IterationSpan] = []
        self._start = time.monotonic()

    def _new_span(self, iteration: int) -> IterationSpan:
        return IterationSpan(self.task_id, iteration)

    def start_iteration(self, iteration: int) -> IterationSpan:
        """Open a span for a 1-based iteration number."""
        span = self._new_span(iteration)
        self.spans.append(span)
        return span

    def finish(self, status: str, iterations: int) -> None:
        total = round(time.monotonic() - self._start, 2)
        summary = self.summary()
        log.info(
            "[TRACE] Finished: %s — %s after %d iteration(s) in %.2fs (%d span(s), %.2fs in agent)",
            self.task_id, status, iterations, total,
            summary["spans"], summary["total_duration_sec"],
        )

    def summary(self) -> dict:
        return {
            "task_id": self.task_id,
            "spans": len(self.spans),
            "total_duration_sec": round(sum(s.duration_sec or 0 for s in self.spans), 2),
        }


class TraceSink:
    """No-op trace sink: logs locally and ships nothing."""

    enabled = False

    def start_task(self, task: Task) -> TaskTrace:
        return TaskTrace(task)

    def flush(self) -> None:
        pass


# ── LangFuse ──────────────────────────────────────────────────────────


def _safe(action: str, fn, *args, **kwargs) -> Any:
    """Call into the LangFuse client, logging and swallowing any failure."""
    try:
        return fn(*args, **kwargs)
    except Exception as e:
        log.warning("[TRACE] LangFuse %s failed: %s", action, e)
        return None


class LangfuseIterationSpan(IterationSpan):

    def __init__(self, task_id: str, iteration: int, parent: Any):
        super().__init__(task_id, iteration)
        self._span = None
        if parent is not None:
            self._span = _safe(
                "start span", parent.start_span,
                name=f"iteration-{iteration}", input={"iteration": iteration},
            )

    def end(self, output: str) -> None:
        super().end(output)
        if self._span is None:
            return
        _safe("update span", self._span.update,
              output={"text": output[:config.TRACE_OUTPUT_CHARS]})
        _safe("end span", self._span.end)

    def fail(self, error: str) -> None:
        super().fail(error)
        if self._span is None:
            return
        _safe("update span", self._span.update, level="ERROR", status_message=error)
        _safe("end span", self._span.end)


class LangfuseTaskTrace(TaskTrace):

    def __init__(self, task: Task, client: Any):
        super().__init__(task)
        self._client = client
        trace_input = {"prompt": task.prompt, "maxIterations": task.max_iterations}
        # Same task id, same trace id, so a re-submitted task is easy to find
        trace_id = _safe("create trace id", client.create_trace_id, seed=task.id)
        self._root = _safe(
            "start trace", client.start_span,
            trace_context={"trace_id": trace_id} if trace_id else None,
            name="ralph-loop",
            input=trace_input,
            metadata={"workspace": task.workspace},
        )
        if self._root is not None:
            _safe(
                "update trace", self._root.update_trace,
                name="ralph-loop", input=trace_input,
                metadata={"task_id": task.id, "workspace": task.workspace},
            )

    def _new_span(self, iteration: int) -> IterationSpan:
        return LangfuseIterationSpan(self.task_id, iteration, self._root)

    def finish(self, status: str, iterations: int) -> None:
        super().finish(status, iterations)
        if self._root is None:
            return
        result = {"status": status, "iterations": iterations}
        _safe("update trace", self._root.update_trace, output=result)
        _safe("end trace", self._root.end)


class LangfuseTraceSink(TraceSink):
    """Ships traces to LangFuse."""

    enabled = True

    def __init__(self, client: Any = None):
        if client is None:
            from langfuse import Langfuse

            client = Langfuse(
                public_key=config.LANGFUSE_PUBLIC_KEY,
                secret_key=config.LANGFUSE_SECRET_KEY,
                host=config.LANGFUSE_BASE_URL,
            )
        self._client = client

    def start_task(self, task: Task) -> TaskTrace:
        return LangfuseTaskTrace(task, self._client)

    def flush(self) -> None:
        _safe("flush", self._client.flush)


def create_trace_sink() -> TraceSink:
    """Build the trace sink from configuration."""
    if config.LANGFUSE_PUBLIC_KEY and config.LANGFUSE_SECRET_KEY:
        sink = LangfuseTraceSink()
        log.info("LangFuse tracing enabled (%s)", config.LANGFUSE_BASE_URL)
        return sink
    log.info("LangFuse keys not set — tracing disabled")
    return TraceSink()
