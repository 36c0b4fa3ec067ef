"""
Tracing feature — optional per-task / per-iteration tracing.

Public API:
    from features.tracing import TraceSink, create_trace_sink
"""

from features.tracing.tracker import (
    IterationSpan,
    LangfuseTraceSink,
    TaskTrace,
    TraceSink,
    create_trace_sink,
)

__all__ = ["IterationSpan", "LangfuseTraceSink", "TaskTrace", "TraceSink", "create_trace_sink"]
