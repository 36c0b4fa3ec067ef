"""
FastAPI application — REST API for the ralph worker.

Endpoints:
  POST   /tasks                — Submit a task; the loop starts in the background
  GET    /tasks                — List all tasks
  GET    /tasks/{id}           — Poll a task's status
  DELETE /tasks/{id}           — Request cancellation (takes effect between iterations)
  GET    /tasks/{id}/logs/{n}  — Raw output of iteration n (zero-based)
  GET    /health               — Health check
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from contextlib import asynccontextmanager
from pathlib import Path

from dotenv import load_dotenv
from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel, Field

import config
from activities.agent_cli import run_agent
from features.tasks import (
    Task,
    TaskConflictError,
    TaskNotFoundError,
    TaskRegistry,
    TaskStatus,
)
from features.tasks.models import utc_now
from features.tracing import TraceSink, create_trace_sink
from utils.workspace import prepare_workspace, read_iteration_log, workspace_path
from workflows.iteration_loop import IterationLoop

load_dotenv()

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    datefmt="%H:%M:%S",
)
log = logging.getLogger(__name__)

registry = TaskRegistry()
trace_sink: TraceSink = TraceSink()
runner = run_agent

# Strong references to running loops so they aren't garbage-collected mid-run
_background: set[asyncio.Task] = set()


@asynccontextmanager
async def lifespan(app: FastAPI):
    global trace_sink
    trace_sink = create_trace_sink()
    log.info("Workspaces: %s", config.WORKSPACES_DIR)
    log.info("Default max iterations: %d", config.DEFAULT_MAX_ITERATIONS)
    yield
    trace_sink.flush()


app = FastAPI(
    title="Ralph Worker",
    description="Runs a stateless agent CLI in a bounded loop, using the workspace as memory",
    version="1.0.0",
    lifespan=lifespan,
)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = [
        f"{'.'.join(str(p) for p in err.get('loc', ()) if p != 'body')}: {err.get('msg')}"
        for err in exc.errors()
    ]
    return JSONResponse(status_code=400, content={"detail": "; ".join(errors)})


class TaskSubmitRequest(BaseModel):
    prompt: str
    max_iterations: int = Field(
        default_factory=lambda: config.DEFAULT_MAX_ITERATIONS, ge=1, strict=True,
    )
    completion_promise: str = Field(
        default_factory=lambda: config.DEFAULT_COMPLETION_PROMISE, min_length=1,
    )
    # Caller-supplied id: lets a retry reuse the files of an earlier run
    workspace_id: str | None = Field(default=None, pattern=r"^[a-zA-Z0-9_-]+$")


class TaskSubmitResponse(BaseModel):
    task_id: str
    status: str
    workspace: str


class TaskResponse(BaseModel):
    task_id: str
    status: str
    workspace: str
    prompt: str
    iterations: int
    max_iterations: int
    completion_promise: str
    output: str | None = None
    error: str | None = None
    started_at: str
    finished_at: str | None = None


class TaskSummary(BaseModel):
    task_id: str
    status: str
    iterations: int
    started_at: str


class CancelResponse(BaseModel):
    task_id: str
    status: str


# ── Health ────────────────────────────────────────────────────────────

@app.get("/health")
def health():
    return {
        "status": "ok",
        "service": "ralph-worker",
        "tracing_enabled": trace_sink.enabled,
        "running_tasks": registry.running_count(),
    }


# ── Tasks ─────────────────────────────────────────────────────────────

@app.post("/tasks", response_model=TaskSubmitResponse, status_code=202)
async def submit_task(req: TaskSubmitRequest):
    """Register a task, lay out its workspace and start its loop."""
    if not req.prompt.strip():
        raise HTTPException(status_code=400, detail="`prompt` is required and must be a non-empty string")
    for name in ("prompt", "completion_promise"):
        if not _is_utf8_encodable(getattr(req, name)):
            raise HTTPException(status_code=400, detail=f"`{name}` must be valid UTF-8 text")

    task_id = req.workspace_id or str(uuid.uuid4())
    workspace = workspace_path(config.WORKSPACES_DIR, task_id)

    task = Task(
        id=task_id,
        workspace=str(workspace),
        prompt=req.prompt,
        max_iterations=req.max_iterations,
        completion_promise=req.completion_promise,
        status=TaskStatus.RUNNING,
        started_at=utc_now(),
    )
    try:
        registry.create(task)
    except TaskConflictError as e:
        raise HTTPException(status_code=409, detail=str(e))

    try:
        await asyncio.get_running_loop().run_in_executor(
            None, prepare_workspace, workspace, req.prompt,
        )
    except Exception as e:
        log.error("Could not prepare workspace %s: %s", workspace, e, exc_info=True)
        registry.update(task_id, status=TaskStatus.ERROR, error=f"Workspace setup failed: {e}",
                        finished_at=utc_now())
        raise HTTPException(status_code=500, detail=f"Could not prepare workspace: {e}")

    loop = IterationLoop(registry, runner=runner, trace_sink=trace_sink)
    bg = asyncio.create_task(loop.run(task_id), name=f"task-{task_id}")
    _background.add(bg)
    bg.add_done_callback(_background.discard)

    log.info("Task %s submitted (workspace=%s)", task_id, workspace)
    return TaskSubmitResponse(task_id=task_id, status=TaskStatus.RUNNING.value, workspace=str(workspace))


@app.get("/tasks", response_model=list[TaskSummary])
async def list_tasks():
    """List every task known to this process."""
    return registry.list()


@app.get("/tasks/{task_id}", response_model=TaskResponse)
async def get_task(task_id: str):
    """Current snapshot of a task."""
    try:
        return registry.get(task_id).to_public()
    except TaskNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@app.delete("/tasks/{task_id}", response_model=CancelResponse)
async def cancel_task(task_id: str):
    """Ask a running task to stop before its next iteration."""
    try:
        registry.request_cancel(task_id)
    except TaskNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except TaskConflictError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return CancelResponse(task_id=task_id, status="cancelling")


@app.get("/tasks/{task_id}/logs/{iteration}")
async def get_iteration_log(task_id: str, iteration: int):
    """Raw text written for one completed iteration."""
    try:
        task = registry.get(task_id)
    except TaskNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))

    # A workspace reused from an earlier run can still hold stale logs
    # past the point this run has reached.
    content = None
    if 0 <= iteration < task.logs_written:
        content = read_iteration_log(Path(task.workspace), iteration)
    if content is None:
        raise HTTPException(status_code=404, detail="Iteration log not found")
    return Response(content=content, media_type="text/plain; charset=utf-8")


def _is_utf8_encodable(text: str) -> bool:
    """False for strings holding lone surrogates, which JSON allows but files can't store."""
    try:
        text.encode("utf-8")
    except UnicodeEncodeError:
        return False
    return True
