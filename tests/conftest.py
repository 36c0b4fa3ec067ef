"""Shared test fixtures for the ralph worker."""

from __future__ import annotations

import asyncio
from pathlib import Path

import pytest
from httpx import ASGITransport, AsyncClient

import app as app_module
import config
from features.tasks import Task, TaskRegistry, TaskStatus
from features.tasks.models import utc_now
from utils.workspace import prepare_workspace


class ScriptedAgent:
    """Fake agent runner that replays canned outputs.

    ``before_call`` hooks run at the start of each invocation (by zero-based
    call index) so tests can act while an iteration is "in flight".
    ``gate``, when set, holds every invocation until the event fires.
    """

    def __init__(self, outputs: list[str] | None = None, default: str = "still working"):
        self.outputs = list(outputs or [])
        self.default = default
        self.calls: list[tuple[Path, str]] = []
        self.before_call: dict[int, object] = {}
        self.gate: asyncio.Event | None = None

    async def __call__(self, workspace: Path, prompt: str) -> str:
        index = len(self.calls)
        self.calls.append((Path(workspace), prompt))
        hook = self.before_call.get(index)
        if hook is not None:
            result = hook()
            if asyncio.iscoroutine(result):
                await result
        if self.gate is not None:
            await self.gate.wait()
        await asyncio.sleep(0)
        if index < len(self.outputs):
            out = self.outputs[index]
            if isinstance(out, BaseException):
                raise out
            return out
        return self.default


@pytest.fixture
def workspaces_dir(tmp_path: Path, monkeypatch) -> Path:
    """Point the workspaces root at a temp directory."""
    root = tmp_path / "workspaces"
    root.mkdir()
    monkeypatch.setattr(config, "WORKSPACES_DIR", root)
    return root


@pytest.fixture
def registry() -> TaskRegistry:
    return TaskRegistry()


@pytest.fixture
def agent() -> ScriptedAgent:
    return ScriptedAgent()


@pytest.fixture
def make_task(registry, workspaces_dir):
    """Register a running task with a prepared workspace."""

    def _make(task_id: str = "t1", prompt: str = "Build the thing", max_iterations: int = 3,
              completion_promise: str = "DONE") -> Task:
        workspace = workspaces_dir / task_id
        prepare_workspace(workspace, prompt)
        task = Task(
            id=task_id,
            workspace=str(workspace),
            prompt=prompt,
            max_iterations=max_iterations,
            completion_promise=completion_promise,
            status=TaskStatus.RUNNING,
            started_at=utc_now(),
        )
        return registry.create(task)

    return _make


@pytest.fixture
async def client(registry, agent, workspaces_dir, monkeypatch):
    """HTTP client against the app, with a fresh registry and a scripted agent."""
    monkeypatch.setattr(app_module, "registry", registry)
    monkeypatch.setattr(app_module, "runner", agent)
    transport = ASGITransport(app=app_module.app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
    if agent.gate is not None:
        agent.gate.set()
    pending = list(app_module._background)
    if pending:
        await asyncio.wait(pending, timeout=5)


async def wait_until_finished(client: AsyncClient, task_id: str, timeout: float = 5.0) -> dict:
    """Poll a task until it leaves ``running``."""
    deadline = asyncio.get_running_loop().time() + timeout
    while True:
        data = (await client.get(f"/tasks/{task_id}")).json()
        if data["status"] != "running":
            return data
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError(f"task {task_id} still running after {timeout}s")
        await asyncio.sleep(0.01)


async def wait_for_calls(agent: ScriptedAgent, count: int = 1, timeout: float = 5.0) -> None:
    """Wait until the scripted agent has been invoked ``count`` times."""
    deadline = asyncio.get_running_loop().time() + timeout
    while len(agent.calls) < count:
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError(f"agent called {len(agent.calls)} times, expected {count}")
        await asyncio.sleep(0.005)
