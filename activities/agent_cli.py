"""
Activity: Agent CLI — runs one invocation of the reasoning tool in a workspace.

Every call is a fresh process, so there's no shared context between
iterations: whatever the tool remembers lives in the workspace files.
"""

from __future__ import annotations

import asyncio
import logging
import os
from pathlib import Path

import config

log = logging.getLogger(__name__)


class AgentRunError(RuntimeError):
    """The tool could not be run to completion (failed to start or timed out)."""

    def __init__(self, message: str, *, timed_out: bool) -> None:
        super().__init__(message)
        self.timed_out = timed_out


async def run_agent(
    workspace: Path | str,
    prompt: str,
    *,
    command: list[str] | None = None,
    timeout_sec: float | None = None,
) -> str:
    """
    Launch the tool with ``workspace`` as its cwd, feed ``prompt`` on stdin
    and return stdout + stderr as one decoded string.

    The exit code is not checked: a tool that exits non-zero still produced
    output, and only the completion token decides success.

    Raises:
        AgentRunError: the process could not start, or ran past the timeout
            (it is terminated first).
    """
    argv = list(command or config.AGENT_COMMAND)
    timeout = config.AGENT_TIMEOUT_SEC if timeout_sec is None else timeout_sec
    if not argv:
        raise AgentRunError("Agent command is empty", timed_out=False)

    try:
        proc = await asyncio.create_subprocess_exec(
            *argv,
            cwd=str(workspace),
            env=os.environ.copy(),
            stdin=asyncio.subprocess.PIPE,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.STDOUT,
        )
    except FileNotFoundError as e:
        if not Path(workspace).is_dir():
            raise AgentRunError(f"Workspace not found: {workspace}", timed_out=False) from e
        raise AgentRunError(f"Agent command not found: {argv[0]}", timed_out=False) from e
    except OSError as e:
        raise AgentRunError(f"Agent failed to start: {e}", timed_out=False) from e

    log.info("Started %s (pid=%s) in %s", argv[0], proc.pid, workspace)

    try:
        stdout, _ = await asyncio.wait_for(
            proc.communicate(prompt.encode("utf-8")), timeout=timeout,
        )
    except asyncio.TimeoutError:
        await _terminate_process(proc)
        raise AgentRunError(
            f"{argv[0]} process timed out after {timeout:g}s", timed_out=True,
        ) from None
    except asyncio.CancelledError:
        await _terminate_process(proc)
        raise

    if proc.returncode:
        log.info("%s exited with code %d (output kept)", argv[0], proc.returncode)
    return stdout.decode("utf-8", errors="replace")


async def _terminate_process(proc: asyncio.subprocess.Process) -> None:
    """SIGTERM, then SIGKILL if the process outlives the grace period."""
    if proc.returncode is not None:
        return
    try:
        proc.terminate()
    except ProcessLookupError:
        return
    try:
        await asyncio.wait_for(proc.wait(), timeout=config.AGENT_KILL_GRACE_SEC)
    except asyncio.TimeoutError:
        log.warning("pid=%s ignored SIGTERM, killing", proc.pid)
        try:
            proc.kill()
        except ProcessLookupError:
            return
        await proc.wait()
