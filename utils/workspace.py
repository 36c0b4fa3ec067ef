"""
Workspace layout — the on-disk memory a task carries between iterations.

    <WORKSPACES_DIR>/<task_id>/
        PROMPT.md        invariant prompt, written at submission
        iter_000.log     raw output of iteration 0
        iter_001.log     ...
        ralph.log        rolling summary, one block appended per iteration

The reasoning tool sees these files on every invocation, so the names
are part of the contract with prompts written for it.
"""

from __future__ import annotations

import re
from pathlib import Path

PROMPT_FILE = "PROMPT.md"
SUMMARY_LOG = "ralph.log"

_WORKSPACE_ID_RE = re.compile(r"^[a-zA-Z0-9_-]+$")


def is_valid_workspace_id(workspace_id: str) -> bool:
    return bool(_WORKSPACE_ID_RE.fullmatch(workspace_id))


def workspace_path(root: Path, task_id: str) -> Path:
    if not is_valid_workspace_id(task_id):
        raise ValueError(f"Invalid workspace id: {task_id!r}")
    return Path(root) / task_id


def iteration_log_path(workspace: Path, iteration: int) -> Path:
    """Path of the log for a zero-based iteration index."""
    return Path(workspace) / f"iter_{iteration:03d}.log"


def prepare_workspace(workspace: Path, prompt: str) -> Path:
    """Create the workspace directory and write the invariant prompt."""
    workspace = Path(workspace)
    workspace.mkdir(parents=True, exist_ok=True)
    prompt_file = workspace / PROMPT_FILE
    prompt_file.write_text(prompt, encoding="utf-8")
    return prompt_file


def write_iteration_log(
    workspace: Path, iteration: int, max_iterations: int, output: str
) -> Path:
    """Persist one iteration's raw output and append it to the summary log.

    Both writes are done (and the files closed) when this returns.
    """
    log_file = iteration_log_path(workspace, iteration)
    log_file.write_text(output, encoding="utf-8")

    with open(Path(workspace) / SUMMARY_LOG, "a", encoding="utf-8") as f:
        f.write(f"\n\n=== Iteration {iteration + 1} / {max_iterations} ===\n{output}\n")
    return log_file


def read_iteration_log(workspace: Path, iteration: int) -> bytes | None:
    """Raw bytes of an iteration log, or None if it was never written."""
    if iteration < 0:
        return None
    log_file = iteration_log_path(workspace, iteration)
    if not log_file.is_file():
        return None
    return log_file.read_bytes()
