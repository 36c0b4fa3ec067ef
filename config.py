"""
Configuration — loads settings from environment / .env file.
"""

from __future__ import annotations

import os
import shlex
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


# Paths
WORKSPACES_DIR = Path(os.getenv("WORKSPACES_DIR", "/workspaces"))

# Loop defaults
DEFAULT_MAX_ITERATIONS = int(os.getenv("DEFAULT_MAX_ITERATIONS", "20"))
DEFAULT_COMPLETION_PROMISE = os.getenv("DEFAULT_COMPLETION_PROMISE", "RALPH_COMPLETE")

# Reasoning tool invocation
AGENT_COMMAND = shlex.split(
    os.getenv("AGENT_COMMAND", "claude --print --dangerously-skip-permissions")
)
AGENT_TIMEOUT_SEC = float(os.getenv("AGENT_TIMEOUT_SEC", str(10 * 60)))
AGENT_KILL_GRACE_SEC = float(os.getenv("AGENT_KILL_GRACE_SEC", "5"))

# Server
HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", "3000"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# LangFuse (tracing is enabled only when both keys are present)
LANGFUSE_PUBLIC_KEY = os.getenv("LANGFUSE_PUBLIC_KEY", "")
LANGFUSE_SECRET_KEY = os.getenv("LANGFUSE_SECRET_KEY", "")
LANGFUSE_BASE_URL = os.getenv("LANGFUSE_BASE_URL", "http://langfuse:3000")

# Max characters of iteration output attached to a trace span
TRACE_OUTPUT_CHARS = int(os.getenv("TRACE_OUTPUT_CHARS", "2000"))

# MCP servers exposed to the reasoning tool
WRITE_MCP_CONFIG = _env_bool("WRITE_MCP_CONFIG", True)
MCP_CONFIG_PATH = Path(
    os.getenv("MCP_CONFIG_PATH", str(Path.home() / ".claude" / "settings.json"))
).expanduser()
MCP_POSTGRES_URL = os.getenv("MCP_POSTGRES_URL", "")
MCP_FILESYSTEM_ROOT = os.getenv("MCP_FILESYSTEM_ROOT", "")
