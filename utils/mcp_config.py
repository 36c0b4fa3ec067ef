"""
MCP config — tells the reasoning tool which MCP tool servers it may spawn.

Written at startup so the file always reflects the current environment.
Each server is a subprocess the tool starts per session; nothing here
holds a connection.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

import config

log = logging.getLogger(__name__)


def build_mcp_servers(
    postgres_url: str | None = None,
    filesystem_root: str | None = None,
) -> dict:
    """Server definitions keyed by name."""
    postgres_url = config.MCP_POSTGRES_URL if postgres_url is None else postgres_url
    filesystem_root = config.MCP_FILESYSTEM_ROOT if filesystem_root is None else filesystem_root

    servers: dict[str, dict] = {}

    # Direct SQL access
    if postgres_url:
        servers["postgres"] = {
            "command": "npx",
            "args": ["-y", "@modelcontextprotocol/server-postgres", postgres_url],
        }

    # File access scoped to the workspaces volume
    if filesystem_root:
        servers["filesystem"] = {
            "command": "npx",
            "args": ["-y", "@modelcontextprotocol/server-filesystem", filesystem_root],
        }

    servers["fetch"] = {
        "command": "uvx",
        "args": ["mcp-server-fetch"],
    }
    return servers


def write_mcp_config(path: Path | None = None, **kwargs) -> Path:
    """Write ``{"mcpServers": ...}`` to the tool's settings file."""
    path = Path(path or config.MCP_CONFIG_PATH)
    path.parent.mkdir(parents=True, exist_ok=True)
    servers = build_mcp_servers(**kwargs)
    path.write_text(json.dumps({"mcpServers": servers}, indent=2), encoding="utf-8")
    log.info("MCP config written to %s: %s", path, ", ".join(servers))
    return path
