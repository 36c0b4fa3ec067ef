"""
Worker entrypoint — writes the agent's MCP config, then serves the API.

Usage:
    python worker.py
"""

from __future__ import annotations

import asyncio
import logging

import uvicorn

import config
from app import app
from utils.mcp_config import write_mcp_config

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    datefmt="%H:%M:%S",
)
log = logging.getLogger(__name__)


async def main():
    if config.WRITE_MCP_CONFIG:
        write_mcp_config()

    server = uvicorn.Server(
        uvicorn.Config(
            app,
            host=config.HOST,
            port=config.PORT,
            log_level=config.LOG_LEVEL.lower(),
        )
    )
    log.info("ralph worker listening on :%d", config.PORT)
    await server.serve()


if __name__ == "__main__":
    asyncio.run(main())
