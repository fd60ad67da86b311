# Userup Python SDK
# File: transports/stdio_server.py
# Version: v2

"""STDIO entrypoint for the Userup MCP server.

This is the script behind the ``userup-mcp`` console command. It creates a
FastMCP server, registers the Userup tools and runs the built-in stdio
transport.
"""

from __future__ import annotations

import logging

from mcp.server.fastmcp import FastMCP

from ..config import UserupConfig
from ..tools import tasks

logger = logging.getLogger(__name__)


def main() -> None:
    """Synchronous entrypoint for console_scripts."""
    mcp = FastMCP("userup-mcp")

    # Register tools (ping, get_user, query_users, sessions, …)
    tasks.register_tools(mcp)

    cfg = UserupConfig.from_env()
    logger.info(
        "Starting userup-mcp against %s (mock_mode=%s)",
        cfg.base_url,
        cfg.mock_mode,
    )

    # Let FastMCP handle stdio + event loop setup.
    mcp.run()


if __name__ == "__main__":
    main()
