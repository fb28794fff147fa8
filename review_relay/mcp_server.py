#!/usr/bin/env python3
"""MCP server entry point for review-relay."""

import asyncio
import logging
import sys

from review_relay.log import setup_logging
from review_relay.mcp.server import ReviewRelayMCPServer
from review_relay.service import create_context

logger = logging.getLogger(__name__)


async def main():
    """Build the application context once and serve until stdin closes."""
    context = await create_context()
    setup_logging(debug=context.config.is_debug())
    server = ReviewRelayMCPServer(context)
    await server.start()


def run():
    """Entry point for console script."""
    setup_logging()
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Shutting down MCP server")
    except Exception as e:
        logger.exception(f"Fatal error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    run()
