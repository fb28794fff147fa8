"""MCP server exposing the review tools over stdio."""

import asyncio
import json
import logging
import sys
from typing import Any, Dict, Optional

import yaml

from review_relay import __version__
from review_relay.mcp.protocol import INTERNAL_ERROR, METHOD_NOT_FOUND, JSONRPCProtocol
from review_relay.mcp.tools import MCPTools, tool_definitions
from review_relay.service import AppContext, ReviewService

logger = logging.getLogger(__name__)

PROTOCOL_VERSION = "2024-11-05"
SERVER_NAME = "review-relay"

# One JSON-RPC message per line; review_code requests carry whole snippets
STREAM_LIMIT = 16 * 1024 * 1024


class ReviewRelayMCPServer:
    """MCP server backed by an initialized application context."""

    def __init__(self, context: AppContext):
        self.initialized = False
        self.context = context
        self.protocol = JSONRPCProtocol()
        self.tools = MCPTools(ReviewService(context))
        self._handlers = {
            "initialize": self.handle_initialize,
            "tools/list": self.handle_tools_list,
            "tools/call": self.handle_tool_call,
            "resources/list": self.handle_resources_list,
            "resources/read": self.handle_resource_read,
        }

    async def start(self):
        """Serve requests from stdin until it closes."""
        logger.info("Starting review-relay MCP server")
        reader = asyncio.StreamReader(limit=STREAM_LIMIT)
        protocol = asyncio.StreamReaderProtocol(reader)
        await asyncio.get_running_loop().connect_read_pipe(lambda: protocol, sys.stdin)
        await self.process_stream(reader)

    async def process_stream(self, reader: asyncio.StreamReader):
        """Handle every message read from reader, answering on stdout."""
        logger.info("Ready to process messages")
        while True:
            try:
                line = await reader.readline()
            except ValueError as e:
                # Over-long line: the reader drops it and the next line is intact
                logger.error(f"Dropping over-long message: {e}")
                continue
            if not line:
                break

            for message in self.protocol.extract_messages(line.decode("utf-8", errors="replace")):
                response = await self.handle_message(message)
                if response:
                    self.protocol.send_response(response)

    async def handle_message(self, message: Dict[str, Any]) -> Optional[str]:
        """Handle a JSON-RPC message; notifications get no response."""
        method = message.get("method")
        params = message.get("params") or {}
        msg_id = message.get("id")

        if msg_id is None:
            logger.debug(f"Received notification: {method}")
            return None

        handler = self._handlers.get(method)
        if handler is None:
            return self.protocol.create_error(msg_id, METHOD_NOT_FOUND, f"Method not found: {method}")

        logger.debug(f"Handling request: {method}")
        try:
            result = await handler(params)
        except Exception as e:
            logger.exception(f"Error handling {method}")
            return self.protocol.create_error(msg_id, INTERNAL_ERROR, f"Internal error: {e}")
        return self.protocol.create_response(msg_id, result)

    async def handle_initialize(self, params: Dict[str, Any]) -> Dict[str, Any]:
        self.initialized = True
        client_info = params.get("clientInfo", {})
        logger.info(f"Initialized by {client_info.get('name', 'unknown')}")

        return {
            "protocolVersion": PROTOCOL_VERSION,
            "capabilities": {
                "tools": {},
                "resources": {},
            },
            "serverInfo": {
                "name": SERVER_NAME,
                "version": __version__,
            },
        }

    async def handle_tools_list(self, params: Dict[str, Any]) -> Dict[str, Any]:
        return {"tools": tool_definitions()}

    async def handle_tool_call(self, params: Dict[str, Any]) -> Dict[str, Any]:
        name = params.get("name")
        logger.info(f"Tool call: {name}")
        return await self.tools.call(name, params.get("arguments") or {})

    async def handle_resources_list(self, params: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "resources": [
                {
                    "uri": "review://config",
                    "name": "Review Configuration",
                    "description": "Merged review-relay settings in YAML, API keys masked.",
                    "mimeType": "application/yaml",
                },
                {
                    "uri": "review://prompts",
                    "name": "Review Prompts",
                    "description": "Prompt file lookup paths and the prompt keys currently loaded.",
                    "mimeType": "application/json",
                },
            ]
        }

    async def handle_resource_read(self, params: Dict[str, Any]) -> Dict[str, Any]:
        uri = params.get("uri")

        if uri == "review://config":
            text = yaml.safe_dump(self.context.config.safe_config(), sort_keys=True)
            mime_type = "application/yaml"
        elif uri == "review://prompts":
            prompts = self.context.prompts
            text = json.dumps(
                {
                    "lookup_paths": [str(path) for path in prompts.get_prompt_paths()],
                    "loaded": prompts.available_prompts(),
                },
                indent=2,
            )
            mime_type = "application/json"
        else:
            raise ValueError(f"Unknown resource: {uri}")

        return {
            "contents": [{
                "uri": uri,
                "mimeType": mime_type,
                "text": text,
            }]
        }
