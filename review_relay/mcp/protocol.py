"""JSON-RPC 2.0 framing for the MCP stdio transport."""

import json
import logging
import sys
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

JSONRPC_VERSION = "2.0"

PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603


class JSONRPCProtocol:
    """Encodes and decodes newline-delimited JSON-RPC 2.0 messages."""

    def __init__(self):
        self.buffer = ""

    def parse_message(self, data: str) -> Optional[Dict[str, Any]]:
        """Parse one JSON-RPC message, or None if it is not valid 2.0 JSON."""
        try:
            message = json.loads(data.strip())
        except json.JSONDecodeError:
            return None

        if not isinstance(message, dict) or message.get("jsonrpc") != JSONRPC_VERSION:
            return None
        return message

    def extract_messages(self, data: str) -> List[Dict[str, Any]]:
        """Extract complete messages from streamed input.

        A trailing fragment without a newline stays buffered until the rest
        of the line arrives. Complete lines that are not JSON-RPC 2.0 are
        dropped with a warning.
        """
        self.buffer += data
        *lines, self.buffer = self.buffer.split("\n")

        messages = []
        for line in lines:
            if not line.strip():
                continue
            message = self.parse_message(line)
            if message is None:
                logger.warning(f"Ignoring malformed message: {line[:100]}")
                continue
            messages.append(message)
        return messages

    def create_response(self, request_id: Any, result: Any) -> str:
        """Create a JSON-RPC response."""
        response = {
            "jsonrpc": JSONRPC_VERSION,
            "id": request_id,
            "result": result,
        }
        return json.dumps(response)

    def create_error(self, request_id: Any, code: int, message: str,
                     data: Optional[Any] = None) -> str:
        """Create a JSON-RPC error response."""
        error = {
            "code": code,
            "message": message,
        }
        if data is not None:
            error["data"] = data

        response = {
            "jsonrpc": JSONRPC_VERSION,
            "id": request_id,
            "error": error,
        }
        return json.dumps(response)

    def create_notification(self, method: str, params: Optional[Dict[str, Any]] = None) -> str:
        """Create a JSON-RPC notification (no id)."""
        notification = {
            "jsonrpc": JSONRPC_VERSION,
            "method": method,
        }
        if params:
            notification["params"] = params
        return json.dumps(notification)

    def send_response(self, response: str):
        """Write one message to stdout; nothing else may write there."""
        sys.stdout.write(response + "\n")
        sys.stdout.flush()
