"""Tests for MCP protocol handling."""

import json

from review_relay.mcp.protocol import JSONRPCProtocol


class TestJSONRPCProtocol:
    """Test JSON-RPC protocol handling."""

    def test_parse_valid_message(self):
        """Test parsing valid JSON-RPC message."""
        protocol = JSONRPCProtocol()
        message = '{"jsonrpc": "2.0", "id": 1, "method": "initialize", "params": {}}'

        parsed = protocol.parse_message(message)
        assert parsed is not None
        assert parsed["id"] == 1
        assert parsed["method"] == "initialize"

    def test_parse_invalid_json(self):
        """Test parsing invalid JSON."""
        assert JSONRPCProtocol().parse_message('{"invalid json') is None

    def test_parse_wrong_version(self):
        """Test parsing message with wrong JSON-RPC version."""
        assert JSONRPCProtocol().parse_message('{"jsonrpc": "1.0", "id": 1, "method": "test"}') is None

    def test_parse_non_object(self):
        """A JSON array is not a request."""
        assert JSONRPCProtocol().parse_message('[1, 2, 3]') is None

    def test_extract_multiple_messages(self):
        """Test extracting multiple messages from stream."""
        protocol = JSONRPCProtocol()

        data = '{"jsonrpc": "2.0", "id": 1, "method": "test1"}\n{"jsonrpc": "2.0", "id": 2, "method": "test2"}\n'
        messages = protocol.extract_messages(data)

        assert [message["id"] for message in messages] == [1, 2]
        assert protocol.buffer == ""

    def test_extract_partial_message(self):
        """Test handling partial messages."""
        protocol = JSONRPCProtocol()

        messages = protocol.extract_messages('{"jsonrpc": "2.0", "id": 1, ')
        assert messages == []
        assert protocol.buffer == '{"jsonrpc": "2.0", "id": 1, '

        messages = protocol.extract_messages('"method": "test"}\n')
        assert len(messages) == 1
        assert messages[0]["method"] == "test"
        assert protocol.buffer == ""

    def test_extract_skips_garbage_lines(self):
        """Complete lines that are not JSON-RPC are dropped."""
        protocol = JSONRPCProtocol()
        messages = protocol.extract_messages('not json\n{"jsonrpc": "2.0", "id": 3, "method": "x"}\n')

        assert [message["id"] for message in messages] == [3]
        assert protocol.buffer == ""

    def test_create_response(self):
        """Test creating JSON-RPC response."""
        parsed = json.loads(JSONRPCProtocol().create_response(123, {"result": "success"}))

        assert parsed["jsonrpc"] == "2.0"
        assert parsed["id"] == 123
        assert parsed["result"]["result"] == "success"

    def test_create_error(self):
        """Test creating JSON-RPC error response."""
        response = JSONRPCProtocol().create_error(456, -32600, "Invalid Request", {"details": "test"})

        parsed = json.loads(response)
        assert parsed["id"] == 456
        assert parsed["error"]["code"] == -32600
        assert parsed["error"]["message"] == "Invalid Request"
        assert parsed["error"]["data"]["details"] == "test"

    def test_create_notification(self):
        """Test creating JSON-RPC notification."""
        parsed = json.loads(JSONRPCProtocol().create_notification("progress", {"percent": 50}))

        assert "id" not in parsed
        assert parsed["method"] == "progress"
        assert parsed["params"]["percent"] == 50

    def test_send_response_writes_one_line(self, capsys):
        """Responses go to stdout, newline terminated."""
        JSONRPCProtocol().send_response('{"jsonrpc": "2.0", "id": 1, "result": {}}')
        assert capsys.readouterr().out == '{"jsonrpc": "2.0", "id": 1, "result": {}}\n'
