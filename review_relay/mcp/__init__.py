"""MCP (Model Context Protocol) server implementation for review-relay."""

from .server import ReviewRelayMCPServer

__all__ = ["ReviewRelayMCPServer"]
