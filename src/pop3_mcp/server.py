"""
POP3 MCP Server
===============

MCP server exposing a single POP3 mailbox session as tools.

- One mail server connection per process. No pooling.
- Message bodies and passwords are never logged.
- Deletions only take effect when the session is closed (QUIT).
"""

from __future__ import annotations

import json
import logging
from dataclasses import asdict
from datetime import datetime
from typing import Any

from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import TextContent, Tool

from contracts import (
    ConnectionStatus,
    EmailProtocol,
    NotConnectedError,
    ParsedMessage,
    Pop3MCPError,
    is_fatal,
)
from pop3_mcp.client import Client, dial
from pop3_mcp.credentials import Credentials

# Configure logging to NEVER include message content
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger("pop3-mcp")

_MESSAGE_ID_SCHEMA = {
    "type": "integer",
    "description": "Session-local message number (1-based)",
    "minimum": 1,
}


class Pop3MCPServer:
    """POP3 MCP Server - mailbox access for AI agents."""

    def __init__(self) -> None:
        self._client: Client | None = None
        self._start_time: datetime | None = None
        self._server_name = ""
        self._server = Server("pop3-mcp")
        self._setup_tools()

    def _setup_tools(self) -> None:
        """Register MCP tools."""

        @self._server.list_tools()
        async def list_tools() -> list[Tool]:
            return [
                Tool(
                    name="pop3_stat",
                    description="Get message count and total mailbox size in octets",
                    inputSchema={"type": "object", "properties": {}},
                ),
                Tool(
                    name="pop3_list",
                    description="List message numbers and sizes",
                    inputSchema={
                        "type": "object",
                        "properties": {"message_id": _MESSAGE_ID_SCHEMA},
                    },
                ),
                Tool(
                    name="pop3_uidl",
                    description="List message numbers and unique ids",
                    inputSchema={
                        "type": "object",
                        "properties": {"message_id": _MESSAGE_ID_SCHEMA},
                    },
                ),
                Tool(
                    name="pop3_retrieve",
                    description="Retrieve one message as headers and body parts",
                    inputSchema={
                        "type": "object",
                        "properties": {"message_id": _MESSAGE_ID_SCHEMA},
                        "required": ["message_id"],
                    },
                ),
                Tool(
                    name="pop3_top",
                    description="Retrieve headers and the first N body lines of a message",
                    inputSchema={
                        "type": "object",
                        "properties": {
                            "message_id": _MESSAGE_ID_SCHEMA,
                            "lines": {
                                "type": "integer",
                                "description": "Number of body lines to include",
                                "minimum": 0,
                            },
                        },
                        "required": ["message_id", "lines"],
                    },
                ),
                Tool(
                    name="pop3_delete",
                    description="Mark a message for deletion (applied when the session ends)",
                    inputSchema={
                        "type": "object",
                        "properties": {"message_id": _MESSAGE_ID_SCHEMA},
                        "required": ["message_id"],
                    },
                ),
                Tool(
                    name="pop3_reset",
                    description="Unmark all messages marked for deletion in this session",
                    inputSchema={"type": "object", "properties": {}},
                ),
                Tool(
                    name="pop3_status",
                    description="Get current connection status",
                    inputSchema={"type": "object", "properties": {}},
                ),
            ]

        @self._server.call_tool()
        async def call_tool(name: str, arguments: dict[str, Any]) -> list[TextContent]:
            tool = self._tools().get(name)
            if tool is None:
                return [TextContent(type="text", text=f"Unknown tool: {name}")]

            try:
                result = tool(**(arguments or {}))
            except Pop3MCPError as e:
                return [TextContent(type="text", text=f"Error: {e.__class__.__name__}: {e}")]

            return [TextContent(type="text", text=self._serialize_result(result))]

    def _tools(self) -> dict[str, Any]:
        """Tool name to bound handler."""
        return {
            "pop3_stat": self.pop3_stat,
            "pop3_list": self.pop3_list,
            "pop3_uidl": self.pop3_uidl,
            "pop3_retrieve": self.pop3_retrieve,
            "pop3_top": self.pop3_top,
            "pop3_delete": self.pop3_delete,
            "pop3_reset": self.pop3_reset,
            "pop3_status": self.pop3_status,
        }

    def connect(self, credentials: Credentials) -> None:
        """
        Dial and authenticate with credentials.

        Only one connection per process.
        """
        if self._client is not None:
            raise RuntimeError("Connection already established")

        client = dial(credentials.address, credentials.options())
        try:
            client.auth(credentials.username, credentials.password)
        except BaseException:
            client.close()
            raise

        self._client = client
        self._server_name = credentials.server
        self._start_time = datetime.now()
        logger.info("Connected to mail server")  # No credentials logged

    def disconnect(self) -> None:
        """Close the session, committing pending deletions."""
        if self._client:
            self._client.close()
            self._client = None
            self._start_time = None
            logger.info("Disconnected from mail server")

    def _require_client(self) -> Client:
        """Ensure client is connected."""
        if self._client is None or not self._client.connected:
            raise NotConnectedError("Not connected to mail server")
        return self._client

    def _call(self, verb: str, *args: Any) -> Any:
        client = self._require_client()
        try:
            return getattr(client, verb)(*args)
        except Pop3MCPError as e:
            if is_fatal(e):
                logger.warning("Mail server connection lost: %s", e.code)
                self.disconnect()
            raise

    def pop3_stat(self) -> dict:
        logger.info("STAT")
        count, size = self._call("stat")
        return {"count": count, "size": size}

    def pop3_list(self, *, message_id: int | None = None) -> dict:
        logger.info("Listing messages")
        if message_id is None:
            return {"messages": self._call("list_all")}
        return {"messages": [self._call("list", message_id)]}

    def pop3_uidl(self, *, message_id: int | None = None) -> dict:
        logger.info("Listing unique ids")
        if message_id is None:
            return {"messages": self._call("uidl_all")}
        return {"messages": [self._call("uidl", message_id)]}

    def pop3_retrieve(self, *, message_id: int) -> dict:
        # Log operation but NEVER log message content
        logger.info(f"Retrieving message {message_id}")
        message = self._call("retr", message_id)
        return self._message_result(message_id, message)

    def pop3_top(self, *, message_id: int, lines: int) -> dict:
        logger.info(f"Retrieving top {lines} lines of message {message_id}")
        message = self._call("top", message_id, lines)
        return self._message_result(message_id, message)

    def pop3_delete(self, *, message_id: int) -> dict:
        logger.info(f"Marking message {message_id} for deletion")
        self._call("dele", message_id)
        return {"deleted": message_id}

    def pop3_reset(self) -> dict:
        logger.info("Resetting deletion marks")
        self._call("rset")
        return {"reset": True}

    def pop3_status(self) -> ConnectionStatus:
        """Return connection status. Always succeeds."""
        client = self._client
        if client is None:
            return ConnectionStatus(
                connected=False,
                protocol=EmailProtocol.POP3,
                server="",
                uptime_seconds=0,
            )

        uptime = 0
        if self._start_time and client.connected:
            uptime = int((datetime.now() - self._start_time).total_seconds())

        return ConnectionStatus(
            connected=client.connected,
            protocol=EmailProtocol.POP3,
            server=self._server_name,
            uptime_seconds=uptime,
            state=client.state,
            tls_version=client.tls_version,
            cipher=client.cipher,
        )

    @staticmethod
    def _message_result(message_id: int, message: ParsedMessage) -> dict:
        return {
            "message_id": message_id,
            "headers": message.headers,
            "body_parts": message.body_parts,
        }

    def _serialize_result(self, result: Any) -> str:
        """Serialize result to JSON string."""

        def default_serializer(obj: Any) -> Any:
            if hasattr(obj, "__dataclass_fields__"):
                return asdict(obj)
            if hasattr(obj, "value"):  # Enum
                return obj.value
            raise TypeError(f"Cannot serialize {type(obj)}")

        return json.dumps(result, default=default_serializer, indent=2)

    async def run(self) -> None:
        """Run the MCP server."""
        async with stdio_server() as (read_stream, write_stream):
            await self._server.run(
                read_stream, write_stream, self._server.create_initialization_options()
            )


# Singleton for process lifetime
_server_instance: Pop3MCPServer | None = None


def get_server() -> Pop3MCPServer:
    """Get or create the server singleton."""
    global _server_instance
    if _server_instance is None:
        _server_instance = Pop3MCPServer()
    return _server_instance


def create_server() -> Pop3MCPServer:
    """Create a new server instance (for testing)."""
    return Pop3MCPServer()
