"""
POP3 MCP
========

Synchronous POP3 client and a single-session MCP server on top of it.
"""

__version__ = "0.1.0"

from pop3_mcp.client import Client, dial
from pop3_mcp.config import ClientOptions
from pop3_mcp.credentials import Credentials, retrieve_credentials
from pop3_mcp.message import parse_message
from pop3_mcp.request import Command, Request, encode
from pop3_mcp.response import Response, Status, read_response
from pop3_mcp.server import Pop3MCPServer, create_server, get_server
from pop3_mcp.transport import LineTransport

__all__ = [
    "Pop3MCPServer",
    "get_server",
    "create_server",
    "dial",
    "Client",
    "ClientOptions",
    "Command",
    "Request",
    "encode",
    "Response",
    "Status",
    "read_response",
    "LineTransport",
    "parse_message",
    "Credentials",
    "retrieve_credentials",
]
