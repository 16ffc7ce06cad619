"""
POP3 MCP Contract Index
=======================

AUTHORITY: This file is the SINGLE authoritative entrypoint for all
POP3 MCP contracts. Import from here, not from individual contract files.
"""

from contracts.pop3_protocol_contract import (
    ArgumentContractError,
    AuthFailedError,
    BiosecretDeniedError,
    BiosecretNotFoundError,
    CertificateVerificationError,
    ConnectionClosedError,
    ConnectionFailedError,
    ConnectionStatus,
    # Domain Types
    EmailProtocol,
    InvalidSessionStateError,
    LineTooLongError,
    # Contracts (Protocols)
    LineTransportContract,
    MailboxSessionContract,
    MailboxToolsContract,
    MessageInfo,
    MessagePart,
    NotConnectedError,
    ParsedMessage,
    # Error Types
    Pop3MCPError,
    ProtocolFramingError,
    ResponseLineError,
    ServerRejectionError,
    SessionState,
    TLSHandshakeError,
    TruncatedResponseError,
    UnknownStatusCodeError,
)

__all__ = [
    # Domain Types
    "EmailProtocol",
    "SessionState",
    "MessageInfo",
    "MessagePart",
    "ParsedMessage",
    "ConnectionStatus",
    # Error Types
    "Pop3MCPError",
    "ConnectionFailedError",
    "ConnectionClosedError",
    "TLSHandshakeError",
    "CertificateVerificationError",
    "ProtocolFramingError",
    "UnknownStatusCodeError",
    "TruncatedResponseError",
    "LineTooLongError",
    "ServerRejectionError",
    "AuthFailedError",
    "ArgumentContractError",
    "InvalidSessionStateError",
    "NotConnectedError",
    "ResponseLineError",
    "BiosecretDeniedError",
    "BiosecretNotFoundError",
    # Contracts
    "LineTransportContract",
    "MailboxSessionContract",
    "MailboxToolsContract",
    # Functions
    "is_fatal",
]


def is_fatal(error: BaseException) -> bool:
    """
    Return True if ``error`` leaves the connection unusable.

    Transport and framing errors end the connection. Server rejections and
    locally rejected calls do not.
    """
    return isinstance(error, (ConnectionFailedError, ProtocolFramingError))
