"""
POP3 Mailbox Protocol Contract
==============================

Behavioural contract for the POP3 client and its MCP tool surface.

Implementation SHALL perform ONLY declared behaviors. Every public type and
error raised by the client is defined here; implementation modules import
them from the ``contracts`` index, never from this file directly.
"""

from dataclasses import dataclass
from enum import Enum, auto
from typing import Protocol, runtime_checkable


# =============================================================================
# DOMAIN TYPES
# =============================================================================

class EmailProtocol(Enum):
    """Supported email protocols."""
    POP3 = auto()


class SessionState(Enum):
    """
    POP3 session states (RFC 1939 section 3).

    AUTHORIZATION -> AWAITING_PASS -> TRANSACTION -> CLOSED
    """
    AUTHORIZATION = "authorization"
    AWAITING_PASS = "awaiting_pass"
    TRANSACTION = "transaction"
    CLOSED = "closed"


@dataclass(frozen=True)
class MessageInfo:
    """
    Listing entry for one message.

    ``id`` is the 1-based, session-local message number. Exactly one of
    ``size`` (LIST) or ``uidl`` (UIDL) is populated.
    """
    id: int
    size: int | None = None
    uidl: str | None = None


@dataclass(frozen=True)
class MessagePart:
    """A leaf MIME part of a retrieved message."""
    content_type: str
    filename: str | None
    charset: str | None
    content: str
    size_bytes: int


@dataclass(frozen=True)
class ParsedMessage:
    """Structured view of a raw RFC 5322 message."""
    headers: dict[str, str]
    body_parts: list[MessagePart]


@dataclass(frozen=True)
class ConnectionStatus:
    """Current connection state."""
    connected: bool
    protocol: EmailProtocol
    server: str
    uptime_seconds: int
    state: SessionState | None = None
    tls_version: str = ""
    cipher: str = ""


# =============================================================================
# ERROR TYPES
# =============================================================================

class Pop3MCPError(Exception):
    """Base error for all POP3 client and MCP operations."""
    code: str = "POP3_ERROR"


class ConnectionFailedError(Pop3MCPError):
    """
    Dial, TLS or socket I/O failure.

    RECOVERY: Fatal. The connection is unusable; dial again.
    """
    code = "CONNECTION_FAILED"


class ConnectionClosedError(ConnectionFailedError):
    """
    The server closed the stream, or a read deadline expired.

    RECOVERY: Fatal. Dial again.
    """
    code = "CONNECTION_CLOSED"


class TLSHandshakeError(ConnectionFailedError):
    """
    TLS negotiation failed. There is no plaintext fallback.

    RECOVERY: Fatal. No client is produced.
    """
    code = "TLS_HANDSHAKE_FAILED"


class CertificateVerificationError(TLSHandshakeError):
    """
    Server certificate or hostname was rejected.

    RECOVERY: Fatal. Fix the trust store or the target hostname.
    """
    code = "CERTIFICATE_VERIFICATION_FAILED"


class ProtocolFramingError(Pop3MCPError):
    """
    Response framing is broken; the stream cannot be resynchronized.

    RECOVERY: Fatal to the connection. Never retried on the same stream.
    """
    code = "PROTOCOL_FRAMING"


class UnknownStatusCodeError(ProtocolFramingError):
    """Status line did not start with ``+OK`` or ``-ERR``."""
    code = "UNKNOWN_STATUS_CODE"


class TruncatedResponseError(ProtocolFramingError):
    """Stream ended before the multi-line terminator was seen."""
    code = "TRUNCATED_RESPONSE"


class LineTooLongError(ProtocolFramingError):
    """Server line exceeded the maximum accepted length."""
    code = "LINE_TOO_LONG"


class ServerRejectionError(Pop3MCPError):
    """
    Server answered ``-ERR``.

    ``text`` carries the server message verbatim; ``str(error)`` prefixes it
    with ``pop3:``.

    RECOVERY: Caller's choice. The connection is still in sync.
    """
    code = "SERVER_REJECTION"

    def __init__(self, text: str) -> None:
        super().__init__(f"pop3: {text}")
        self.text = text


class AuthFailedError(ServerRejectionError):
    """
    USER or PASS was rejected by the mail server.

    RECOVERY: Fix stored credentials. Session returns to AUTHORIZATION.
    """
    code = "AUTH_FAILED"


class ArgumentContractError(Pop3MCPError, ValueError):
    """
    Caller passed a malformed argument (whitespace in a token, message
    number below 1, negative line count).

    RECOVERY: Programming error. Fix the caller.
    """
    code = "ARGUMENT_CONTRACT"


class InvalidSessionStateError(Pop3MCPError):
    """
    Verb is not allowed in the current session state, or a previous
    multi-line body has not been drained yet. Nothing was sent.
    """
    code = "INVALID_SESSION_STATE"


class NotConnectedError(Pop3MCPError):
    """
    Client was closed or broken by a fatal error.

    RECOVERY: Dial again.
    """
    code = "NOT_CONNECTED"


class ResponseLineError(Pop3MCPError, IndexError):
    """Requested response line index is outside the stored text."""
    code = "RESPONSE_LINE"


class BiosecretDeniedError(Pop3MCPError):
    """
    User cancelled the biometric prompt while retrieving credentials.

    RECOVERY: Fatal. Restart to retry.
    """
    code = "BIOSECRET_DENIED"


class BiosecretNotFoundError(Pop3MCPError):
    """
    No credentials stored under the expected keychain key.

    RECOVERY: Fatal. Store credentials via biosecret before retry.
    """
    code = "BIOSECRET_NOT_FOUND"


# =============================================================================
# CLIENT CONTRACTS
# =============================================================================

@runtime_checkable
class LineTransportContract(Protocol):
    """
    Byte-stream connection with line reads and flushed writes.

    write_line: data reaches the socket before the call returns.
    read_line: blocks for one full line, terminator stripped.

    ERRORS:
    - CONNECTION_CLOSED: EOF or read deadline expired
    - CONNECTION_FAILED: any other socket error
    - LINE_TOO_LONG: line exceeded the accepted length
    """

    def write_line(self, data: bytes) -> None:
        ...

    def read_line(self) -> str:
        ...

    def close(self) -> None:
        ...


@runtime_checkable
class MailboxSessionContract(Protocol):
    """
    One authenticated POP3 session.

    Preconditions:
    - Dial succeeded and the greeting was positive.
    - Mailbox verbs require the TRANSACTION state (after PASS).
    - The previous response was fully drained.

    Postconditions:
    - Each verb sends exactly one request and reads exactly one response.
    - Negative replies consume one line only.

    Invariants:
    - The client holds no mailbox state; the server is the source of truth.
    - ``quit`` never raises; ``close`` always releases the socket.

    ERRORS:
    - SERVER_REJECTION / AUTH_FAILED: recoverable
    - CONNECTION_* / PROTOCOL_FRAMING family: fatal to the connection
    - INVALID_SESSION_STATE / ARGUMENT_CONTRACT: raised before sending
    """

    def stat(self) -> tuple[int, int]:
        ...

    def list_all(self) -> list[MessageInfo]:
        ...

    def uidl_all(self) -> list[MessageInfo]:
        ...

    def retr_raw(self, message_id: int) -> str:
        ...

    def dele(self, message_id: int) -> None:
        ...

    def rset(self) -> None:
        ...

    def close(self) -> None:
        ...


# =============================================================================
# TOOL CONTRACTS
# =============================================================================

@runtime_checkable
class MailboxToolsContract(Protocol):
    """
    MCP tools over a single POP3 session per process.

    Invariants:
    - One mail server connection per process. No pooling.
    - Message bodies and passwords never appear in log output.
    - ``pop3_status`` always succeeds and is honest about connectivity.

    ERRORS:
    - NOT_CONNECTED: connect() was never called or the session broke
    """

    def pop3_stat(self) -> dict:
        ...

    def pop3_list(self, *, message_id: int | None = None) -> dict:
        ...

    def pop3_retrieve(self, *, message_id: int) -> dict:
        ...

    def pop3_status(self) -> ConnectionStatus:
        ...
