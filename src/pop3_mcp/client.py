"""
POP3 Session Client
===================

Public client for one POP3 session.

Every verb sends one request, reads one reply and maps it to a typed
result. A ``-ERR`` reply raises ``ServerRejectionError`` and leaves the
connection usable. Transport and framing errors mark the client broken;
every later verb raises ``NotConnectedError`` until it is closed.

Session states are enforced locally (see ``ALLOWED_COMMANDS``): mailbox
verbs before a successful PASS are rejected without touching the wire.

Not thread-safe. Use one client per thread.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager

from contracts import (
    ArgumentContractError,
    AuthFailedError,
    InvalidSessionStateError,
    MessageInfo,
    NotConnectedError,
    ParsedMessage,
    Pop3MCPError,
    ProtocolFramingError,
    ServerRejectionError,
    SessionState,
    is_fatal,
)
from pop3_mcp.config import ClientOptions
from pop3_mcp.message import parse_message
from pop3_mcp.request import Command, Request
from pop3_mcp.response import Response, iter_response_lines, read_response, read_status
from pop3_mcp.transport import LineTransport, split_address

logger = logging.getLogger("pop3-mcp.client")

_TRANSACTION_COMMANDS = frozenset(
    {
        Command.STAT,
        Command.LIST,
        Command.RETR,
        Command.DELE,
        Command.NOOP,
        Command.RSET,
        Command.TOP,
        Command.UIDL,
        Command.QUIT,
    }
)

ALLOWED_COMMANDS: dict[SessionState, frozenset[Command]] = {
    SessionState.AUTHORIZATION: frozenset({Command.USER, Command.QUIT}),
    SessionState.AWAITING_PASS: frozenset({Command.USER, Command.PASS, Command.QUIT}),
    SessionState.TRANSACTION: _TRANSACTION_COMMANDS,
    SessionState.CLOSED: frozenset(),
}


def dial(address: str, options: ClientOptions | None = None) -> Client:
    """
    Connect to ``address`` (``host:port``) and verify the server greeting.

    No client is returned on failure; the socket is closed before the error
    propagates.
    """
    if options is None:
        options = ClientOptions()
    host, port = split_address(address)

    transport = LineTransport.dial(host, port, options)
    try:
        greeting = read_status(transport.read_line).raise_for_status()
    except BaseException:
        transport.close()
        raise

    logger.debug("S: +OK %s", greeting.text[0])
    return Client(transport, welcome=greeting.text[0], server=host)


def _check_message_id(message_id: int) -> None:
    if isinstance(message_id, bool) or not isinstance(message_id, int) or message_id < 1:
        raise ArgumentContractError(f"message id must be a positive int, got {message_id!r}")


def _check_token(value: str, what: str) -> None:
    if not isinstance(value, str) or not value:
        raise ArgumentContractError(f"{what} must be a non-empty string")
    if any(ch.isspace() or ord(ch) < 0x20 or ord(ch) == 0x7F for ch in value):
        raise ArgumentContractError(f"{what} must not contain whitespace or control characters")


def _message_info(fields: list[str], *, with_size: bool) -> MessageInfo:
    try:
        if with_size:
            return MessageInfo(id=int(fields[0]), size=int(fields[1]))
        return MessageInfo(id=int(fields[0]), uidl=fields[1])
    except (IndexError, ValueError):
        raise ProtocolFramingError(f"pop3: malformed listing entry {' '.join(fields)!r}") from None


class _BodyLines:
    """
    Single-pass iterator over a multi-line body still on the wire.

    Closing it (explicitly or by dropping it) before the terminator was read
    breaks the client, whether or not iteration ever started.
    """

    def __init__(self, client: Client, lines: Iterator[str]) -> None:
        self._client = client
        self._lines = lines
        self._done = False

    def __iter__(self) -> _BodyLines:
        return self

    def __next__(self) -> str:
        if self._done:
            raise StopIteration
        try:
            return next(self._lines)
        except StopIteration:
            self._finish(completed=True)
            raise
        except BaseException:
            self._finish(completed=False)
            raise

    def close(self) -> None:
        if not self._done:
            self._finish(completed=False)

    def __del__(self) -> None:
        self.close()

    def _finish(self, *, completed: bool) -> None:
        self._done = True
        self._client._end_stream(completed=completed)


class Client:
    """A connected POP3 session. Build it with ``dial()``."""

    def __init__(self, transport: LineTransport, *, welcome: str = "", server: str = "") -> None:
        self._transport = transport
        self._state = SessionState.AUTHORIZATION
        self._broken = False
        self._draining = False
        self.welcome = welcome
        self.server = server

    def __enter__(self) -> Client:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def connected(self) -> bool:
        return (
            not self._broken
            and not self._transport.closed
            and self._state is not SessionState.CLOSED
        )

    @property
    def tls_version(self) -> str:
        return self._transport.tls_version

    @property
    def cipher(self) -> str:
        return self._transport.cipher

    # -----------------------
    # Exchange
    # -----------------------

    @contextmanager
    def _io(self):
        try:
            yield
        except Pop3MCPError as e:
            if is_fatal(e):
                self._broken = True
                logger.debug("Connection to %s unusable: %s", self.server, e)
            raise

    def _check_ready(self, command: Command) -> None:
        if self._broken or self._transport.closed or self._state is SessionState.CLOSED:
            raise NotConnectedError("Not connected to POP3 server")
        if self._draining:
            raise InvalidSessionStateError("Previous multi-line response has not been fully read")
        if command not in ALLOWED_COMMANDS[self._state]:
            raise InvalidSessionStateError(
                f"{command.value} is not allowed in the {self._state.value} state"
            )

    def _send(self, command: Command, *args: int | str) -> None:
        self._check_ready(command)
        request = Request.build(command, *args)
        logger.debug("C: %s", request.redacted())
        with self._io():
            self._transport.write_line(request.encode(self._transport.encoding))

    def _cmd(
        self,
        command: Command,
        *args: int | str,
        multiline: bool = False,
        error_cls: type[ServerRejectionError] = ServerRejectionError,
    ) -> Response:
        self._send(command, *args)
        with self._io():
            response = read_response(self._transport.read_line, multiline)
        return response.raise_for_status(error_cls)

    def _stream(self, command: Command, *args: int | str) -> Iterator[str]:
        self._send(command, *args)
        with self._io():
            read_status(self._transport.read_line).raise_for_status()
        self._draining = True
        return _BodyLines(self, iter_response_lines(self._transport.read_line))

    def _end_stream(self, *, completed: bool) -> None:
        self._draining = False
        if not completed:
            # the rest of the body is still on the wire
            self._broken = True
            logger.debug("Multi-line response from %s abandoned", self.server)

    # -----------------------
    # Authorization
    # -----------------------

    def user(self, name: str) -> None:
        """Send USER. Accepted names move the session to AWAITING_PASS."""
        _check_token(name, "user name")
        try:
            self._cmd(Command.USER, name, error_cls=AuthFailedError)
        except AuthFailedError:
            self._state = SessionState.AUTHORIZATION
            raise
        self._state = SessionState.AWAITING_PASS

    def pass_(self, password: str) -> None:
        """Send PASS. Success enters the TRANSACTION state."""
        _check_token(password, "password")
        try:
            self._cmd(Command.PASS, password, error_cls=AuthFailedError)
        except AuthFailedError:
            self._state = SessionState.AUTHORIZATION
            raise
        self._state = SessionState.TRANSACTION
        logger.info("Authenticated to %s", self.server)

    def auth(self, user: str, password: str) -> None:
        """USER then PASS. The first rejection is raised as AuthFailedError."""
        self.user(user)
        self.pass_(password)

    # -----------------------
    # Transaction
    # -----------------------

    def stat(self) -> tuple[int, int]:
        """Return ``(message count, mailbox size in octets)``."""
        response = self._cmd(Command.STAT)
        fields = response.args(1)
        with self._io():
            try:
                return int(fields[0]), int(fields[1])
            except (IndexError, ValueError):
                raise ProtocolFramingError(
                    f"pop3: malformed STAT reply {response.text[0]!r}"
                ) from None

    def list_all(self) -> list[MessageInfo]:
        """Return id and size of every message not marked as deleted."""
        response = self._cmd(Command.LIST, multiline=True)
        with self._io():
            return [_message_info(line.split(), with_size=True) for line in response.lines_from(2)]

    def list(self, message_id: int) -> MessageInfo:
        """Return id and size of one message."""
        _check_message_id(message_id)
        response = self._cmd(Command.LIST, message_id)
        with self._io():
            return _message_info(response.args(1), with_size=True)

    def uidl_all(self) -> list[MessageInfo]:
        """Return id and unique id of every message not marked as deleted."""
        response = self._cmd(Command.UIDL, multiline=True)
        with self._io():
            return [_message_info(line.split(), with_size=False) for line in response.lines_from(2)]

    def uidl(self, message_id: int) -> MessageInfo:
        """Return id and unique id of one message."""
        _check_message_id(message_id)
        response = self._cmd(Command.UIDL, message_id)
        with self._io():
            return _message_info(response.args(1), with_size=False)

    def retr_raw(self, message_id: int) -> str:
        """Return the full message text, lines joined with CRLF."""
        _check_message_id(message_id)
        return self._cmd(Command.RETR, message_id, multiline=True).join_from(2)

    def retr(self, message_id: int) -> ParsedMessage:
        """Return the full message, parsed into headers and body parts."""
        return parse_message(self.retr_raw(message_id), encoding=self._transport.encoding)

    def iter_retr(self, message_id: int) -> Iterator[str]:
        """
        Stream the message one line at a time.

        The status line is checked before returning. The iterator must be
        exhausted before the next command; abandoning it breaks the client.
        """
        _check_message_id(message_id)
        return self._stream(Command.RETR, message_id)

    def top_raw(self, message_id: int, lines: int) -> str:
        """Return the headers and the first ``lines`` body lines."""
        _check_message_id(message_id)
        if isinstance(lines, bool) or not isinstance(lines, int) or lines < 0:
            raise ArgumentContractError(f"line count must be a non-negative int, got {lines!r}")
        return self._cmd(Command.TOP, message_id, lines, multiline=True).join_from(2)

    def top(self, message_id: int, lines: int) -> ParsedMessage:
        return parse_message(self.top_raw(message_id, lines), encoding=self._transport.encoding)

    def iter_top(self, message_id: int, lines: int) -> Iterator[str]:
        _check_message_id(message_id)
        if isinstance(lines, bool) or not isinstance(lines, int) or lines < 0:
            raise ArgumentContractError(f"line count must be a non-negative int, got {lines!r}")
        return self._stream(Command.TOP, message_id, lines)

    def dele(self, message_id: int) -> None:
        """Mark a message for deletion. Takes effect at QUIT."""
        _check_message_id(message_id)
        self._cmd(Command.DELE, message_id)

    def rset(self) -> None:
        """Unmark every message marked for deletion in this session."""
        self._cmd(Command.RSET)

    def noop(self) -> None:
        """Liveness check."""
        self._cmd(Command.NOOP)

    # -----------------------
    # Teardown
    # -----------------------

    def quit(self) -> None:
        """
        Send QUIT and ignore the outcome.

        This is the one place errors are swallowed: the connection is about
        to be closed and the reply cannot change that.
        """
        if self._state is SessionState.CLOSED:
            return
        try:
            self._cmd(Command.QUIT)
        except Pop3MCPError as e:
            logger.debug("QUIT to %s failed, ignoring: %s", self.server, e)
        finally:
            self._state = SessionState.CLOSED

    def close(self) -> None:
        """QUIT (best effort), then always close the socket."""
        try:
            self.quit()
        finally:
            self._transport.close()
