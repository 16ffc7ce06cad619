"""
Request Encoder
===============

Turns a command and its ordered arguments into the exact wire line.

Arguments are not escaped. POP3 has no quoting mechanism, so callers must
not pass tokens containing whitespace or control characters; the session
client checks that before encoding.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

CRLF = "\r\n"


class Command(str, Enum):
    """POP3 verbs sent by the client (RFC 1939)."""

    USER = "USER"
    PASS = "PASS"
    STAT = "STAT"
    LIST = "LIST"
    RETR = "RETR"
    DELE = "DELE"
    NOOP = "NOOP"
    RSET = "RSET"
    TOP = "TOP"
    UIDL = "UIDL"
    QUIT = "QUIT"


@dataclass(frozen=True)
class Request:
    """One client request: ``COMMAND[ arg]*\\r\\n``."""

    command: Command
    args: tuple[str, ...] = ()

    @classmethod
    def build(cls, command: Command, *args: int | str) -> Request:
        return cls(command, tuple(str(arg) for arg in args))

    def __str__(self) -> str:
        return " ".join((self.command.value, *self.args)) + CRLF

    def redacted(self) -> str:
        """Printable form for logs, with the PASS argument masked."""
        if self.command is Command.PASS:
            return f"{Command.PASS.value} ****"
        return str(self).rstrip(CRLF)

    def encode(self, encoding: str = "utf-8") -> bytes:
        return str(self).encode(encoding, "surrogateescape")


def encode(command: Command, *args: int | str, encoding: str = "utf-8") -> bytes:
    """Encode a request line, terminator included."""
    return Request.build(command, *args).encode(encoding)
