"""
Response Parser
===============

Consumes transport lines and produces a structured ``Response``.

Per response:

1. The first line is split on its first space into status code and
   remainder. Anything other than ``+OK`` / ``-ERR`` is a framing error.
2. ``-ERR``: the remainder is the only text. Nothing else is read, even if
   the verb normally answers with a multi-line body.
3. ``+OK`` on a multi-line verb: lines are read until a lone ``.``, which is
   not stored. EOF before it is a framing error.
4. ``+OK`` on a single-line verb: the remainder is the only text.

Line numbers used by ``args``, ``lines_from`` and ``join_from`` are 1-based:
line 1 is the status text, the body starts at line 2.
"""

from __future__ import annotations

from collections.abc import Callable, Iterator
from dataclasses import dataclass, field
from enum import Enum

from contracts import (
    ConnectionClosedError,
    ResponseLineError,
    ServerRejectionError,
    TruncatedResponseError,
    UnknownStatusCodeError,
)

CRLF = "\r\n"
TERMINATOR = "."

ReadLine = Callable[[], str]


class Status(str, Enum):
    """Status indicator of a server reply."""

    OK = "+OK"
    ERR = "-ERR"


@dataclass
class Response:
    """A parsed server reply. ``text[0]`` is the status-line remainder."""

    status: Status
    text: list[str] = field(default_factory=lambda: [""])

    @property
    def ok(self) -> bool:
        return self.status is Status.OK

    @property
    def multiline(self) -> bool:
        return len(self.text) > 1

    def raise_for_status(
        self, error_cls: type[ServerRejectionError] = ServerRejectionError
    ) -> Response:
        """Raise ``error_cls`` carrying the server text if the reply is ``-ERR``."""
        if not self.ok:
            raise error_cls(self.text[0])
        return self

    def _index(self, n: int, *, allow_tail: bool = False) -> int:
        # allow_tail lets n point one past the last line, giving an empty tail
        upper = len(self.text) + 1 if allow_tail else len(self.text)
        if not 1 <= n <= upper:
            raise ResponseLineError(
                f"line {n} out of range for response with {len(self.text)} line(s)"
            )
        return n - 1

    def args(self, n: int = 1) -> list[str]:
        """Whitespace-separated fields of line ``n``."""
        return self.text[self._index(n)].split()

    def lines_from(self, n: int) -> list[str]:
        """Lines ``n`` through the end."""
        return self.text[self._index(n, allow_tail=True):]

    def join_from(self, n: int) -> str:
        """Lines ``n`` through the end, rejoined with CRLF."""
        return CRLF.join(self.lines_from(n))


def parse_status_line(line: str) -> tuple[Status, str]:
    """Split a status line into its status and remaining text."""
    code, _, remainder = line.partition(" ")
    try:
        status = Status(code)
    except ValueError:
        raise UnknownStatusCodeError(f"pop3: unknown response code in {line!r}") from None
    return status, remainder


def unstuff(line: str) -> str:
    """Undo RFC 1939 byte-stuffing of a body line."""
    if line.startswith(".."):
        return line[1:]
    return line


def iter_response_lines(read_line: ReadLine) -> Iterator[str]:
    """
    Yield body lines of a multi-line reply until the terminator.

    The generator is single-pass. It must be exhausted before the next
    request is sent on the same connection.
    """
    while True:
        try:
            line = read_line()
        except ConnectionClosedError as e:
            raise TruncatedResponseError(
                "pop3: termination octet in multiline response is missing"
            ) from e
        if line == TERMINATOR:
            return
        yield unstuff(line)


def read_status(read_line: ReadLine) -> Response:
    """Read and parse only the status line."""
    status, remainder = parse_status_line(read_line())
    return Response(status, [remainder])


def read_response(read_line: ReadLine, multiline: bool = False) -> Response:
    """Read one complete reply from ``read_line``."""
    response = read_status(read_line)
    if response.ok and multiline:
        response.text.extend(iter_response_lines(read_line))
    return response
