"""
Line Transport
==============

Plain or TLS-wrapped TCP stream with line reads and flushed writes.

Errors surface as contract types: ``ConnectionClosedError`` on EOF or an
expired read deadline, ``ConnectionFailedError`` on other socket failures,
``LineTooLongError`` when the server sends an over-long line.
"""

from __future__ import annotations

import logging
import socket
import ssl

from contracts import (
    ArgumentContractError,
    CertificateVerificationError,
    ConnectionClosedError,
    ConnectionFailedError,
    LineTooLongError,
    TLSHandshakeError,
)
from pop3_mcp.config import ClientOptions

logger = logging.getLogger("pop3-mcp.transport")

# RFC 1939 limits lines to 512 octets; servers exceed it in practice.
_MAXLINE = 2048

CR = b"\r"
LF = b"\n"
CRLF = CR + LF


def split_address(address: str) -> tuple[str, int]:
    """Split ``host:port`` (``[v6addr]:port`` for IPv6) into its parts."""
    host, sep, port = address.rpartition(":")
    if not sep or not host or not port.isdigit():
        raise ArgumentContractError(f"address must be host:port, got {address!r}")
    if host.startswith("[") and host.endswith("]"):
        host = host[1:-1]
    return host, int(port)


class LineTransport:
    """Owns one socket. Not safe for concurrent use."""

    def __init__(self, sock: socket.socket, *, encoding: str = "utf-8", peer: str = "") -> None:
        self._sock = sock
        self._file = sock.makefile("rb")
        self._closed = False
        self.encoding = encoding
        self.peer = peer

    @classmethod
    def dial(cls, host: str, port: int, options: ClientOptions) -> LineTransport:
        """Connect to ``host:port``, upgrading to TLS if enabled."""
        try:
            sock = socket.create_connection((host, port), timeout=options.dial_timeout)
        except OSError as e:
            raise ConnectionFailedError(f"Failed to connect to {host}:{port}: {e}") from e

        if options.tls_enabled:
            sock = cls._wrap_tls(
                sock, host, skip_verify=options.tls_skip_verify, ca_file=options.tls_ca_file
            )

        sock.settimeout(options.read_timeout)
        logger.debug("Connected to %s:%s (tls=%s)", host, port, options.tls_enabled)
        return cls(sock, encoding=options.encoding, peer=f"{host}:{port}")

    @staticmethod
    def _wrap_tls(
        sock: socket.socket, server_name: str, *, skip_verify: bool, ca_file: str | None = None
    ) -> ssl.SSLSocket:
        context = ssl.create_default_context()
        if skip_verify:
            logger.warning("TLS verification disabled for %s; connection is insecure", server_name)
            context.check_hostname = False
            context.verify_mode = ssl.CERT_NONE
        try:
            if ca_file:
                context.load_verify_locations(cafile=ca_file)
            return context.wrap_socket(sock, server_hostname=server_name)
        except ssl.SSLCertVerificationError as e:
            sock.close()
            raise CertificateVerificationError(
                f"Certificate verification failed for {server_name}: {e.verify_message or e}"
            ) from e
        except (ssl.SSLError, OSError) as e:
            sock.close()
            raise TLSHandshakeError(f"TLS handshake with {server_name} failed: {e}") from e

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def tls_version(self) -> str:
        if isinstance(self._sock, ssl.SSLSocket):
            return self._sock.version() or ""
        return ""

    @property
    def cipher(self) -> str:
        if isinstance(self._sock, ssl.SSLSocket):
            cipher_info = self._sock.cipher()
            if cipher_info:
                return cipher_info[0]
        return ""

    def write_line(self, data: bytes) -> None:
        """Send one encoded line. Returns once the bytes are handed to the kernel."""
        try:
            self._sock.sendall(data)
        except OSError as e:
            raise ConnectionFailedError(f"pop3: write failed: {e}") from e

    def read_line(self) -> str:
        """Block until one line arrives; return it without its terminator."""
        try:
            line = self._file.readline(_MAXLINE + len(CRLF) + 1)
        except TimeoutError as e:
            raise ConnectionClosedError("pop3: read timed out") from e
        except OSError as e:
            raise ConnectionFailedError(f"pop3: read failed: {e}") from e

        if not line:
            raise ConnectionClosedError("pop3: connection closed by server")
        # server can send CRLF or a bare LF
        if line.endswith(CRLF):
            line = line[:-2]
        elif line.endswith(LF):
            line = line[:-1]
        # the terminator does not count towards the limit
        if len(line) > _MAXLINE:
            raise LineTooLongError("pop3: line too long")
        return line.decode(self.encoding, "surrogateescape")

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            self._file.close()
        finally:
            self._sock.close()
