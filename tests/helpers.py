"""
Test doubles shared by the test modules.

- ScriptedTransport: in-memory line transport fed from a list of lines.
- FakePop3Server: threaded POP3 server on 127.0.0.1 holding an in-memory
  mailbox. Plaintext by default; pass ``tls_context`` for implicit TLS.
- certs/: test CA (ca.pem) and a leaf certificate for DNS:localhost only,
  signed by it.
"""

import socketserver
import ssl
import threading
from pathlib import Path

from contracts import ConnectionClosedError, ConnectionFailedError
from pop3_mcp.client import Client

CERTS_DIR = Path(__file__).parent / "certs"
CA_FILE = str(CERTS_DIR / "ca.pem")

SAMPLE_MESSAGE = (
    "From: Sender <sender@example.com>\r\n"
    "To: Recipient <recipient@example.com>\r\n"
    "Subject: POP3 test mail\r\n"
    "Message-ID: <abc123@example.com>\r\n"
    'Content-Type: text/plain; charset="utf-8"\r\n'
    "\r\n"
    "POP3 test message\r\n"
    "second line of the message"
)


class ScriptedTransport:
    """Line transport that replays scripted server lines."""

    def __init__(self, lines, encoding="utf-8"):
        self._lines = list(lines)
        self.written = []
        self.closed = False
        self.encoding = encoding
        self.tls_version = ""
        self.cipher = ""
        self.reads = 0

    @property
    def remaining(self):
        return list(self._lines)

    @property
    def sent(self):
        return [data.decode(self.encoding) for data in self.written]

    def write_line(self, data):
        if self.closed:
            raise ConnectionFailedError("pop3: write failed: closed")
        self.written.append(data)

    def read_line(self):
        if not self._lines:
            raise ConnectionClosedError("pop3: connection closed by server")
        self.reads += 1
        return self._lines.pop(0)

    def close(self):
        self.closed = True


def authenticated_client(lines):
    """Client already in TRANSACTION state, replaying ``lines`` afterwards."""
    transport = ScriptedTransport(["+OK user ok", "+OK maildrop ready", *lines])
    client = Client(transport, welcome="fake ready", server="pop.example.com")
    client.auth("alice", "secret")
    transport.written.clear()
    return client, transport


# =============================================================================
# FAKE POP3 SERVER
# =============================================================================

class _Mailbox:
    def __init__(self, user, password, messages):
        self.user = user
        self.password = password
        self.messages = list(messages)
        self.lock = threading.Lock()


def server_tls_context():
    """Server-side context presenting the localhost certificate."""
    context = ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER)
    context.load_cert_chain(CERTS_DIR / "localhost.pem", CERTS_DIR / "localhost-key.pem")
    return context


class _Pop3Handler(socketserver.StreamRequestHandler):
    def setup(self):
        self.handshake_failed = False
        if isinstance(self.request, ssl.SSLSocket):
            # handshake here, off the accept loop
            try:
                self.request.do_handshake()
            except OSError:
                self.handshake_failed = True
        super().setup()

    def _send(self, line):
        self.wfile.write(line.encode("utf-8") + b"\r\n")

    def _send_body(self, lines):
        for line in lines:
            # byte-stuff lines starting with the terminator octet
            self._send("." + line if line.startswith(".") else line)
        self._send(".")

    def handle(self):
        if self.handshake_failed:
            return
        mailbox = self.server.mailbox
        deleted = set()
        user = None
        authenticated = False
        self._send(self.server.greeting)

        while True:
            raw = self.rfile.readline()
            if not raw:
                break
            self.server.received.append(raw)
            parts = raw.decode("utf-8", errors="replace").rstrip("\r\n").split(" ")
            cmd, args = parts[0].upper(), parts[1:]
            live = [
                (i, msg) for i, msg in enumerate(mailbox.messages, start=1) if i not in deleted
            ]

            if cmd == "USER":
                user = args[0]
                self._send("+OK user accepted")
            elif cmd == "PASS":
                if user == mailbox.user and args and args[0] == mailbox.password:
                    authenticated = True
                    self._send("+OK maildrop locked and ready")
                else:
                    self._send("-ERR invalid password")
            elif cmd == "QUIT":
                with mailbox.lock:
                    mailbox.messages = [m for i, m in enumerate(mailbox.messages, 1) if i not in deleted]
                self._send("+OK bye")
                break
            elif not authenticated:
                self._send("-ERR authenticate first")
            elif cmd == "STAT":
                size = sum(len(msg.encode("utf-8")) for _, msg in live)
                self._send(f"+OK {len(live)} {size}")
            elif cmd in ("LIST", "UIDL"):
                def entry(i, msg):
                    return f"{i} {len(msg.encode('utf-8'))}" if cmd == "LIST" else f"{i} uid-{i:04d}"

                if args:
                    n = int(args[0])
                    found = dict(live).get(n)
                    if found is None:
                        self._send("-ERR no such message")
                    else:
                        self._send(f"+OK {entry(n, found)}")
                else:
                    self._send(f"+OK {len(live)} messages")
                    self._send_body([entry(i, msg) for i, msg in live])
            elif cmd in ("RETR", "TOP"):
                found = dict(live).get(int(args[0]))
                if found is None:
                    self._send("-ERR no such message")
                    continue
                lines = found.split("\r\n")
                if cmd == "TOP":
                    blank = lines.index("")
                    lines = lines[: blank + 1 + int(args[1])]
                self._send(f"+OK {len(found.encode('utf-8'))} octets")
                self._send_body(lines)
            elif cmd == "DELE":
                n = int(args[0])
                if n not in dict(live):
                    self._send("-ERR message already deleted")
                else:
                    deleted.add(n)
                    self._send(f"+OK message {n} deleted")
            elif cmd == "RSET":
                deleted.clear()
                self._send("+OK")
            elif cmd == "NOOP":
                self._send("+OK")
            else:
                self._send("-ERR unknown command")


class FakePop3Server(socketserver.ThreadingTCPServer):
    allow_reuse_address = True
    daemon_threads = True

    def __init__(
        self,
        *,
        messages=(),
        user="alice",
        password="secret",
        greeting="+OK fake POP3 ready",
        tls_context=None,
    ):
        super().__init__(("127.0.0.1", 0), _Pop3Handler)
        self.tls_context = tls_context
        self.mailbox = _Mailbox(user, password, messages)
        self.greeting = greeting
        self.received = []
        self._thread = threading.Thread(target=self.serve_forever, daemon=True)

    def get_request(self):
        sock, addr = super().get_request()
        if self.tls_context is not None:
            sock = self.tls_context.wrap_socket(
                sock, server_side=True, do_handshake_on_connect=False
            )
        return sock, addr

    @property
    def address(self):
        host, port = self.server_address[:2]
        return f"{host}:{port}"

    def start(self):
        self._thread.start()
        return self

    def stop(self):
        self.shutdown()
        self.server_close()
        self._thread.join(timeout=5)


