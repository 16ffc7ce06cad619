"""
Message Structuring
===================

Turns raw RETR/TOP text into headers and leaf body parts using the standard
``email`` package. The protocol engine never interprets message content;
only the parsed client verbs call into this module.
"""

from __future__ import annotations

import email
import email.message
from email.header import decode_header

from contracts import MessagePart, ParsedMessage


def parse_message(raw: str | bytes, *, encoding: str = "utf-8") -> ParsedMessage:
    """Parse a raw RFC 5322 message into a ``ParsedMessage``."""
    if isinstance(raw, str):
        raw = raw.encode(encoding, "surrogateescape")
    msg = email.message_from_bytes(raw)

    headers: dict[str, str] = {}
    for name, value in msg.items():
        decoded = _decode_header(str(value))
        # repeated headers (Received, ...) are folded into one entry
        if name in headers:
            headers[name] = f"{headers[name]}, {decoded}"
        else:
            headers[name] = decoded

    return ParsedMessage(headers=headers, body_parts=_parse_parts(msg))


def _parse_parts(msg: email.message.Message) -> list[MessagePart]:
    parts = []
    for part in msg.walk():
        if part.is_multipart():
            continue
        payload = part.get_payload(decode=True) or b""
        filename = part.get_filename()
        charset = part.get_content_charset()
        content_type = part.get_content_type()

        if content_type.startswith("text/") and not filename:
            content = _decode_bytes(payload, charset)
        else:
            content = ""

        parts.append(
            MessagePart(
                content_type=content_type,
                filename=_decode_header(filename) if filename else None,
                charset=charset,
                content=content,
                size_bytes=len(payload),
            )
        )
    return parts


def _decode_bytes(data: bytes, charset: str | None) -> str:
    try:
        return data.decode(charset or "utf-8", errors="replace")
    except LookupError:
        return data.decode("utf-8", errors="replace")


def _decode_header(header: str) -> str:
    """Decode RFC 2047 encoded header."""
    if not header:
        return ""

    decoded_parts = []
    for part, charset in decode_header(header):
        if isinstance(part, bytes):
            decoded_parts.append(_decode_bytes(part, charset))
        else:
            decoded_parts.append(part)
    return "".join(decoded_parts)
