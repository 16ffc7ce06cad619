"""
Response Parser Tests
=====================

Status detection, single-line vs multi-line handling and terminator rules.
"""

import pytest

from contracts import (
    ProtocolFramingError,
    ResponseLineError,
    ServerRejectionError,
    TruncatedResponseError,
    UnknownStatusCodeError,
)
from pop3_mcp.response import (
    Response,
    Status,
    iter_response_lines,
    parse_status_line,
    read_response,
    unstuff,
)
from tests.helpers import ScriptedTransport


def _read(lines, multiline):
    transport = ScriptedTransport(lines)
    return read_response(transport.read_line, multiline), transport


class TestStatusLine:
    """Tests for status token detection."""

    def test_positive_with_text(self):
        assert parse_status_line("+OK 2 320") == (Status.OK, "2 320")

    def test_negative_with_text(self):
        assert parse_status_line("-ERR no such message") == (Status.ERR, "no such message")

    def test_status_without_text(self):
        assert parse_status_line("+OK") == (Status.OK, "")

    @pytest.mark.parametrize("line", ["OK", "OK 1 2", "+ok", "", "* OK", "-ERROR x"])
    def test_unknown_status_code(self, line):
        with pytest.raises(UnknownStatusCodeError):
            parse_status_line(line)

    def test_unknown_status_is_framing_error(self):
        """Malformed status never defaults to negative."""
        with pytest.raises(ProtocolFramingError):
            _read(["OK welcome"], multiline=False)


class TestSingleLine:
    """Tests for single-line replies."""

    def test_positive_single_line(self):
        response, transport = _read(["+OK 2 320", "unrelated"], multiline=False)

        assert response.status is Status.OK
        assert response.text == ["2 320"]
        assert response.multiline is False
        assert transport.remaining == ["unrelated"]

    def test_empty_text_is_one_empty_line(self):
        response, _ = _read(["+OK"], multiline=False)

        assert response.text == [""]


class TestMultiLine:
    """Tests for multi-line replies."""

    def test_terminator_is_stripped(self):
        response, transport = _read(["+OK 2 messages", "1 120", "2 200", "."], multiline=True)

        assert response.text == ["2 messages", "1 120", "2 200"]
        assert response.multiline is True
        assert response.text[-1] != "."
        assert transport.remaining == []

    def test_empty_body_is_not_an_error(self):
        response, _ = _read(["+OK 0 messages", "."], multiline=True)

        assert response.text == ["0 messages"]
        assert response.lines_from(2) == []
        assert response.join_from(2) == ""

    def test_negative_reply_reads_only_one_line(self):
        """A -ERR to a multi-line verb must not wait for a terminator."""
        response, transport = _read(["-ERR no such mailbox"], multiline=True)

        assert response.status is Status.ERR
        assert response.text == ["no such mailbox"]
        assert transport.reads == 1

    def test_negative_reply_leaves_following_lines_unread(self):
        _, transport = _read(["-ERR nope", "+OK next"], multiline=True)

        assert transport.remaining == ["+OK next"]

    def test_truncated_body(self):
        with pytest.raises(TruncatedResponseError):
            _read(["+OK", "From: a@example.com", "body"], multiline=True)

    def test_byte_stuffed_lines_are_unstuffed(self):
        response, _ = _read(["+OK", "..", "..hidden", ".", "ignored"], multiline=True)

        assert response.lines_from(2) == [".", ".hidden"]

    def test_unstuff_only_touches_leading_double_dot(self):
        assert unstuff("..x") == ".x"
        assert unstuff(".x") == ".x"
        assert unstuff("a..") == "a.."

    def test_lazy_iteration_is_single_pass(self):
        transport = ScriptedTransport(["a", "b", ".", "+OK next"])
        lines = iter_response_lines(transport.read_line)

        assert next(lines) == "a"
        assert transport.remaining == ["b", ".", "+OK next"]
        assert list(lines) == ["b"]
        assert list(lines) == []
        assert transport.remaining == ["+OK next"]


class TestLineHelpers:
    """Tests for args, lines_from and join_from."""

    @pytest.fixture
    def listing(self):
        return Response(Status.OK, ["2 messages (320 octets)", "1  120", "2\t200"])

    def test_args_split_on_whitespace_runs(self, listing):
        assert listing.args(1) == ["2", "messages", "(320", "octets)"]
        assert listing.args(2) == ["1", "120"]
        assert listing.args(3) == ["2", "200"]

    def test_lines_from(self, listing):
        assert listing.lines_from(2) == ["1  120", "2\t200"]
        assert listing.lines_from(4) == []

    def test_join_from_uses_crlf(self, listing):
        assert listing.join_from(2) == "1  120\r\n2\t200"

    @pytest.mark.parametrize("n", [0, -1, 4])
    def test_args_out_of_range(self, listing, n):
        with pytest.raises(ResponseLineError):
            listing.args(n)

    @pytest.mark.parametrize("n", [0, 5])
    def test_lines_from_out_of_range(self, listing, n):
        with pytest.raises(IndexError):
            listing.lines_from(n)

    def test_raise_for_status(self):
        with pytest.raises(ServerRejectionError) as excinfo:
            Response(Status.ERR, ["no such message"]).raise_for_status()

        assert excinfo.value.text == "no such message"
        assert str(excinfo.value) == "pop3: no such message"

    def test_raise_for_status_returns_positive_response(self):
        response = Response(Status.OK, ["fine"])

        assert response.raise_for_status() is response
