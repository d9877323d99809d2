"""Tests for influxforward.server.protocol — framing and the AUTH/LPUSH recognizer."""

import asyncio

import pytest

from influxforward.errors import ClientDisconnected, FramingError, ProtocolError
from influxforward.server.protocol import (
    Authenticate, CommandRecognizer, FramedReader, Push, encode_command,
)

AUTH = b"*2\r\n$4\r\nAUTH\r\n$6\r\nsecret\r\n"


def recognize(data: bytes, *methods: str, max_payload_bytes: int = 1024):
    """Feed data to a fresh recognizer and call the named read_* methods in turn."""
    async def go():
        reader = asyncio.StreamReader()
        reader.feed_data(data)
        reader.feed_eof()
        commands = CommandRecognizer(
            FramedReader(reader), password="secret", key="belugacdn",
            max_payload_bytes=max_payload_bytes,
        )
        return [await getattr(commands, name)() for name in methods]

    return asyncio.run(go())


def lpush(payload: bytes, declared: int | None = None) -> bytes:
    n = len(payload) if declared is None else declared
    return b"*3\r\n$5\r\nLPUSH\r\n$9\r\nbelugacdn\r\n$%d\r\n%s\r\n" % (n, payload)


class TestEncodeCommand:
    def test_auth_frame(self):
        """Client-side framing matches what shippers send."""
        assert encode_command("AUTH", "secret") == AUTH

    def test_binary_argument(self):
        """Byte arguments are framed by byte length."""
        assert encode_command(b"LPUSH", b"k", b"a\r\nb") == (
            b"*3\r\n$5\r\nLPUSH\r\n$1\r\nk\r\n$4\r\na\r\nb\r\n"
        )


class TestAuthenticate:
    def test_correct_password(self):
        """Exact password is accepted."""
        assert recognize(AUTH, "read_authenticate") == [Authenticate(b"secret")]

    def test_command_word_case_insensitive(self):
        """auth in lowercase is the same command."""
        assert recognize(encode_command("auth", "secret"), "read_authenticate")

    @pytest.mark.parametrize("password", ["SECRET", "secreT", "s3cret"])
    def test_wrong_password_same_length(self, password):
        """Password comparison is exact and case-sensitive."""
        with pytest.raises(ProtocolError):
            recognize(encode_command("AUTH", password), "read_authenticate")

    @pytest.mark.parametrize("password", ["", "secre", "secrets"])
    def test_wrong_password_length(self, password):
        """A different length fails at the bulk header."""
        with pytest.raises(ProtocolError):
            recognize(encode_command("AUTH", password), "read_authenticate")

    def test_other_command(self):
        """Anything but AUTH first is a protocol error."""
        with pytest.raises(ProtocolError):
            recognize(encode_command("PING", "secret"), "read_authenticate")

    def test_wrong_arity(self):
        """AUTH with a username (Redis 6 form) is not recognized."""
        with pytest.raises(ProtocolError):
            recognize(encode_command("AUTH", "default", "secret"), "read_authenticate")


class TestPush:
    def test_payload_returned(self):
        """LPUSH yields the raw payload bytes."""
        result = recognize(lpush(b'{"time":"1"}'), "read_push")
        assert result == [Push(b"belugacdn", b'{"time":"1"}')]

    def test_after_auth(self):
        """AUTH then LPUSH on the same stream."""
        auth, push = recognize(AUTH + lpush(b"{}"), "read_authenticate", "read_push")
        assert auth.password == b"secret"
        assert push.payload == b"{}"

    def test_payload_with_crlf(self):
        """Embedded CR/LF is payload, not framing."""
        payload = b'{"msg":"line1\r\nline2\r\n"}'
        assert recognize(lpush(payload), "read_push")[0].payload == payload

    def test_consecutive_pushes(self):
        """Commands are read one after the other from one stream."""
        data = lpush(b"first") + lpush(b"second")
        pushes = recognize(data, "read_push", "read_push")
        assert [p.payload for p in pushes] == [b"first", b"second"]

    def test_empty_payload(self):
        """A zero-length bulk string is still well framed."""
        assert recognize(lpush(b""), "read_push")[0].payload == b""

    def test_lowercase_command(self):
        """lpush in lowercase is the same command."""
        data = encode_command("lpush", "belugacdn", "{}")
        assert recognize(data, "read_push")[0].payload == b"{}"

    def test_wrong_key(self):
        """Only the configured list key is accepted."""
        with pytest.raises(ProtocolError):
            recognize(encode_command("LPUSH", "otherkey1", "{}"), "read_push")

    def test_other_command(self):
        """RPUSH is not LPUSH."""
        with pytest.raises(ProtocolError):
            recognize(encode_command("RPUSH", "belugacdn", "{}"), "read_push")

    def test_multiple_values_rejected(self):
        """LPUSH key v1 v2 has the wrong arity."""
        with pytest.raises(ProtocolError):
            recognize(encode_command("LPUSH", "belugacdn", "a", "b"), "read_push")

    @pytest.mark.parametrize("header", [b"$-1", b"$abc", b"$", b"+5", b"$ 5"])
    def test_bad_length_header(self, header):
        """Payload header must be $ followed by digits."""
        data = b"*3\r\n$5\r\nLPUSH\r\n$9\r\nbelugacdn\r\n" + header + b"\r\n{}\r\n"
        with pytest.raises(ProtocolError):
            recognize(data, "read_push")

    def test_payload_too_large(self):
        """Declared lengths above the limit are refused before reading."""
        with pytest.raises(ProtocolError, match="exceeds"):
            recognize(lpush(b"x" * 20), "read_push", max_payload_bytes=10)


class TestFraming:
    def test_declared_length_too_short(self):
        """Fewer declared bytes than sent leaves no CRLF where one is due."""
        with pytest.raises(FramingError):
            recognize(lpush(b'{"time":"1"}', declared=5), "read_push")

    def test_declared_length_too_long(self):
        """More declared bytes than the stream holds."""
        with pytest.raises(FramingError):
            recognize(lpush(b'{"time":"1"}', declared=50), "read_push")

    def test_framing_error_is_protocol_error(self):
        """Callers can treat all framing failures as protocol errors."""
        with pytest.raises(ProtocolError):
            recognize(lpush(b"abcd", declared=3), "read_push")

    def test_missing_terminator(self):
        """Payload followed by something other than CRLF."""
        data = b"*3\r\n$5\r\nLPUSH\r\n$9\r\nbelugacdn\r\n$2\r\n{}XX"
        with pytest.raises(FramingError):
            recognize(data, "read_push")

    def test_bare_lf_header(self):
        """Header lines must end in CRLF."""
        with pytest.raises(FramingError):
            recognize(b"*2\n$4\r\nAUTH\r\n$6\r\nsecret\r\n", "read_authenticate")

    def test_truncated_header(self):
        """Stream ends in the middle of a header line."""
        with pytest.raises(FramingError):
            recognize(b"*3\r\n$5", "read_push")

    def test_eof_between_commands(self):
        """A clean hang-up before the next command is not a framing error."""
        with pytest.raises(ClientDisconnected):
            recognize(AUTH, "read_authenticate", "read_push")
