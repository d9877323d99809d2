"""Fake Redis protocol — the two RESP command shapes a log shipper sends.

    AUTH:   *2\\r\\n$4\\r\\nAUTH\\r\\n$<n>\\r\\n<password>\\r\\n         → +OK\\r\\n
    LPUSH:  *3\\r\\n$5\\r\\nLPUSH\\r\\n$<k>\\r\\n<key>\\r\\n$<n>\\r\\n<json>\\r\\n → :1\\r\\n

This is a recognizer for exactly those shapes, not a RESP parser.
"""

import asyncio
import hmac
import logging
import re
from dataclasses import dataclass

from influxforward.errors import ClientDisconnected, FramingError, ProtocolError

log = logging.getLogger(__name__)

CRLF = b"\r\n"

REPLY_OK = b"+OK\r\n"
REPLY_PUSHED = b":1\r\n"  # pretend the list is one element long
REPLY_MAX_CLIENTS = b"-ERR max number of clients reached\r\n"

_BULK_HEADER_RE = re.compile(rb"^\$([0-9]+)$")


# ── Commands ──────────────────────────────────────────────────────────

@dataclass(frozen=True)
class Authenticate:
    password: bytes


@dataclass(frozen=True)
class Push:
    key: bytes
    payload: bytes


# ── Encode (client side) ──────────────────────────────────────────────

def encode_command(*args: bytes | str) -> bytes:
    """Frame a command as a RESP array of bulk strings."""
    out = [b"*%d\r\n" % len(args)]
    for arg in args:
        if isinstance(arg, str):
            arg = arg.encode()
        out.append(b"$%d\r\n" % len(arg))
        out.append(arg + CRLF)
    return b"".join(out)


# ── Framed reader ─────────────────────────────────────────────────────

class FramedReader:
    """Pull-based reader of CRLF header lines and exact-length bodies."""

    def __init__(self, reader: asyncio.StreamReader):
        self._reader = reader

    async def read_line(self) -> bytes:
        """Read one header line and return it without its CRLF."""
        try:
            line = await self._reader.readuntil(b"\n")
        except asyncio.IncompleteReadError as e:
            if not e.partial:
                raise ClientDisconnected("peer closed the connection") from None
            raise FramingError(f"stream ended inside header line {e.partial!r}") from None
        except asyncio.LimitOverrunError:
            raise FramingError("header line too long") from None
        if not line.endswith(CRLF):
            raise FramingError(f"header line {line!r} is not CRLF-terminated")
        return line[:-2]

    async def read_exact(self, n: int) -> bytes:
        """Read exactly n body bytes plus the CRLF that must follow them."""
        try:
            body = await self._reader.readexactly(n)
            terminator = await self._reader.readexactly(2)
        except asyncio.IncompleteReadError as e:
            raise FramingError(
                f"stream ended after {len(e.partial)} of {e.expected} expected bytes"
            ) from None
        if terminator != CRLF:
            raise FramingError(f"expected CRLF after {n}-byte body but got {terminator!r}")
        return body


# ── Recognizer ────────────────────────────────────────────────────────

class CommandRecognizer:
    """Matches the stream against the AUTH and LPUSH shapes, one at a time."""

    def __init__(self, reader: FramedReader, password: str, key: str,
                 max_payload_bytes: int):
        self._reader = reader
        self._password = password.encode()
        self._key = key.encode()
        self._max_payload_bytes = max_payload_bytes

    async def read_authenticate(self) -> Authenticate:
        await self._expect_array(2)
        await self._expect_bulk(b"AUTH")
        await self._expect_token(b"$%d" % len(self._password))
        password = await self._reader.read_exact(len(self._password))
        if not hmac.compare_digest(password, self._password):
            raise ProtocolError("wrong password")
        return Authenticate(password)

    async def read_push(self) -> Push:
        await self._expect_array(3)
        await self._expect_bulk(b"LPUSH")
        await self._expect_bulk(self._key)
        n = await self._read_bulk_length()
        if n > self._max_payload_bytes:
            raise ProtocolError(f"payload of {n} bytes exceeds limit of {self._max_payload_bytes}")
        log.debug("Got $%d", n)
        payload = await self._reader.read_exact(n)
        return Push(self._key, payload)

    # ── Steps ─────────────────────────────────────────────────────────

    async def _expect_token(self, expected: bytes):
        line = await self._reader.read_line()
        if line.upper() != expected.upper():
            raise ProtocolError(f"expected {expected!r} but got {line!r}")

    async def _expect_array(self, n: int):
        await self._expect_token(b"*%d" % n)

    async def _expect_bulk(self, word: bytes):
        """Header + body of a fixed word, compared case-insensitively."""
        await self._expect_token(b"$%d" % len(word))
        value = await self._reader.read_exact(len(word))
        if value.upper() != word.upper():
            raise ProtocolError(f"expected {word!r} but got {value!r}")

    async def _read_bulk_length(self) -> int:
        line = await self._reader.read_line()
        match = _BULK_HEADER_RE.match(line)
        if not match:
            raise ProtocolError(f"expected bulk string header but got {line!r}")
        return int(match.group(1))
