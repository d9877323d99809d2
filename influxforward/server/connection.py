"""Per-connection state machine: AWAITING_AUTH → READY → CLOSED."""

import asyncio
import logging
from enum import Enum

from influxforward.config import ForwarderConfig
from influxforward.lineproto import encode_record, parse_payload
from .protocol import REPLY_OK, REPLY_PUSHED, CommandRecognizer, FramedReader
from .upstream import InfluxWriter

log = logging.getLogger(__name__)


class ConnectionState(Enum):
    AWAITING_AUTH = "awaiting_auth"
    READY = "ready"
    CLOSED = "closed"


class ConnectionHandler:
    """Serves one client: authenticate once, then forward pushes forever.

    Every error propagates out of run() to the caller, which decides how to
    log it; the transport is closed on the way out no matter what failed.
    """

    def __init__(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter,
                 config: ForwarderConfig, upstream: InfluxWriter, on_record=None):
        self._writer = writer
        self._config = config
        self._upstream = upstream
        self._on_record = on_record
        self._commands = CommandRecognizer(
            FramedReader(reader),
            password=config.expected_password,
            key=config.redis_key,
            max_payload_bytes=config.max_payload_bytes,
        )
        self.state = ConnectionState.AWAITING_AUTH
        self.peer = writer.get_extra_info("peername") or "unknown"

    async def run(self):
        try:
            await self._authenticate()
            while True:
                await self._forward_one()
        finally:
            await self.close()

    async def close(self):
        if self.state is ConnectionState.CLOSED:
            return
        self.state = ConnectionState.CLOSED
        log.info("Closing connection %s", self.peer)
        self._writer.close()
        try:
            await self._writer.wait_closed()
        except OSError:
            pass

    # ── Steps ─────────────────────────────────────────────────────────

    async def _authenticate(self):
        log.debug("Awaiting AUTH command from %s", self.peer)
        await self._timed(self._commands.read_authenticate())
        await self._reply(REPLY_OK)
        self.state = ConnectionState.READY
        log.info("Client authenticated: %s", self.peer)

    async def _forward_one(self):
        log.debug("Awaiting LPUSH command from %s", self.peer)
        push = await self._timed(self._commands.read_push())
        record = parse_payload(push.payload)
        statement = encode_record(record, self._config.influxdb_measurement)
        log.debug("Statement is %s", statement)
        await self._upstream.write(statement)
        if self._on_record:
            self._on_record()
        await self._reply(REPLY_PUSHED)

    async def _timed(self, coro):
        if self._config.read_timeout is None:
            return await coro
        return await asyncio.wait_for(coro, self._config.read_timeout)

    async def _reply(self, data: bytes):
        self._writer.write(data)
        await self._writer.drain()
