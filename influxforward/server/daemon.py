"""ForwardServer — asyncio TCP server posing as Redis, forwarding to InfluxDB."""

import asyncio
import logging
import os
import signal
from collections import Counter

from influxforward.config import ForwarderConfig
from influxforward.errors import ClientDisconnected, PayloadError, ProtocolError, UpstreamError
from influxforward.output import info
from .connection import ConnectionHandler
from .protocol import REPLY_MAX_CLIENTS
from .upstream import InfluxWriter

log = logging.getLogger(__name__)


class ForwardServer:
    """Accepts shipper connections and runs one ConnectionHandler per client.

    Connections share nothing but the immutable config and the InfluxWriter.
    A failing client is logged, counted and closed; the others carry on.
    """

    def __init__(self, config: ForwarderConfig, upstream: InfluxWriter):
        self._config = config
        self._upstream = upstream
        self._server: asyncio.AbstractServer | None = None
        self._clients: dict[ConnectionHandler, asyncio.Task] = {}
        self._stats_task: asyncio.Task | None = None
        self._running = False
        self.stats = Counter()

    @property
    def port(self) -> int:
        """Bound TCP port (useful when configured with port 0)."""
        return self._server.sockets[0].getsockname()[1]

    # ── Client handler ────────────────────────────────────────────────

    async def _client_handler(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter):
        peer = writer.get_extra_info("peername") or "unknown"

        if len(self._clients) >= self._config.max_connections:
            self.stats["rejected"] += 1
            log.warning("Rejecting %s: %d clients connected", peer, len(self._clients))
            writer.write(REPLY_MAX_CLIENTS)
            writer.close()
            try:
                await writer.wait_closed()
            except OSError:
                pass
            return

        log.info("Client connected: %s", peer)
        self.stats["connections"] += 1
        handler = ConnectionHandler(reader, writer, self._config, self._upstream,
                                    on_record=self._count_record)
        self._clients[handler] = asyncio.current_task()

        try:
            await handler.run()
        except ClientDisconnected:
            log.info("Client disconnected: %s", peer)
        except asyncio.TimeoutError:
            self.stats["timeouts"] += 1
            log.warning("Timed out waiting for a command from %s", peer)
        except ProtocolError as e:
            self.stats["protocol_errors"] += 1
            log.warning("Protocol error from %s: %s", peer, e)
        except PayloadError as e:
            self.stats["payload_errors"] += 1
            log.warning("Bad log record from %s: %s", peer, e)
        except UpstreamError as e:
            self.stats["upstream_errors"] += 1
            log.error("Upstream write for %s failed: %s", peer, e)
        except OSError as e:
            # TimeoutError is an OSError on 3.11+, already handled above
            self.stats["connection_errors"] += 1
            log.info("Connection error with %s: %s", peer, e)
        except asyncio.CancelledError:
            pass
        finally:
            self._clients.pop(handler, None)

    def _count_record(self):
        self.stats["records"] += 1

    def stats_data(self) -> dict:
        data = {key: self.stats[key] for key in (
            "connections", "rejected", "records", "protocol_errors",
            "payload_errors", "upstream_errors", "timeouts", "connection_errors",
        )}
        data["clients"] = len(self._clients)
        return data

    # ── Stats ─────────────────────────────────────────────────────────

    async def _stats_loop(self):
        try:
            while self._running:
                await asyncio.sleep(self._config.stats_interval)
                if not self._running:
                    break
                log.info("Stats: %s", self.stats_data())
        except asyncio.CancelledError:
            pass

    # ── Lifecycle ─────────────────────────────────────────────────────

    async def start(self):
        """Bind the listening socket and start accepting clients."""
        self._running = True
        self._server = await asyncio.start_server(
            self._client_handler,
            host=self._config.listen_host,
            port=self._config.listen_port,
        )
        if self._config.stats_interval:
            self._stats_task = asyncio.create_task(self._stats_loop())
        log.info("Listening on port %d (PID %d)", self.port, os.getpid())

    async def stop(self):
        """Graceful shutdown: stop accepting, drop clients, report totals."""
        log.info("Shutting down forwarder...")
        self._running = False

        if self._stats_task:
            self._stats_task.cancel()
            try:
                await self._stats_task
            except asyncio.CancelledError:
                pass

        if self._server:
            self._server.close()

        tasks = list(self._clients.values())
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._clients.clear()

        if self._server:
            await self._server.wait_closed()

        log.info("Forwarder stopped. Totals: %s", self.stats_data())

    async def run_forever(self):
        """Start and run until SIGINT/SIGTERM."""
        await self.start()

        loop = asyncio.get_running_loop()
        stop_event = asyncio.Event()

        def _signal_handler():
            stop_event.set()

        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, _signal_handler)

        info(f"Forwarding LPUSH on port {self.port} to {self._config.influxdb_url} (PID {os.getpid()})")
        info("Press Ctrl+C to stop.")

        await stop_event.wait()
        await self.stop()
