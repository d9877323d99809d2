"""InfluxWriter — InfluxDB 1.x HTTP client for database bootstrap and writes."""

import asyncio
import logging

import httpx

from influxforward.config import ForwarderConfig
from influxforward.errors import BootstrapError, UpstreamError

log = logging.getLogger(__name__)

WRITE_OK = (200, 204)


class InfluxWriter:
    """Shared async HTTP handle to the time-series store.

    One instance serves every connection; at most ``max_upstream_writes``
    POSTs are in flight at once and none is ever retried.
    """

    def __init__(self, config: ForwarderConfig, transport: httpx.AsyncBaseTransport | None = None):
        self._database = config.influxdb_database
        self._client = httpx.AsyncClient(
            base_url=config.influxdb_url,
            timeout=config.upstream_timeout,
            transport=transport,
        )
        self._slots = asyncio.Semaphore(config.max_upstream_writes)

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        await self.aclose()

    async def aclose(self):
        await self._client.aclose()

    async def create_database(self):
        """GET /query?q=CREATE+DATABASE+<db>. Raises BootstrapError."""
        query = f"CREATE DATABASE {self._database}"
        try:
            resp = await self._client.get("/query", params={"q": query})
        except httpx.HTTPError as e:
            raise BootstrapError(f"cannot reach InfluxDB at {self._client.base_url}: {e}") from e
        log.info("Bootstrap response status: %d", resp.status_code)
        log.debug("Bootstrap response body: %s", resp.text)
        if resp.status_code != 200:
            raise BootstrapError(f"bad status {resp.status_code} from {resp.request.url}")

    async def write(self, statement: str):
        """POST one line-protocol statement. Raises UpstreamError."""
        async with self._slots:
            try:
                resp = await self._client.post(
                    "/write",
                    params={"db": self._database, "precision": "s"},
                    headers={"Content-Type": "text/plain; charset=utf-8"},
                    content=statement.encode("utf-8"),
                )
            except httpx.HTTPError as e:
                raise UpstreamError(f"write to InfluxDB failed: {e}") from e
        log.debug("Write response status: %d", resp.status_code)
        if resp.status_code not in WRITE_OK:
            raise UpstreamError(
                f"bad status {resp.status_code} from POST {resp.request.url}: {resp.text.strip()}"
            )
