"""Shared fixtures for influxforward test suite."""

import asyncio
import dataclasses

import httpx
import pytest

from influxforward.config import ForwarderConfig
from influxforward.server.daemon import ForwardServer
from influxforward.server.upstream import InfluxWriter


class FakeInflux:
    """httpx.MockTransport backend that records every request it receives."""

    def __init__(self):
        self.requests = []
        self.write_status = 204
        self.query_status = 200
        self.unreachable = False

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.unreachable:
            raise httpx.ConnectError("connection refused", request=request)
        if request.url.path == "/write":
            body = "" if self.write_status == 204 else '{"error":"boom"}'
            return httpx.Response(self.write_status, text=body)
        return httpx.Response(self.query_status, json={"results": [{"statement_id": 0}]})

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def writes(self) -> list[str]:
        return [r.content.decode() for r in self.requests if r.url.path == "/write"]


@pytest.fixture
def config():
    """Config bound to an ephemeral localhost port, stats logging off."""
    return ForwarderConfig(
        listen_port=0,
        expected_password="secret",
        influxdb_host="influx.test",
        influxdb_port=8086,
        influxdb_database="belugacdn",
        influxdb_measurement="measurement",
        listen_host="127.0.0.1",
        read_timeout=5.0,
        stats_interval=None,
    )


@pytest.fixture
def influx():
    return FakeInflux()


@pytest.fixture
def run_server(config, influx):
    """Run scenario(server) against a live ForwardServer; returns its result.

    Accepts config overrides as keyword arguments.
    """
    def _run(scenario, **overrides):
        cfg = dataclasses.replace(config, **overrides)

        async def go():
            async with InfluxWriter(cfg, transport=influx.transport) as upstream:
                server = ForwardServer(cfg, upstream)
                await server.start()
                try:
                    return await scenario(server)
                finally:
                    await server.stop()

        return asyncio.run(go())

    return _run
