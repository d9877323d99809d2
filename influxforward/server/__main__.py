"""influxforward CLI — run with: python3 -m influxforward.server config.json [--verbose]"""

import argparse
import asyncio
import logging
import sys

from influxforward.config import load_config
from influxforward.errors import BootstrapError, ConfigError
from influxforward.output import config_table, console, error, success
from .daemon import ForwardServer
from .upstream import InfluxWriter

log = logging.getLogger(__name__)


async def serve(config):
    """Create the database, then forward until signalled."""
    async with InfluxWriter(config) as upstream:
        await upstream.create_database()
        success(f"Database {config.influxdb_database} ready on {config.influxdb_url}")
        server = ForwardServer(config, upstream)
        await server.run_forever()


def main(argv=None):
    parser = argparse.ArgumentParser(
        prog="influxforward",
        description="Fake Redis server that forwards LPUSHed JSON logs to InfluxDB",
    )
    parser.add_argument("config", help="Path to config.json")
    parser.add_argument("--verbose", "-v", action="store_true", help="Verbose logging")
    args = parser.parse_args(argv)

    level = logging.DEBUG if args.verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
        datefmt="%H:%M:%S",
    )

    try:
        config = load_config(args.config)
        console.print(config_table(config))
        asyncio.run(serve(config))
    except (ConfigError, BootstrapError) as e:
        log.error("%s: %s", type(e).__name__, e)
        error(str(e))
        sys.exit(1)


if __name__ == "__main__":
    main()
