"""
Terminal output for the forwarder CLI, rendered with rich.
Usage:
    from influxforward.output import success, error, info, config_table
"""

from rich.console import Console
from rich.markup import escape
from rich.table import Table

console = Console(stderr=True, highlight=False)


def _print(style, symbol, msg):
    console.print(f"[{style}]{symbol}[/{style}] {escape(str(msg))}")


def success(msg):  _print("green",  "[+]", msg)
def error(msg):    _print("red",    "[-]", msg)
def info(msg):     _print("blue",   "[*]", msg)


def mask(secret: str) -> str:
    """Hide a secret but keep its length visible."""
    return "*" * len(secret)


def config_table(config) -> Table:
    """Effective configuration as a two-column table, password masked."""
    table = Table(title="influxforward", show_header=True, header_style="bold cyan")
    table.add_column("Setting")
    table.add_column("Value")
    rows = [
        ("Listen", f"{config.listen_host or '*'}:{config.listen_port}"),
        ("Password", mask(config.expected_password)),
        ("Redis key", config.redis_key),
        ("InfluxDB", config.influxdb_url),
        ("Database", config.influxdb_database),
        ("Measurement", config.influxdb_measurement),
        ("Read timeout", _seconds(config.read_timeout)),
        ("Upstream timeout", _seconds(config.upstream_timeout)),
        ("Max connections", str(config.max_connections)),
        ("Max upstream writes", str(config.max_upstream_writes)),
    ]
    for name, value in rows:
        table.add_row(name, value)
    return table


def _seconds(value) -> str:
    return "off" if value is None else f"{value:g}s"
