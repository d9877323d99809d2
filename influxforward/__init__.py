"""
influxforward — Pretend to be Redis, write to InfluxDB.
A log shipper that LPUSHes JSON records into Redis can point at this server
unchanged; every record becomes one InfluxDB line-protocol write.

Usage:
    python3 -m influxforward.server config.json
"""

from .errors import *

__version__ = "1.0.0"
