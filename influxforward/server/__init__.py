"""influxforward server — fake Redis listener forwarding LPUSH records to InfluxDB."""

from .daemon import ForwardServer
from .connection import ConnectionHandler, ConnectionState
from .protocol import Authenticate, CommandRecognizer, FramedReader, Push, encode_command
from .upstream import InfluxWriter
