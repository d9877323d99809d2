"""Error taxonomy for influxforward.

Startup errors (ConfigError, BootstrapError) stop the process. Everything
else is scoped to the connection that caused it.
"""

__all__ = [
    "ForwarderError", "ConfigError", "BootstrapError", "ProtocolError",
    "FramingError", "PayloadError", "UpstreamError", "ClientDisconnected",
]


class ForwarderError(Exception):
    """Base class for all influxforward errors."""


class ConfigError(ForwarderError):
    """Missing or invalid configuration."""


class BootstrapError(ForwarderError):
    """Database creation failed at startup."""


class ProtocolError(ForwarderError):
    """Command framing or shape did not match what we accept."""


class FramingError(ProtocolError):
    """Stream ended early or a CRLF terminator was missing or malformed."""


class PayloadError(ForwarderError):
    """Pushed log record could not be parsed or translated."""


class UpstreamError(ForwarderError):
    """InfluxDB rejected the write or could not be reached."""


class ClientDisconnected(ForwarderError):
    """Peer closed the stream cleanly between two commands."""
