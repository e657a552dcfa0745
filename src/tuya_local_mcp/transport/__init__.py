"""Network transport: one reliable TCP round trip per request."""

from .tcp_connection import RetryingTransport, TransportConfig
